"""
案例：梯级水电站日前调度

问题描述：
某流域有四座水电站：
- UP: 上游龙头水库，经2小时滞时汇入 MID；
- TRIB: 支流径流式电站，经1小时滞时汇入 MID；
- MID: 中游水库，经3小时滞时汇入 LOW；
- LOW: 下游水库，出流离开流域。
另有一座独立的抽水蓄能电站 PS。

在24小时峰谷平电价下，最大化发电收益并计入期末蓄水价值。
"""

import sys
from pathlib import Path

import matplotlib.pyplot as plt
from pyomo.environ import ConcreteModel, Constraint, Objective, maximize, value

# 添加项目根目录到路径
sys.path.insert(0, str(Path(__file__).parent.parent.parent))

from HydroSched import (
    HydroWaterBalanceConstraint,
    InflowData,
    ResultExtractor,
    SolverError,
    SolverManager,
    TimeSeriesGenerator,
    build_cascade_topology,
    build_water_balance,
    check_plant_feasibility,
    create_hydro_variables,
    plants_from_config,
)
from HydroSched.visualization import plot_cascade_topology, plot_storage_trajectories


NUM_PERIODS = 24

# 出力系数（MW per m³/s），按 9.81 × 效率 × 水头 / 1000 粗略估算
POWER_FACTORS = {"UP": 0.72, "TRIB": 0.25, "MID": 0.55, "LOW": 0.40, "PS": 1.20}


def create_plants():
    """电站配置"""
    specs = [
        {
            "id": "UP",
            "kind": "reservoir",
            "name": "上游龙头水库",
            "max_volume_hm3": 120.0,
            "min_volume_hm3": 30.0,
            "initial_volume_hm3": 80.0,
            "max_outflow_m3_per_s": 400.0,
            "min_outflow_m3_per_s": 20.0,  # 生态流量
            "max_generation_mw": 300.0,
            "water_value_per_hm3": 150.0,
            "downstream_plant_id": "MID",
            "water_travel_time_hours": 2.0,
        },
        {
            "id": "TRIB",
            "kind": "run_of_river",
            "name": "支流径流式电站",
            "max_flow_m3_per_s": 150.0,
            "max_generation_mw": 40.0,
            "downstream_plant_id": "MID",
            "water_travel_time_hours": 1.0,
        },
        {
            "id": "MID",
            "kind": "reservoir",
            "name": "中游水库",
            "max_volume_hm3": 60.0,
            "min_volume_hm3": 10.0,
            "initial_volume_hm3": 35.0,
            "max_outflow_m3_per_s": 550.0,
            "max_generation_mw": 310.0,
            "water_value_per_hm3": 100.0,
            "downstream_plant_id": "LOW",
            "water_travel_time_hours": 3.0,
        },
        {
            "id": "LOW",
            "kind": "reservoir",
            "name": "下游水库",
            "max_volume_hm3": 40.0,
            "min_volume_hm3": 8.0,
            "initial_volume_hm3": 20.0,
            "max_outflow_m3_per_s": 700.0,
            "max_generation_mw": 280.0,
            "water_value_per_hm3": 60.0,
        },
        {
            "id": "PS",
            "kind": "pumped_storage",
            "name": "抽水蓄能电站",
            "upper_max_volume_hm3": 8.0,
            "upper_min_volume_hm3": 1.0,
            "upper_initial_volume_hm3": 4.0,
            "lower_max_volume_hm3": 10.0,
            "lower_min_volume_hm3": 1.0,
            "lower_initial_volume_hm3": 5.0,
            "max_outflow_m3_per_s": 200.0,
            "max_pumping_m3_per_s": 180.0,
            "max_generation_mw": 240.0,
        },
    ]
    return plants_from_config(specs)


def create_prices():
    """峰谷平电价（元/MWh）"""
    prices = []
    for t in range(NUM_PERIODS):
        if t in [8, 9, 10, 18, 19, 20, 21]:  # 峰时段
            prices.append(800.0)
        elif t in [7, 11, 12, 13, 14, 15, 16, 17, 22]:  # 平时段
            prices.append(500.0)
        else:  # 谷时段
            prices.append(300.0)
    return prices


def create_inflows():
    """天然来水（m³/s）"""
    return InflowData({
        "UP": TimeSeriesGenerator.sinusoidal(180.0, 40.0, NUM_PERIODS, seed=42, noise_std=5.0),
        "TRIB": TimeSeriesGenerator.constant(60.0, NUM_PERIODS),
        "MID": TimeSeriesGenerator.constant(15.0, NUM_PERIODS),
        "LOW": TimeSeriesGenerator.step_change(10.0, 30.0, NUM_PERIODS, change_start=12),
    })


def build_model(plants, inflows, prices):
    """构建调度模型"""
    periods = TimeSeriesGenerator.create_periods(NUM_PERIODS)

    model = ConcreteModel(name="cascade_day_ahead")
    create_hydro_variables(model, plants, periods)

    result = build_water_balance(
        model,
        plants,
        HydroWaterBalanceConstraint(limit_run_of_river_flow=True),
        inflow_data=inflows,
    )
    if not result:
        raise RuntimeError(result.message)
    print(f"   ✓ {result.message}")
    for warning in result.warnings:
        print(f"   ⚠ {warning}")

    # 出力与引用流量的线性关系，抽水耗电按同一系数折算
    def generation_rule(m, h, t):
        if (h, t) in m.pump:
            return m.gh[h, t] == POWER_FACTORS[h] * m.q[h, t]
        return m.gh[h, t] <= POWER_FACTORS[h] * m.q[h, t]

    model.generation_link = Constraint(model.H, model.T, rule=generation_rule)

    plant_map = {p.id: p for p in plants}
    last = periods[-1]

    def objective_rule(m):
        revenue = sum(prices[t - 1] * m.gh[h, t] for h in m.H for t in m.T)
        pumping_cost = sum(
            prices[t - 1] * POWER_FACTORS[h] / 0.85 * m.pump[h, t] for (h, t) in m.pump
        )
        spill_penalty = sum(1.0 * m.spill[h, t] for (h, t) in m.spill)
        terminal_value = sum(
            getattr(plant_map[h], "water_value_per_hm3", 0.0) * m.s[h, last] for h in m.H_storage
        )
        return revenue - pumping_cost - spill_penalty + terminal_value

    model.objective = Objective(rule=objective_rule, sense=maximize)
    return model


def main():
    print("=" * 80)
    print("梯级水电站日前调度")
    print("=" * 80)

    print("\n1. 读取电站配置...")
    plants = create_plants()
    topology = build_cascade_topology(plants)
    print(topology.to_frame().to_string())

    inflows = create_inflows()
    prices = create_prices()

    print("\n2. 可行性预检查...")
    check = check_plant_feasibility(plants, TimeSeriesGenerator.create_periods(NUM_PERIODS), inflows)
    print(f"   {check.message}")
    for issue in check.details.get("issues", []):
        print(f"   ⚠ {issue}")

    print("\n3. 构建优化模型...")
    model = build_model(plants, inflows, prices)

    print("\n4. 求解...")
    try:
        manager = SolverManager(timeout=60)
        check = manager.solve(model)
    except SolverError as e:
        print(f"   ✗ {e}")
        return

    print(f"   ✓ {check.message}")
    print(f"   ✓ 目标函数值: {value(model.objective):,.0f} 元")

    storage = ResultExtractor.extract_storage(model)
    generation = ResultExtractor.extract_generation(model)
    print("\n5. 调度结果")
    print(generation.sum().rename("日发电量 (MWh)").to_string())

    output_dir = Path(__file__).parent
    plot_cascade_topology(topology, save_path=output_dir / "cascade_topology.png")
    plot_storage_trajectories(storage, plants, save_path=output_dir / "storage.png")
    plt.show()


if __name__ == "__main__":
    main()
