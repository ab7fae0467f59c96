"""
水电站水量平衡约束

对有调节库容的电站 h（水库电站、抽水蓄能电站）和时段 t：

    s[h,t] = s[h,t-1]                                  （首时段取初始库容）
           + K * inflow[h,t]
           + K * Σ_{(u,d) ∈ upstream(h)} (q[u,t-d] + spill[u,t-d])   （t-d 不早于首时段）
           + K * pump[h,t]                             （仅抽水蓄能）
           - K * q[h,t]
           - K * spill[h,t]                            （启用弃水时）

其中 K = 0.0036，将 m³/s 换算为每小时 hm³；d 为水流滞时按四舍六入五成双取整后的时段数。
上游滞时出流早于首时段的项直接舍去（该部分水量在调度期开始前已离开上游水库）。

径流式电站没有库容递推，其出库流量 q 直接作为下游电站的上游来水项，
流量上下限由电站参数给定。
上游弃水 spill[u] 只在 u 同时参与本次构建时计入：库容电站的弃水已从自身库容中扣除；
径流式电站的弃水仅在启用 limit_run_of_river_flow（q + spill 不超过可用来水）时计入。

副作用：启用弃水但模型中没有弃水变量时，会调用 create_spill_variables 为库容电站创建 spill 变量，
并记录在结果的 created_variables 中。
"""

import time
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

import structlog
from pyomo.environ import Constraint, Set

from .cascade_topology import CascadeTopology, build_cascade_topology
from .defaults import WATER_BALANCE_DEFAULTS
from .exceptions import ConfigurationError
from .inflow import resolve_inflow
from .variables import (
    OUTFLOW,
    PUMP,
    SPILL,
    STORAGE,
    create_spill_variables,
    get_model_periods,
    has_variable_family,
    normalize_periods,
)

logger = structlog.get_logger()

_BOUND_TOLERANCE = 1e-9

_COMPONENT_NAMES = (
    "hydro_storage_plants",
    "hydro_ror_plants",
    "hydro_balance_periods",
    "hydro_water_balance",
    "hydro_storage_limits",
    "hydro_flow_limits",
    "hydro_ror_availability",
)


@dataclass
class HydroWaterBalanceConstraint:
    """
    水量平衡约束配置

    - include_cascade: 是否计入上游电站的滞时出流；关闭时拓扑仍会构建，仅用于诊断；
    - include_spill: 是否计入弃水；
    - limit_run_of_river_flow: 径流式电站出库流量不超过天然来水与上游到达流量之和；
    - plant_ids: 只约束指定电站（空表示全部）；
    - time_periods: 只约束指定时段（None 表示模型全部时段），须为模型时段内的连续区间。
    """

    name: str = "Hydro Water Balance"
    description: str = "Water balance for hydro plants"
    include_cascade: bool = field(default_factory=lambda: WATER_BALANCE_DEFAULTS.include_cascade)
    include_spill: bool = field(default_factory=lambda: WATER_BALANCE_DEFAULTS.include_spill)
    limit_run_of_river_flow: bool = field(
        default_factory=lambda: WATER_BALANCE_DEFAULTS.limit_run_of_river_flow
    )
    plant_ids: Tuple[str, ...] = ()
    time_periods: Optional[Iterable[int]] = None
    enabled: bool = True


class ConstraintBuildResult:
    """约束构建结果"""

    def __init__(
        self,
        constraint_type: str,
        success: bool = True,
        message: str = "",
        num_constraints: int = 0,
        num_variables: int = 0,
        build_time_seconds: float = 0.0,
        warnings: Optional[List[str]] = None,
        created_variables: Optional[List[str]] = None,
        topology: Optional[CascadeTopology] = None,
    ):
        self.constraint_type = constraint_type
        self.success = success
        self.message = message
        self.num_constraints = num_constraints
        self.num_variables = num_variables
        self.build_time_seconds = build_time_seconds
        self.warnings = warnings or []
        self.created_variables = created_variables or []
        self.topology = topology

    def __bool__(self):
        return self.success

    def __repr__(self):
        return (
            f"ConstraintBuildResult(type={self.constraint_type}, success={self.success}, "
            f"num_constraints={self.num_constraints}, message='{self.message}')"
        )


def delay_to_periods(delay_hours: float, period_hours: Optional[float] = None) -> int:
    """
    水流滞时换算为时段偏移

    使用 Python 内置 round（四舍六入五成双），例如 2.5 h -> 2，3.5 h -> 4。
    """
    if period_hours is None:
        period_hours = WATER_BALANCE_DEFAULTS.period_hours
    return int(round(float(delay_hours) / period_hours))


def _failure(message: str, warning_list: List[str], start_time: float) -> ConstraintBuildResult:
    logger.warning("Hydro water balance not built", reason=message)
    return ConstraintBuildResult(
        constraint_type="HydroWaterBalanceConstraint",
        success=False,
        message=message,
        build_time_seconds=time.perf_counter() - start_time,
        warnings=warning_list + [message],
    )


def _missing_variable_family(model, plants: Sequence) -> Optional[str]:
    """返回缺失的变量族名称，全部存在时返回 None"""
    storage_plants = [p for p in plants if p.has_storage]
    if storage_plants and not has_variable_family(model, STORAGE):
        return STORAGE
    if not has_variable_family(model, OUTFLOW):
        return OUTFLOW
    if model.component("T") is None:
        return "T"

    first = next(iter(model.T))
    for plant in plants:
        if (plant.id, first) not in model.q:
            return f"{OUTFLOW}[{plant.id}]"
        if plant.has_storage and (plant.id, first) not in model.s:
            return f"{STORAGE}[{plant.id}]"
    return None


def _resolve_periods(model_periods: List[int], requested) -> List[int]:
    if requested is None:
        return list(model_periods)
    periods = normalize_periods(requested)
    known = set(model_periods)
    outside = [t for t in periods if t not in known]
    if outside:
        raise ConfigurationError(f"时段 {outside} 不在模型时段范围内")
    return periods


def _bound_enforced(var_bound, plant_bound, lower: bool) -> bool:
    if plant_bound is None:
        return True
    if var_bound is None:
        return False
    if lower:
        return var_bound >= plant_bound - _BOUND_TOLERANCE
    return var_bound <= plant_bound + _BOUND_TOLERANCE


def build_water_balance(
    model,
    plants: Sequence,
    constraint: Optional[HydroWaterBalanceConstraint] = None,
    *,
    inflow_data=None,
    topology: Optional[CascadeTopology] = None,
) -> ConstraintBuildResult:
    """
    构建水电站水量平衡约束

    Args:
        model: Pyomo 模型，需已通过 create_hydro_variables 创建 s、q 变量
        plants: 全部电站列表（用于构建拓扑）
        constraint: 约束配置（None 使用默认配置）
        inflow_data: 天然来水（InflowData、{电站: 序列} 或 f(plant_id, t)），None 表示来水为0
        topology: 预先构建的拓扑（None 时根据 plants 构建）

    Returns:
        ConstraintBuildResult: 构建统计；变量缺失时 success=False 且模型保持不变

    Raises:
        TopologyError: 梯级存在环路
        DuplicatePlantError: 电站ID重复
        ConfigurationError: 时段配置不合法或约束组件已存在
    """
    start_time = time.perf_counter()
    constraint = constraint or HydroWaterBalanceConstraint()
    warning_list: List[str] = []

    if not constraint.enabled:
        return ConstraintBuildResult(
            constraint_type="HydroWaterBalanceConstraint",
            success=True,
            message="约束未启用",
        )

    # 拓扑始终基于全部电站构建，关闭梯级时仅用于诊断
    if topology is None:
        topology = build_cascade_topology(plants)
    warning_list.extend(topology.warnings)

    selected = list(plants)
    if constraint.plant_ids:
        wanted = set(constraint.plant_ids)
        known = {p.id for p in plants}
        for plant_id in constraint.plant_ids:
            if plant_id not in known:
                warning_list.append(f"约束配置中的电站 '{plant_id}' 不存在，已忽略")
        selected = [p for p in plants if p.id in wanted]

    if not selected:
        return _failure("未找到需要约束的水电站", warning_list, start_time)

    missing = _missing_variable_family(model, selected)
    if missing is not None:
        return _failure(
            f"模型中缺少变量族 '{missing}'，请先调用 create_hydro_variables",
            warning_list,
            start_time,
        )

    needs_spill = constraint.include_spill and not has_variable_family(model, SPILL)
    if needs_spill and model.component("H_storage") is None:
        return _failure(
            "模型中缺少电站集合 'H_storage'，无法自动创建弃水变量，请先调用 create_hydro_variables",
            warning_list,
            start_time,
        )

    model_periods = get_model_periods(model)
    periods = _resolve_periods(model_periods, constraint.time_periods)
    first_period = model_periods[0]

    for component_name in _COMPONENT_NAMES:
        if model.component(component_name) is not None:
            raise ConfigurationError(f"模型中已存在约束组件 '{component_name}'")

    created_variables: List[str] = []
    num_variables = 0
    if needs_spill:
        create_spill_variables(model)
        created_variables.append(SPILL)
        num_variables += len(model.spill)
        logger.info("Created spill variables as a side effect of water balance build", count=len(model.spill))

    spill = model.spill if constraint.include_spill else None
    pump = model.pump if has_variable_family(model, PUMP) else None
    k = WATER_BALANCE_DEFAULTS.m3s_to_hm3_per_hour
    plant_map = {p.id: p for p in selected}

    # 上游项：(上游电站, 时段偏移, 是否计入弃水)，滞时取整一次
    # 上游弃水只有在本次构建中被扣减（库容电站）或受可用来水约束（径流式电站）时才汇入下游
    def routes_spill(upstream_id):
        upstream = plant_map.get(upstream_id)
        if upstream is None:
            return False
        return upstream.has_storage or constraint.limit_run_of_river_flow

    upstream_terms: Dict[str, List[Tuple[str, int, bool]]] = {}
    for plant in selected:
        terms = []
        if constraint.include_cascade:
            for upstream_id, delay_hours in topology.get_upstream_plants(plant.id):
                if (upstream_id, first_period) not in model.q:
                    warning_list.append(
                        f"上游电站 '{upstream_id}' 没有出库流量变量，未计入电站 '{plant.id}' 的水量平衡"
                    )
                    continue
                terms.append((upstream_id, delay_to_periods(delay_hours), routes_spill(upstream_id)))
        upstream_terms[plant.id] = terms

    def upstream_release(m, h, t):
        total = 0.0
        for upstream_id, lag, with_spill in upstream_terms[h]:
            source_t = t - lag
            if source_t < first_period:
                continue
            total += m.q[upstream_id, source_t]
            if with_spill and spill is not None and (upstream_id, source_t) in spill:
                total += spill[upstream_id, source_t]
        return total

    storage_ids = [p.id for p in selected if p.has_storage]
    ror_ids = [p.id for p in selected if not p.has_storage]
    model.hydro_storage_plants = Set(initialize=storage_ids, ordered=True, doc="参与水量平衡的库容电站")
    model.hydro_ror_plants = Set(initialize=ror_ids, ordered=True, doc="径流式电站")
    model.hydro_balance_periods = Set(initialize=periods, ordered=True, doc="水量平衡时段")
    for plant_id in storage_ids:
        if plant_map[plant_id].kind == "pumped_storage" and pump is None:
            warning_list.append(f"抽水蓄能电站 '{plant_id}' 没有抽水变量，水量平衡不计抽水回补")

    def balance_rule(m, h, t):
        plant = plant_map[h]
        if t == first_period:
            previous = plant.initial_volume_hm3
        else:
            previous = m.s[h, t - 1]

        inflow = k * resolve_inflow(inflow_data, h, t)
        expr = previous + inflow + k * upstream_release(m, h, t) - k * m.q[h, t]
        if spill is not None and (h, t) in spill:
            expr = expr - k * spill[h, t]
        if pump is not None and (h, t) in pump:
            expr = expr + k * pump[h, t]
        return m.s[h, t] == expr

    model.hydro_water_balance = Constraint(
        model.hydro_storage_plants, model.hydro_balance_periods, rule=balance_rule, doc="水库水量平衡"
    )

    def storage_limits_rule(m, h, t):
        lower, upper = plant_map[h].volume_bounds
        var = m.s[h, t]
        lower_term = None if _bound_enforced(var.lb, lower, lower=True) else lower
        upper_term = None if _bound_enforced(var.ub, upper, lower=False) else upper
        if lower_term is None and upper_term is None:
            return Constraint.Skip
        return (lower_term, var, upper_term)

    model.hydro_storage_limits = Constraint(
        model.hydro_storage_plants, model.hydro_balance_periods, rule=storage_limits_rule, doc="库容上下限"
    )

    def flow_limits_rule(m, h, t):
        lower, upper = plant_map[h].flow_bounds
        var = m.q[h, t]
        lower_term = None if _bound_enforced(var.lb, lower, lower=True) else lower
        upper_term = None if _bound_enforced(var.ub, upper, lower=False) else upper
        if lower_term is None and upper_term is None:
            return Constraint.Skip
        return (lower_term, var, upper_term)

    model.hydro_flow_limits = Constraint(
        model.hydro_ror_plants, model.hydro_balance_periods, rule=flow_limits_rule, doc="径流式电站流量上下限"
    )

    num_constraints = (
        len(model.hydro_water_balance)
        + len(model.hydro_storage_limits)
        + len(model.hydro_flow_limits)
    )

    if constraint.limit_run_of_river_flow:
        def ror_availability_rule(m, h, t):
            available = resolve_inflow(inflow_data, h, t) + upstream_release(m, h, t)
            release = m.q[h, t]
            if spill is not None and (h, t) in spill:
                release = release + spill[h, t]
            return release <= available

        model.hydro_ror_availability = Constraint(
            model.hydro_ror_plants, model.hydro_balance_periods, rule=ror_availability_rule, doc="径流式电站可用来水"
        )
        num_constraints += len(model.hydro_ror_availability)

    build_time = time.perf_counter() - start_time

    for message in warning_list:
        logger.warning("Hydro water balance warning", detail=message)
    logger.info(
        "Hydro water balance constraints built",
        num_plants=len(selected),
        num_periods=len(periods),
        num_constraints=num_constraints,
        include_cascade=constraint.include_cascade,
        include_spill=constraint.include_spill,
        build_time=build_time,
    )

    message = f"已构建 {num_constraints} 条水量平衡约束"
    if created_variables:
        message += f"（自动创建变量: {', '.join(created_variables)}）"

    return ConstraintBuildResult(
        constraint_type="HydroWaterBalanceConstraint",
        success=True,
        message=message,
        num_constraints=num_constraints,
        num_variables=num_variables,
        build_time_seconds=build_time,
        warnings=warning_list,
        created_variables=created_variables,
        topology=topology,
    )


__all__ = [
    "HydroWaterBalanceConstraint",
    "ConstraintBuildResult",
    "delay_to_periods",
    "build_water_balance",
]
