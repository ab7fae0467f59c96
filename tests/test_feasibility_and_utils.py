"""
测试可行性检查、结果提取、时间序列生成和绘图工具
"""
import sys
from pathlib import Path
import pytest

sys.path.insert(0, str(Path(__file__).parent.parent))

import matplotlib

matplotlib.use("Agg")
import matplotlib.pyplot as plt
from pyomo.environ import ConcreteModel, Objective, SolverFactory, minimize
from pyomo.opt import SolverResults, SolverStatus, TerminationCondition

from HydroSched.cascade_topology import build_cascade_topology
from HydroSched.defaults import OPTIMIZATION_DEFAULTS, update_defaults
from HydroSched.exceptions import SolverError
from HydroSched.feasibility import (
    FeasibilityStatus,
    check_constraint_violations,
    check_plant_feasibility,
    check_solver_results,
)
from HydroSched.plant_schema import ReservoirHydro, RunOfRiverHydro
from HydroSched.utils import (
    ResultExtractor,
    SolverManager,
    TimeSeriesGenerator,
    solver_options_for,
)
from HydroSched.variables import create_hydro_variables
from HydroSched.visualization import plot_cascade_topology, plot_storage_trajectories
from HydroSched.water_balance import HydroWaterBalanceConstraint, build_water_balance


GLPK_AVAILABLE = SolverFactory("glpk").available(exception_flag=False)


def reservoir(plant_id, downstream=None, delay=None, min_outflow=0.0):
    return ReservoirHydro(
        id=plant_id,
        max_volume_hm3=10.0,
        min_volume_hm3=1.0,
        initial_volume_hm3=2.0,
        max_outflow_m3_per_s=500.0,
        min_outflow_m3_per_s=min_outflow,
        downstream_plant_id=downstream,
        water_travel_time_hours=delay,
    )


class TestSolverResults:
    """测试求解器状态判定"""

    def _results(self, termination, status=SolverStatus.ok):
        results = SolverResults()
        results.solver.termination_condition = termination
        results.solver.status = status
        return results

    def test_optimal(self):
        result = check_solver_results(self._results(TerminationCondition.optimal))
        assert result.is_feasible

    def test_infeasible(self):
        result = check_solver_results(
            self._results(TerminationCondition.infeasible, SolverStatus.warning)
        )
        assert result.status == FeasibilityStatus.INFEASIBLE

    def test_time_limit_with_solution(self):
        result = check_solver_results(self._results(TerminationCondition.maxTimeLimit))
        assert result.is_feasible

    def test_unbounded(self):
        result = check_solver_results(self._results(TerminationCondition.unbounded))
        assert result.status == FeasibilityStatus.INFEASIBLE

    def test_object_without_solver(self):
        result = check_solver_results(object())
        assert result.status == FeasibilityStatus.UNKNOWN

    def test_unavailable_solver(self):
        with pytest.raises(SolverError, match="不可用"):
            SolverManager("no_such_solver_for_hydro")


class TestScheduleCheck:
    """测试求解后按电站核对水电约束残差"""

    @pytest.fixture
    def model(self):
        plants = [reservoir("A", "B", 1.0), reservoir("B")]
        model = ConcreteModel()
        create_hydro_variables(model, plants, [1, 2, 3])
        build_water_balance(model, plants, HydroWaterBalanceConstraint(include_spill=False))
        for var in model.q.values():
            var.set_value(0.0)
        for var in model.s.values():
            var.set_value(2.0)
        return model

    def _optimal(self):
        results = SolverResults()
        results.solver.termination_condition = TerminationCondition.optimal
        results.solver.status = SolverStatus.ok
        return results

    def test_consistent_schedule(self, model):
        """无来水、零出流时库容保持初始值"""
        result = check_solver_results(self._optimal(), model)

        assert result.is_feasible
        assert result.details["num_violations"] == 0

    def test_violations_reported_per_plant(self, model):
        model.s["A", 2].set_value(3.0)
        result = check_solver_results(self._optimal(), model)

        assert result.status == FeasibilityStatus.INFEASIBLE
        assert set(result.details["violations_by_plant"]) == {"A"}
        assert result.details["violations_by_plant"]["A"] == 2

    def test_default_tolerance(self, model):
        """残差容差取自默认配置"""
        model.s["A", 1].set_value(2.0 + 1e-7)
        ok, _ = check_constraint_violations(model)
        assert ok

        original = OPTIMIZATION_DEFAULTS.feasibility_tolerance
        try:
            update_defaults("optimization", feasibility_tolerance=1e-9)
            ok, details = check_constraint_violations(model)
            assert not ok
            assert details["violations_by_plant"] == {"A": 2}
        finally:
            update_defaults("optimization", feasibility_tolerance=original)


class TestSolverOptions:
    """测试求解时间上限"""

    def test_time_limit_names(self):
        assert solver_options_for("glpk", timeout=60) == {"tmlim": 60}
        assert solver_options_for("cbc", timeout=30.5) == {"sec": 30.5}
        assert solver_options_for("gurobi", {"MIPGap": 0.01}, timeout=10) == {"MIPGap": 0.01, "TimeLimit": 10}

    def test_explicit_option_wins(self):
        assert solver_options_for("glpk", {"tmlim": 5}, timeout=60) == {"tmlim": 5}

    def test_no_limit(self):
        assert solver_options_for("glpk", timeout=None) == {}
        assert solver_options_for("unknown_solver", timeout=60) == {}

    def test_options_not_mutated(self):
        options = {"mipgap": 0.01}
        solver_options_for("glpk", options, timeout=60)
        assert options == {"mipgap": 0.01}

    @pytest.mark.skipif(not GLPK_AVAILABLE, reason="glpk 不可用")
    def test_solve_schedule(self):
        """端到端求解两级梯级并核对残差"""
        plants = [reservoir("A", "B", 1.0), reservoir("B")]
        model = ConcreteModel()
        create_hydro_variables(model, plants, [1, 2, 3])
        build_water_balance(model, plants, inflow_data={"A": [50.0] * 3, "B": [10.0] * 3})
        model.objective = Objective(expr=sum(model.spill.values()), sense=minimize)

        manager = SolverManager("glpk", timeout=30)
        result = manager.solve(model)

        assert manager.solver_options == {"tmlim": 30}
        assert result.is_feasible
        assert result.details["num_violations"] == 0


class TestPlantFeasibility:
    """测试求解前的电站检查"""

    def test_min_outflow_drains_reservoir(self):
        """最小下泄流量导致库容跌破死库容"""
        plants = [reservoir("R", min_outflow=100.0)]
        result = check_plant_feasibility(plants, list(range(1, 25)))

        assert result.status == FeasibilityStatus.UNKNOWN
        assert "R" in result.details["issues"][0]

    def test_inflow_covers_min_outflow(self):
        plants = [reservoir("R", min_outflow=100.0)]
        result = check_plant_feasibility(plants, list(range(1, 25)), {"R": [100.0] * 24})

        assert result.is_feasible

    def test_empty_inputs(self):
        result = check_plant_feasibility([], [])

        assert not result.is_feasible
        assert len(result.details["issues"]) == 2


class TestResultExtraction:
    """测试结果提取"""

    @pytest.fixture
    def model(self):
        plants = [reservoir("A", "B", 1.0), reservoir("B")]
        model = ConcreteModel()
        create_hydro_variables(model, plants, [1, 2, 3])
        for (plant_id, t) in model.s:
            model.s[plant_id, t].set_value(float(t))
        return model

    def test_extract_storage(self, model):
        frame = ResultExtractor.extract_storage(model)

        assert list(frame.columns) == ["A", "B"]
        assert list(frame.index) == [1, 2, 3]
        assert frame.loc[2, "B"] == 2.0

    def test_extract_subset_and_unset_values(self, model):
        frame = ResultExtractor.extract_outflow(model, plant_ids=["A"])

        assert list(frame.columns) == ["A"]
        assert frame["A"].isna().all()

    def test_extract_missing_family(self, model):
        assert ResultExtractor.extract_spill(model).empty

    def test_constraint_violation_report(self, model):
        """库容过低时报告库容下限违反"""
        plants = [reservoir("A", "B", 1.0), reservoir("B")]
        build_water_balance(model, plants, HydroWaterBalanceConstraint(include_spill=False))
        for var in model.q.values():
            var.set_value(0.0)
        model.s["A", 1].set_value(0.5)

        ok, details = check_constraint_violations(model, component_names=["hydro_storage_limits"])
        assert not ok
        assert details["violations"][0]["type"] == "lower_bound"


class TestTimeSeriesGenerator:
    """测试时间序列生成"""

    def test_periods(self):
        assert TimeSeriesGenerator.create_periods(3) == [1, 2, 3]

    def test_sinusoidal_non_negative(self):
        values = TimeSeriesGenerator.sinusoidal(10.0, 50.0, 24, noise_std=5.0, seed=1)

        assert len(values) == 24
        assert min(values) >= 0.0
        assert values == TimeSeriesGenerator.sinusoidal(10.0, 50.0, 24, noise_std=5.0, seed=1)

    def test_step_change(self):
        values = TimeSeriesGenerator.step_change(1.0, 5.0, 6, change_start=2, change_duration=2)
        assert values == [1.0, 1.0, 5.0, 5.0, 1.0, 1.0]


class TestVisualization:
    """测试绘图（不显示窗口）"""

    def test_plot_storage(self, tmp_path):
        plants = [reservoir("A")]
        model = ConcreteModel()
        create_hydro_variables(model, plants, [1, 2, 3])
        for var in model.s.values():
            var.set_value(5.0)

        save_path = tmp_path / "storage.png"
        fig, ax = plot_storage_trajectories(
            ResultExtractor.extract_storage(model), plants, save_path=save_path
        )
        assert save_path.exists()
        assert len(ax.lines) == 3
        plt.close(fig)

    def test_plot_topology(self):
        topology = build_cascade_topology([
            reservoir("A", "C", 2.0),
            RunOfRiverHydro(id="B", max_flow_m3_per_s=100.0, downstream_plant_id="C",
                            water_travel_time_hours=1.0),
            reservoir("C"),
        ])
        fig, ax = plot_cascade_topology(topology)
        assert ax.get_title() == "梯级拓扑"
        plt.close(fig)
