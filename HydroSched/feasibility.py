"""
可行性检查模块

求解前检查电站与来水数据是否可能导致不可行，
求解后检查求解器终止状态与水量平衡约束残差。
"""

from collections import Counter
from enum import Enum
from typing import Any, Dict, Optional, Sequence, Tuple
import warnings

from .defaults import OPTIMIZATION_DEFAULTS, WATER_BALANCE_DEFAULTS
from .inflow import resolve_inflow

# build_water_balance 创建的约束组件
HYDRO_CONSTRAINTS = (
    "hydro_water_balance",
    "hydro_storage_limits",
    "hydro_flow_limits",
    "hydro_ror_availability",
)


class FeasibilityStatus(Enum):
    """可行性状态"""
    FEASIBLE = "feasible"  # 可行
    INFEASIBLE = "infeasible"  # 不可行
    UNKNOWN = "unknown"  # 未知


class FeasibilityResult:
    """可行性检查结果"""

    def __init__(
        self,
        status: FeasibilityStatus,
        message: str = "",
        details: Optional[Dict[str, Any]] = None
    ):
        self.status = status
        self.message = message
        self.details = details or {}

    @property
    def is_feasible(self) -> bool:
        """是否可行"""
        return self.status == FeasibilityStatus.FEASIBLE

    def __repr__(self):
        return f"FeasibilityResult(status={self.status.value}, message='{self.message}')"


def _termination_status(termination, solver_status) -> Tuple[FeasibilityStatus, str]:
    from pyomo.opt import SolverStatus, TerminationCondition

    if termination in (TerminationCondition.optimal, TerminationCondition.locallyOptimal):
        return FeasibilityStatus.FEASIBLE, "求解器返回最优调度"
    if termination in (TerminationCondition.infeasible, TerminationCondition.infeasibleOrUnbounded):
        return FeasibilityStatus.INFEASIBLE, "调度模型不可行，请检查库容上下限、最小下泄流量与来水"
    if termination == TerminationCondition.unbounded:
        return FeasibilityStatus.INFEASIBLE, "调度模型无界，请检查弃水与出力变量的约束"
    if termination in (
        TerminationCondition.maxTimeLimit,
        TerminationCondition.maxIterations,
        TerminationCondition.maxEvaluations,
    ):
        if solver_status in (SolverStatus.ok, SolverStatus.warning):
            return FeasibilityStatus.FEASIBLE, f"求解器达到限制 ({termination})，返回当前可行调度"
        return FeasibilityStatus.UNKNOWN, f"求解器达到限制 ({termination})，未找到可行调度"
    return FeasibilityStatus.UNKNOWN, f"未知的求解器终止条件: {termination}"


def check_solver_results(results, model=None, tolerance: Optional[float] = None) -> FeasibilityResult:
    """
    检查求解结果

    先按终止条件判定；给定 model 且求解器返回了解时，
    再核对水量平衡等水电约束的残差，按电站统计违反的约束数。

    Args:
        results: Pyomo求解器结果
        model: 已载入解的模型（None则只看终止条件）
        tolerance: 残差容差（None使用 OPTIMIZATION_DEFAULTS.feasibility_tolerance）

    Returns:
        FeasibilityResult: details 含 termination、status，以及核对残差时的
        num_violations、violations_by_plant
    """
    if not hasattr(results, 'solver'):
        return FeasibilityResult(FeasibilityStatus.UNKNOWN, "无法获取求解器状态")

    termination = results.solver.termination_condition
    solver_status = results.solver.status
    status, message = _termination_status(termination, solver_status)
    details: Dict[str, Any] = {"termination": str(termination), "status": str(solver_status)}

    if status != FeasibilityStatus.FEASIBLE or model is None:
        return FeasibilityResult(status, message, details)

    ok, report = check_constraint_violations(model, tolerance=tolerance, component_names=HYDRO_CONSTRAINTS)
    details.update(report)
    if not ok:
        return FeasibilityResult(
            FeasibilityStatus.INFEASIBLE,
            f"求解器返回的调度违反 {report['num_violations']} 条水电约束",
            details,
        )
    return FeasibilityResult(status, message, details)


def check_constraint_violations(
    model,
    tolerance: Optional[float] = None,
    component_names: Optional[Sequence[str]] = None,
) -> Tuple[bool, Dict[str, Any]]:
    """
    检查约束是否被违反（需先为变量赋值或求解）

    Args:
        model: Pyomo模型
        tolerance: 容差（None使用 OPTIMIZATION_DEFAULTS.feasibility_tolerance）
        component_names: 只检查指定的约束组件（None表示全部）

    Returns:
        (是否全部满足, 违反约束的详细信息)；按 (电站, 时段) 索引的约束另按电站汇总
    """
    from pyomo.environ import Constraint, value

    if tolerance is None:
        tolerance = OPTIMIZATION_DEFAULTS.feasibility_tolerance
    violations = []

    for constraint in model.component_objects(ctype=Constraint, active=True):
        if component_names is not None and constraint.local_name not in component_names:
            continue
        for index in constraint:
            con = constraint[index]
            if not con.active:
                continue
            try:
                body_value = value(con.body)
            except ValueError as e:
                # 变量未赋值
                warnings.warn(f"无法评估约束 {constraint.name}[{index}]: {e}")
                continue

            if con.lower is not None:
                lower_value = value(con.lower)
                if body_value < lower_value - tolerance:
                    violations.append({
                        'constraint': constraint.name,
                        'index': index,
                        'type': 'lower_bound',
                        'value': body_value,
                        'bound': lower_value,
                        'violation': lower_value - body_value,
                    })

            if con.upper is not None:
                upper_value = value(con.upper)
                if body_value > upper_value + tolerance:
                    violations.append({
                        'constraint': constraint.name,
                        'index': index,
                        'type': 'upper_bound',
                        'value': body_value,
                        'bound': upper_value,
                        'violation': body_value - upper_value,
                    })

    by_plant = Counter(
        v['index'][0] for v in violations
        if isinstance(v['index'], tuple) and len(v['index']) == 2
    )
    details = {
        'num_violations': len(violations),
        'violations': violations[:10],  # 最多返回前10个
        'violations_by_plant': dict(by_plant),
    }
    return len(violations) == 0, details


def check_plant_feasibility(
    plants: Sequence,
    periods: Sequence[int],
    inflow_data=None,
) -> FeasibilityResult:
    """
    预先检查电站配置的基本可行性（不求解优化问题）

    对每座有库容的电站，检查在不计上游来水时，
    最小下泄流量是否会使库容在调度期内跌破死库容。

    Args:
        plants: 电站列表
        periods: 调度时段
        inflow_data: 天然来水

    Returns:
        FeasibilityResult: 可行性检查结果
    """
    k = WATER_BALANCE_DEFAULTS.m3s_to_hm3_per_hour
    issues = []

    if not periods:
        issues.append("时段列表为空")
    if not plants:
        issues.append("电站列表为空")

    for plant in plants:
        if not plant.has_storage:
            continue
        min_outflow = plant.flow_bounds[0]
        volume = plant.initial_volume_hm3
        for t in periods:
            volume += k * (resolve_inflow(inflow_data, plant.id, t) - min_outflow)
            if volume < plant.min_volume_hm3:
                issues.append(
                    f"电站 {plant.id} 按最小下泄流量 {min_outflow} m³/s 运行，"
                    f"时段 {t} 库容 {volume:.4f} hm³ 低于死库容 {plant.min_volume_hm3} hm³（未计上游来水）"
                )
                break

    if issues:
        return FeasibilityResult(
            FeasibilityStatus.UNKNOWN,
            "电站配置可能存在问题",
            {"issues": issues}
        )
    return FeasibilityResult(
        FeasibilityStatus.FEASIBLE,
        "电站配置基本检查通过"
    )


__all__ = [
    'HYDRO_CONSTRAINTS',
    'FeasibilityStatus',
    'FeasibilityResult',
    'check_solver_results',
    'check_constraint_violations',
    'check_plant_feasibility',
]
