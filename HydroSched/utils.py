"""
通用工具模块

提供来水时间序列生成、调度结果提取、求解器管理等通用功能。
"""

from typing import Any, Dict, List, Optional

import numpy as np
import pandas as pd
import structlog
from pyomo.environ import SolverFactory, value

from .defaults import OPTIMIZATION_DEFAULTS
from .exceptions import SolverError
from .feasibility import FeasibilityResult, check_solver_results

logger = structlog.get_logger()


class TimeSeriesGenerator:
    """时间序列生成器（时段从1开始编号）"""

    @staticmethod
    def create_periods(num_periods: int, start: int = 1) -> List[int]:
        """
        创建调度时段

        Args:
            num_periods: 时段数量
            start: 起始时段编号

        Returns:
            连续整数时段列表
        """
        return list(range(start, start + num_periods))

    @staticmethod
    def constant(value: float, num_periods: int) -> List[float]:
        return [float(value)] * num_periods

    @staticmethod
    def sinusoidal(
        base: float,
        amplitude: float,
        num_periods: int,
        frequency: float = 1.0,
        phase: float = 0.0,
        noise_std: float = 0.0,
        seed: Optional[int] = None,
    ) -> List[float]:
        """
        生成正弦来水过程，结果截断为非负

        Args:
            base: 基础值
            amplitude: 振幅
            num_periods: 时段数量
            frequency: 频率（周期数）
            phase: 相位
            noise_std: 噪声标准差
            seed: 随机种子

        Returns:
            来水流量列表
        """
        rng = np.random.default_rng(seed)
        idx = np.arange(num_periods)
        values = base + amplitude * np.sin(2 * np.pi * frequency * idx / num_periods + phase)
        if noise_std > 0:
            values = values + rng.normal(0.0, noise_std, size=num_periods)
        return np.clip(values, 0.0, None).tolist()

    @staticmethod
    def step_change(
        initial_value: float,
        final_value: float,
        num_periods: int,
        change_start: int,
        change_duration: Optional[int] = None
    ) -> List[float]:
        """
        生成阶跃变化序列（change_start 为从0开始的位置）

        Args:
            initial_value: 初始值
            final_value: 最终值
            num_periods: 总时段数
            change_start: 变化开始位置
            change_duration: 变化持续时间（None表示永久变化）

        Returns:
            阶跃变化值列表
        """
        values = [initial_value] * num_periods
        change_end = num_periods if change_duration is None else min(change_start + change_duration, num_periods)
        for i in range(change_start, change_end):
            values[i] = final_value
        return values


class ResultExtractor:
    """调度结果提取器"""

    @staticmethod
    def _extract(model, name: str, plant_ids: Optional[List[str]] = None) -> pd.DataFrame:
        """
        将 (电站, 时段) 索引的变量提取为表格（行为时段，列为电站）
        """
        var = model.component(name)
        if var is None:
            return pd.DataFrame()

        data: Dict[str, Dict[int, Optional[float]]] = {}
        for (plant_id, t) in var:
            if plant_ids is not None and plant_id not in plant_ids:
                continue
            data.setdefault(plant_id, {})[t] = value(var[plant_id, t], exception=False)

        frame = pd.DataFrame(data)
        frame.index.name = "period"
        return frame.sort_index()

    @staticmethod
    def extract_storage(model, plant_ids: Optional[List[str]] = None) -> pd.DataFrame:
        """库容过程 (hm³)"""
        return ResultExtractor._extract(model, "s", plant_ids)

    @staticmethod
    def extract_outflow(model, plant_ids: Optional[List[str]] = None) -> pd.DataFrame:
        """出库流量过程 (m³/s)"""
        return ResultExtractor._extract(model, "q", plant_ids)

    @staticmethod
    def extract_spill(model, plant_ids: Optional[List[str]] = None) -> pd.DataFrame:
        """弃水流量过程 (m³/s)"""
        return ResultExtractor._extract(model, "spill", plant_ids)

    @staticmethod
    def extract_generation(model, plant_ids: Optional[List[str]] = None) -> pd.DataFrame:
        """发电出力过程 (MW)"""
        return ResultExtractor._extract(model, "gh", plant_ids)


# 各求解器的时间上限参数名
_TIME_LIMIT_OPTIONS = {
    "glpk": "tmlim",
    "cbc": "sec",
    "highs": "time_limit",
    "appsi_highs": "time_limit",
    "gurobi": "TimeLimit",
    "cplex": "timelimit",
    "scip": "limits/time",
    "ipopt": "max_cpu_time",
}


def solver_options_for(
    solver_name: str,
    options: Optional[Dict[str, Any]] = None,
    timeout: Optional[float] = None,
) -> Dict[str, Any]:
    """
    组装求解器选项，把时间上限写成对应求解器的参数名

    已显式给出的同名选项优先；未知求解器不写时间上限。
    """
    merged = dict(options or {})
    key = _TIME_LIMIT_OPTIONS.get(solver_name)
    if timeout is not None and key is not None:
        merged.setdefault(key, int(timeout) if solver_name == "glpk" else timeout)
    return merged


class SolverManager:
    """调度模型求解器"""

    def __init__(
        self,
        solver_name: Optional[str] = None,
        solver_options: Optional[Dict[str, Any]] = None,
        timeout: Optional[float] = None,
    ):
        """
        Args:
            solver_name: 求解器名称（None使用 OPTIMIZATION_DEFAULTS.default_solver）
            solver_options: 求解器选项（None使用默认选项）
            timeout: 求解时间上限（秒，None使用 OPTIMIZATION_DEFAULTS.solver_timeout）

        Raises:
            SolverError: 求解器不可用
        """
        self.solver_name = solver_name or OPTIMIZATION_DEFAULTS.default_solver
        if solver_options is None:
            solver_options = OPTIMIZATION_DEFAULTS.solver_options
        if timeout is None:
            timeout = OPTIMIZATION_DEFAULTS.solver_timeout
        self.solver_options = solver_options_for(self.solver_name, solver_options, timeout)

        self.solver = SolverFactory(self.solver_name)
        if not self.solver.available(exception_flag=False):
            raise SolverError(f"求解器 {self.solver_name} 不可用")

    def solve(self, model, tee: bool = False, raise_on_infeasible: bool = True) -> FeasibilityResult:
        """
        求解模型并核对水电约束残差

        Args:
            model: 已构建水量平衡约束的 Pyomo 模型
            tee: 是否显示求解器输出
            raise_on_infeasible: 不可行时是否抛出异常

        Returns:
            FeasibilityResult: 终止条件与残差核对结果

        Raises:
            SolverError: 求解出错，或 raise_on_infeasible 时调度不可行
        """
        logger.info("Solving hydro schedule", solver=self.solver_name, options=self.solver_options)
        try:
            results = self.solver.solve(model, tee=tee, options=self.solver_options)
        except Exception as e:
            raise SolverError(f"求解过程发生错误: {str(e)}") from e

        check = check_solver_results(results, model)
        logger.info("Hydro schedule solved", status=check.status.value, termination=check.details.get("termination"))
        if not check.is_feasible and raise_on_infeasible:
            raise SolverError(f"求解失败: {check.message}\n详细信息: {check.details}")
        return check


__all__ = [
    'TimeSeriesGenerator',
    'ResultExtractor',
    'SolverManager',
    'solver_options_for',
]
