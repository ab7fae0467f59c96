"""
默认配置参数管理模块

此模块集中管理所有默认参数，避免硬编码。
所有默认值都可以通过运行时参数覆盖。
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Optional


@dataclass
class WaterBalanceDefaults:
    """水量平衡约束默认参数"""

    # 1 m³/s × 3600 s = 3600 m³ = 0.0036 hm³（每个时段按1小时计）
    m3s_to_hm3_per_hour: float = 0.0036
    period_hours: float = 1.0  # 时段长度（小时）

    include_cascade: bool = True  # 是否计入上游电站的滞时出流
    include_spill: bool = True  # 是否计入弃水
    limit_run_of_river_flow: bool = False  # 径流式电站流量不超过可用来水


@dataclass
class VariableDefaults:
    """决策变量默认参数"""

    storage_lower_bound: float = 0.0  # 库容变量下界（hm³）
    bound_storage: bool = False  # 是否直接以死库容/最大库容作为库容变量上下界
    spill_upper_bound: Any = None  # 弃水变量上界（m³/s），None表示无上界


@dataclass
class OptimizationDefaults:
    """优化模型默认参数"""

    # 求解器设置
    default_solver: str = "glpk"  # 默认求解器
    solver_timeout: Optional[float] = 300  # 求解时间上限（秒），None表示不限制
    solver_options: Dict[str, Any] = field(default_factory=dict)  # 求解器选项

    feasibility_tolerance: float = 1e-6  # 求解后核对约束残差的容差


# 全局默认配置实例
WATER_BALANCE_DEFAULTS = WaterBalanceDefaults()
VARIABLE_DEFAULTS = VariableDefaults()
OPTIMIZATION_DEFAULTS = OptimizationDefaults()


def _category_map() -> Dict[str, Any]:
    return {
        'water_balance': WATER_BALANCE_DEFAULTS,
        'variables': VARIABLE_DEFAULTS,
        'optimization': OPTIMIZATION_DEFAULTS,
    }


def get_default(category: str, param: str, default=None):
    """
    获取默认参数值

    Args:
        category: 参数类别 (water_balance, variables, optimization)
        param: 参数名称
        default: 如果未找到返回的默认值

    Returns:
        参数值
    """
    config = _category_map().get(category)
    if config is None:
        return default

    return getattr(config, param, default)


def update_defaults(category: str, **kwargs):
    """
    更新默认参数

    Args:
        category: 参数类别
        **kwargs: 要更新的参数
    """
    config = _category_map().get(category)
    if config is None:
        raise ValueError(f"Unknown category: {category}")

    for key, value in kwargs.items():
        if hasattr(config, key):
            setattr(config, key, value)
        else:
            raise ValueError(f"Unknown parameter {key} in category {category}")


__all__ = [
    'WaterBalanceDefaults',
    'VariableDefaults',
    'OptimizationDefaults',
    'WATER_BALANCE_DEFAULTS',
    'VARIABLE_DEFAULTS',
    'OPTIMIZATION_DEFAULTS',
    'get_default',
    'update_defaults',
]
