"""
水电决策变量管理

在 Pyomo ConcreteModel 上创建按 (电站, 时段) 索引的决策变量：

- s[h, t]: 时段末库容 (hm³)，仅有调节库容的电站
- q[h, t]: 发电引用流量/出库流量 (m³/s)
- gh[h, t]: 发电出力 (MW)
- pump[h, t]: 抽水流量 (m³/s)，仅抽水蓄能电站
- spill[h, t]: 弃水流量 (m³/s)，按需创建
"""

from typing import Iterable, List, Optional, Sequence

import structlog
from pyomo.environ import NonNegativeReals, Set, Var

from .defaults import VARIABLE_DEFAULTS
from .exceptions import ConfigurationError, TimeSeriesError

logger = structlog.get_logger()

STORAGE = "s"
OUTFLOW = "q"
GENERATION = "gh"
PUMP = "pump"
SPILL = "spill"


def normalize_periods(periods: Iterable[int]) -> List[int]:
    """
    检查时段为从1开始计数的连续整数区间

    Raises:
        TimeSeriesError: 时段为空、非整数、不连续或小于1
    """
    result = list(periods)
    if not result:
        raise TimeSeriesError("时段列表不能为空")
    if any(isinstance(t, bool) or not isinstance(t, int) for t in result):
        raise TimeSeriesError("时段必须是整数")
    if result[0] < 1:
        raise TimeSeriesError(f"时段编号从1开始，收到 {result[0]}")
    if result != list(range(result[0], result[0] + len(result))):
        raise TimeSeriesError("时段必须是连续递增的整数区间")
    return result


def has_variable_family(model, name: str) -> bool:
    """模型中是否存在名为 name 的变量族"""
    component = model.component(name)
    return component is not None and component.ctype is Var


def get_model_periods(model) -> List[int]:
    if model.component("T") is None:
        return []
    return list(model.T)


def _ensure_time_set(model, periods: List[int]) -> None:
    if model.component("T") is None:
        model.T = Set(initialize=periods, ordered=True, doc="调度时段")
        return
    existing = list(model.T)
    if existing != periods:
        raise ConfigurationError(
            f"模型已有时段集合 T={existing[:1]}..{existing[-1:]}，与请求的时段不一致"
        )


def create_hydro_variables(
    model,
    plants: Sequence,
    periods: Iterable[int],
    *,
    plant_ids: Optional[Iterable[str]] = None,
    bound_storage: Optional[bool] = None,
):
    """
    创建水电决策变量

    Args:
        model: Pyomo 模型
        plants: 电站列表
        periods: 时段（从1开始的连续整数）
        plant_ids: 只为指定电站创建变量（None表示全部）
        bound_storage: 是否以库容上下限作为库容变量边界（None使用默认配置）

    Returns:
        model（便于链式调用）

    Raises:
        ConfigurationError: 指定的电站不存在或变量已存在
        TimeSeriesError: 时段不合法
    """
    periods = normalize_periods(periods)
    if bound_storage is None:
        bound_storage = VARIABLE_DEFAULTS.bound_storage

    if plant_ids is not None:
        wanted = list(plant_ids)
        known = {p.id for p in plants}
        unknown = [pid for pid in wanted if pid not in known]
        if unknown:
            raise ConfigurationError(f"电站不存在: {', '.join(unknown)}")
        wanted_set = set(wanted)
        plants = [p for p in plants if p.id in wanted_set]

    for name in (STORAGE, OUTFLOW, GENERATION, PUMP):
        if model.component(name) is not None:
            raise ConfigurationError(f"模型中已存在组件 '{name}'")

    _ensure_time_set(model, periods)

    plant_map = {p.id: p for p in plants}
    storage_ids = [p.id for p in plants if p.has_storage]
    pump_ids = [p.id for p in plants if p.kind == "pumped_storage"]

    model.H = Set(initialize=list(plant_map), ordered=True, doc="水电站集合")
    model.H_storage = Set(initialize=storage_ids, ordered=True, doc="有调节库容的电站")
    model.H_pump = Set(initialize=pump_ids, ordered=True, doc="抽水蓄能电站")

    def _storage_bounds(m, h, t):
        if bound_storage:
            return plant_map[h].volume_bounds
        return (VARIABLE_DEFAULTS.storage_lower_bound, None)

    def _flow_bounds(m, h, t):
        return plant_map[h].flow_bounds

    def _generation_bounds(m, h, t):
        plant = plant_map[h]
        return (plant.min_generation_mw, plant.max_generation_mw)

    def _pump_bounds(m, h, t):
        return (0.0, plant_map[h].max_pumping_m3_per_s)

    model.s = Var(model.H_storage, model.T, within=NonNegativeReals, bounds=_storage_bounds, doc="库容 (hm³)")
    model.q = Var(model.H, model.T, within=NonNegativeReals, bounds=_flow_bounds, doc="出库流量 (m³/s)")
    model.gh = Var(model.H, model.T, within=NonNegativeReals, bounds=_generation_bounds, doc="发电出力 (MW)")
    model.pump = Var(model.H_pump, model.T, within=NonNegativeReals, bounds=_pump_bounds, doc="抽水流量 (m³/s)")

    logger.info(
        "Created hydro variables",
        num_plants=len(plant_map),
        num_storage_plants=len(storage_ids),
        num_periods=len(periods),
    )
    return model


def create_spill_variables(model, plant_ids: Optional[Iterable[str]] = None, periods: Optional[Iterable[int]] = None):
    """
    创建弃水变量 spill[h, t] (m³/s)

    默认只为有调节库容的电站（H_storage）创建，时段沿用模型的 T。

    Raises:
        ConfigurationError: 无电站集合或弃水变量已存在
    """
    if model.component(SPILL) is not None:
        raise ConfigurationError(f"模型中已存在组件 '{SPILL}'")

    if plant_ids is None:
        if model.component("H_storage") is None:
            raise ConfigurationError("模型缺少电站集合 H_storage，请先创建水电变量")
        plant_ids = list(model.H_storage)
    else:
        plant_ids = list(plant_ids)

    if periods is not None:
        _ensure_time_set(model, normalize_periods(periods))
    elif model.component("T") is None:
        raise ConfigurationError("模型缺少时段集合 T")

    upper = VARIABLE_DEFAULTS.spill_upper_bound
    model.H_spill = Set(initialize=plant_ids, ordered=True, doc="允许弃水的电站")
    model.spill = Var(model.H_spill, model.T, within=NonNegativeReals, bounds=(0.0, upper), doc="弃水流量 (m³/s)")

    logger.info("Created spill variables", num_plants=len(plant_ids), num_periods=len(model.T))
    return model


__all__ = [
    "STORAGE",
    "OUTFLOW",
    "GENERATION",
    "PUMP",
    "SPILL",
    "normalize_periods",
    "has_variable_family",
    "get_model_periods",
    "create_hydro_variables",
    "create_spill_variables",
]
