"""
梯级水电站数据结构定义。

电站分为三类：带调节库容的水库电站、径流式电站和抽水蓄能电站。
三类电站共享 ``has_storage`` 能力标识，约束生成器只依据该能力分支，
不依赖具体类型。电站之间只通过 ID 引用下游电站，不持有对象引用。

配置层使用 TypedDict 描述字典形式的输入，便于从 JSON/YAML 加载，
并为 IDE/静态分析提供类型提示。
"""

from dataclasses import dataclass
from typing import Dict, List, Literal, Optional, TypedDict, Union

from .exceptions import ValidationError


PlantKind = Literal["reservoir", "run_of_river", "pumped_storage"]


def _check_id(value: str, field_name: str) -> None:
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f"{field_name} 必须是非空字符串")


def _check_non_negative(value: float, field_name: str, plant_id: str) -> None:
    if value < 0:
        raise ValidationError(f"电站 '{plant_id}' 的 {field_name} ({value}) 不能为负")


def _check_min_leq_max(lower: float, upper: float, lower_name: str, upper_name: str, plant_id: str) -> None:
    if lower > upper:
        raise ValidationError(
            f"电站 '{plant_id}' 的 {lower_name} ({lower}) 大于 {upper_name} ({upper})"
        )


def _check_initial(initial: float, lower: float, upper: float, field_name: str, plant_id: str) -> None:
    if initial < lower or initial > upper:
        raise ValidationError(
            f"电站 '{plant_id}' 的 {field_name} ({initial}) 不在 [{lower}, {upper}] 范围内"
        )


def _check_cascade_link(plant_id: str, downstream_plant_id: Optional[str], travel_time: Optional[float]) -> None:
    """下游电站ID与水流滞时必须同时给定或同时缺省"""
    if (downstream_plant_id is None) != (travel_time is None):
        raise ValidationError(
            f"电站 '{plant_id}' 的 downstream_plant_id 与 water_travel_time_hours 必须同时设置或同时为空"
        )
    if downstream_plant_id is not None:
        _check_id(downstream_plant_id, "downstream_plant_id")
        _check_non_negative(travel_time, "water_travel_time_hours", plant_id)


@dataclass(frozen=True)
class ReservoirHydro:
    """
    水库电站（具有调节库容）。

    库容单位 hm³（百万立方米），流量单位 m³/s。
    """

    id: str
    max_volume_hm3: float
    min_volume_hm3: float
    initial_volume_hm3: float
    max_outflow_m3_per_s: float
    min_outflow_m3_per_s: float = 0.0
    max_generation_mw: float = 0.0
    min_generation_mw: float = 0.0
    efficiency: float = 0.9
    water_value_per_hm3: float = 0.0
    must_run: bool = False
    name: str = ""
    downstream_plant_id: Optional[str] = None
    water_travel_time_hours: Optional[float] = None

    kind = "reservoir"

    def __post_init__(self):
        _check_id(self.id, "id")
        for field_name in ("max_volume_hm3", "min_volume_hm3", "initial_volume_hm3",
                           "max_outflow_m3_per_s", "min_outflow_m3_per_s",
                           "max_generation_mw", "min_generation_mw", "water_value_per_hm3"):
            _check_non_negative(getattr(self, field_name), field_name, self.id)
        _check_min_leq_max(self.min_volume_hm3, self.max_volume_hm3, "min_volume_hm3", "max_volume_hm3", self.id)
        _check_initial(self.initial_volume_hm3, self.min_volume_hm3, self.max_volume_hm3, "initial_volume_hm3", self.id)
        _check_min_leq_max(self.min_outflow_m3_per_s, self.max_outflow_m3_per_s,
                           "min_outflow_m3_per_s", "max_outflow_m3_per_s", self.id)
        _check_min_leq_max(self.min_generation_mw, self.max_generation_mw,
                           "min_generation_mw", "max_generation_mw", self.id)
        if not 0.0 <= self.efficiency <= 1.0:
            raise ValidationError(f"电站 '{self.id}' 的 efficiency ({self.efficiency}) 必须在 [0, 1] 范围内")
        _check_cascade_link(self.id, self.downstream_plant_id, self.water_travel_time_hours)

    @property
    def has_storage(self) -> bool:
        return True

    @property
    def flow_bounds(self):
        return (self.min_outflow_m3_per_s, self.max_outflow_m3_per_s)

    @property
    def volume_bounds(self):
        return (self.min_volume_hm3, self.max_volume_hm3)


@dataclass(frozen=True)
class RunOfRiverHydro:
    """径流式电站（无调节库容），出流即发电引用流量"""

    id: str
    max_flow_m3_per_s: float
    min_flow_m3_per_s: float = 0.0
    max_generation_mw: float = 0.0
    min_generation_mw: float = 0.0
    efficiency: float = 0.9
    must_run: bool = False
    name: str = ""
    downstream_plant_id: Optional[str] = None
    water_travel_time_hours: Optional[float] = None

    kind = "run_of_river"

    def __post_init__(self):
        _check_id(self.id, "id")
        for field_name in ("max_flow_m3_per_s", "min_flow_m3_per_s", "max_generation_mw", "min_generation_mw"):
            _check_non_negative(getattr(self, field_name), field_name, self.id)
        _check_min_leq_max(self.min_flow_m3_per_s, self.max_flow_m3_per_s,
                           "min_flow_m3_per_s", "max_flow_m3_per_s", self.id)
        _check_min_leq_max(self.min_generation_mw, self.max_generation_mw,
                           "min_generation_mw", "max_generation_mw", self.id)
        if not 0.0 <= self.efficiency <= 1.0:
            raise ValidationError(f"电站 '{self.id}' 的 efficiency ({self.efficiency}) 必须在 [0, 1] 范围内")
        _check_cascade_link(self.id, self.downstream_plant_id, self.water_travel_time_hours)

    @property
    def has_storage(self) -> bool:
        return False

    @property
    def flow_bounds(self):
        return (self.min_flow_m3_per_s, self.max_flow_m3_per_s)

    @property
    def volume_bounds(self):
        return None


@dataclass(frozen=True)
class PumpedStorageHydro:
    """
    抽水蓄能电站。

    上库库容作为库容状态参与水量平衡；抽水流量（m³/s）回补上库。
    """

    id: str
    upper_max_volume_hm3: float
    upper_min_volume_hm3: float
    upper_initial_volume_hm3: float
    lower_max_volume_hm3: float
    lower_min_volume_hm3: float
    lower_initial_volume_hm3: float
    max_outflow_m3_per_s: float
    max_pumping_m3_per_s: float
    max_generation_mw: float = 0.0
    min_generation_mw: float = 0.0
    generation_efficiency: float = 0.9
    pumping_efficiency: float = 0.85
    must_run: bool = False
    name: str = ""
    downstream_plant_id: Optional[str] = None
    water_travel_time_hours: Optional[float] = None

    kind = "pumped_storage"

    def __post_init__(self):
        _check_id(self.id, "id")
        for field_name in ("upper_max_volume_hm3", "upper_min_volume_hm3", "upper_initial_volume_hm3",
                           "lower_max_volume_hm3", "lower_min_volume_hm3", "lower_initial_volume_hm3",
                           "max_outflow_m3_per_s", "max_pumping_m3_per_s",
                           "max_generation_mw", "min_generation_mw"):
            _check_non_negative(getattr(self, field_name), field_name, self.id)
        _check_min_leq_max(self.upper_min_volume_hm3, self.upper_max_volume_hm3,
                           "upper_min_volume_hm3", "upper_max_volume_hm3", self.id)
        _check_initial(self.upper_initial_volume_hm3, self.upper_min_volume_hm3, self.upper_max_volume_hm3,
                       "upper_initial_volume_hm3", self.id)
        _check_min_leq_max(self.lower_min_volume_hm3, self.lower_max_volume_hm3,
                           "lower_min_volume_hm3", "lower_max_volume_hm3", self.id)
        _check_initial(self.lower_initial_volume_hm3, self.lower_min_volume_hm3, self.lower_max_volume_hm3,
                       "lower_initial_volume_hm3", self.id)
        _check_min_leq_max(self.min_generation_mw, self.max_generation_mw,
                           "min_generation_mw", "max_generation_mw", self.id)
        for field_name in ("generation_efficiency", "pumping_efficiency"):
            eff = getattr(self, field_name)
            if not 0.0 <= eff <= 1.0:
                raise ValidationError(f"电站 '{self.id}' 的 {field_name} ({eff}) 必须在 [0, 1] 范围内")
        _check_cascade_link(self.id, self.downstream_plant_id, self.water_travel_time_hours)

    @property
    def has_storage(self) -> bool:
        return True

    # 上库即调节库容
    @property
    def max_volume_hm3(self) -> float:
        return self.upper_max_volume_hm3

    @property
    def min_volume_hm3(self) -> float:
        return self.upper_min_volume_hm3

    @property
    def initial_volume_hm3(self) -> float:
        return self.upper_initial_volume_hm3

    @property
    def flow_bounds(self):
        return (0.0, self.max_outflow_m3_per_s)

    @property
    def volume_bounds(self):
        return (self.upper_min_volume_hm3, self.upper_max_volume_hm3)


HydroPlant = Union[ReservoirHydro, RunOfRiverHydro, PumpedStorageHydro]

PLANT_CLASSES: Dict[str, type] = {
    "reservoir": ReservoirHydro,
    "run_of_river": RunOfRiverHydro,
    "pumped_storage": PumpedStorageHydro,
}


class PlantSpec(TypedDict, total=False):
    """
    电站字典配置。

    - id: 全局唯一标识；
    - kind: 电站类型（reservoir / run_of_river / pumped_storage）；
    - downstream_plant_id: 下游电站 id，缺省表示出流离开系统；
    - water_travel_time_hours: 至下游电站的水流滞时（小时）；
    - 其余键与对应电站类的字段同名。
    """

    id: str
    kind: PlantKind
    name: str
    downstream_plant_id: Optional[str]
    water_travel_time_hours: Optional[float]
    max_volume_hm3: float
    min_volume_hm3: float
    initial_volume_hm3: float
    max_outflow_m3_per_s: float
    min_outflow_m3_per_s: float
    max_flow_m3_per_s: float
    min_flow_m3_per_s: float
    max_generation_mw: float
    min_generation_mw: float
    efficiency: float


def plants_from_config(specs: List[PlantSpec], validate: bool = True) -> List[HydroPlant]:
    """
    根据字典配置构建电站列表

    Args:
        specs: 电站配置列表
        validate: 是否先进行配置验证（默认True）

    Returns:
        电站对象列表，顺序与输入一致

    Raises:
        ConfigurationError: 配置缺失或格式错误
        ValidationError: 物理参数不合法
    """
    if validate:
        from .validation import validate_plant_config

        validate_plant_config(specs)

    plants: List[HydroPlant] = []
    for spec in specs:
        params = {k: v for k, v in spec.items() if k != "kind"}
        plant_cls = PLANT_CLASSES[spec.get("kind", "reservoir")]
        plants.append(plant_cls(**params))
    return plants


__all__ = [
    "PlantKind",
    "ReservoirHydro",
    "RunOfRiverHydro",
    "PumpedStorageHydro",
    "HydroPlant",
    "PLANT_CLASSES",
    "PlantSpec",
    "plants_from_config",
]
