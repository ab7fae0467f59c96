"""
配置验证模块：验证电站字典配置的完整性和正确性
"""
from typing import Any, Dict, List

from .exceptions import ConfigurationError, DuplicatePlantError, ValidationError


_REQUIRED_FIELDS = {
    "reservoir": ("max_volume_hm3", "min_volume_hm3", "initial_volume_hm3", "max_outflow_m3_per_s"),
    "run_of_river": ("max_flow_m3_per_s",),
    "pumped_storage": (
        "upper_max_volume_hm3",
        "upper_min_volume_hm3",
        "upper_initial_volume_hm3",
        "lower_max_volume_hm3",
        "lower_min_volume_hm3",
        "lower_initial_volume_hm3",
        "max_outflow_m3_per_s",
        "max_pumping_m3_per_s",
    ),
}


def validate_plant_config(specs: List[Dict[str, Any]]) -> None:
    """
    验证电站配置列表

    Args:
        specs: 电站配置字典列表

    Raises:
        ConfigurationError: 配置缺失或格式错误
        DuplicatePlantError: 电站ID重复
        ValidationError: 验证失败
    """
    if not isinstance(specs, list):
        raise ConfigurationError("电站配置必须是列表类型")

    plant_ids = set()
    for idx, spec in enumerate(specs):
        if not isinstance(spec, dict):
            raise ConfigurationError(f"电站 #{idx} 必须是字典类型")

        if "id" not in spec:
            raise ConfigurationError(f"电站 #{idx} 缺少 'id' 字段")

        plant_id = spec["id"]
        if plant_id in plant_ids:
            raise DuplicatePlantError(f"电站ID重复: {plant_id}")
        plant_ids.add(plant_id)

        kind = spec.get("kind", "reservoir")
        if kind not in _REQUIRED_FIELDS:
            raise ValidationError(
                f"电站 '{plant_id}' 的类型 '{kind}' 无效。"
                f"有效类型: {', '.join(sorted(_REQUIRED_FIELDS))}"
            )

        missing = [name for name in _REQUIRED_FIELDS[kind] if name not in spec]
        if missing:
            raise ConfigurationError(
                f"电站 '{plant_id}' 缺少必需字段: {', '.join(missing)}"
            )

        for name, raw in spec.items():
            if name.endswith(("_hm3", "_m3_per_s", "_mw", "_hours")) and raw is not None:
                try:
                    float(raw)
                except (TypeError, ValueError):
                    raise ValidationError(
                        f"电站 '{plant_id}' 的 {name} 值 '{raw}' 不是有效数字"
                    )


__all__ = ["validate_plant_config"]
