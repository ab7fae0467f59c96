"""
测试电站数据结构、配置验证、来水数据与默认参数
"""
import sys
from pathlib import Path
import pytest

sys.path.insert(0, str(Path(__file__).parent.parent))

import numpy as np
import pandas as pd

from HydroSched.defaults import WATER_BALANCE_DEFAULTS, get_default, update_defaults
from HydroSched.exceptions import (
    ConfigurationError,
    DataError,
    DuplicatePlantError,
    TimeSeriesError,
    ValidationError,
)
from HydroSched.inflow import InflowData, resolve_inflow
from HydroSched.plant_schema import (
    PumpedStorageHydro,
    ReservoirHydro,
    RunOfRiverHydro,
    plants_from_config,
)
from HydroSched.validation import validate_plant_config


class TestPlantRecords:
    """测试电站参数检查"""

    def test_reservoir_properties(self):
        plant = ReservoirHydro(
            id="R1",
            max_volume_hm3=100.0,
            min_volume_hm3=10.0,
            initial_volume_hm3=50.0,
            max_outflow_m3_per_s=500.0,
            min_outflow_m3_per_s=20.0,
        )
        assert plant.kind == "reservoir"
        assert plant.has_storage
        assert plant.volume_bounds == (10.0, 100.0)
        assert plant.flow_bounds == (20.0, 500.0)

    def test_run_of_river_has_no_storage(self):
        plant = RunOfRiverHydro(id="ROR", max_flow_m3_per_s=200.0, min_flow_m3_per_s=5.0)

        assert not plant.has_storage
        assert plant.volume_bounds is None
        assert plant.flow_bounds == (5.0, 200.0)

    def test_pumped_storage_uses_upper_reservoir(self):
        plant = PumpedStorageHydro(
            id="PS",
            upper_max_volume_hm3=20.0,
            upper_min_volume_hm3=2.0,
            upper_initial_volume_hm3=12.0,
            lower_max_volume_hm3=30.0,
            lower_min_volume_hm3=3.0,
            lower_initial_volume_hm3=15.0,
            max_outflow_m3_per_s=150.0,
            max_pumping_m3_per_s=120.0,
        )
        assert plant.has_storage
        assert plant.initial_volume_hm3 == 12.0
        assert plant.volume_bounds == (2.0, 20.0)
        assert plant.flow_bounds == (0.0, 150.0)

    def test_downstream_requires_travel_time(self):
        """下游电站与滞时必须同时给定"""
        with pytest.raises(ValidationError, match="同时设置"):
            RunOfRiverHydro(id="A", max_flow_m3_per_s=100.0, downstream_plant_id="B")

        with pytest.raises(ValidationError, match="同时设置"):
            RunOfRiverHydro(id="A", max_flow_m3_per_s=100.0, water_travel_time_hours=1.0)

    def test_negative_travel_time(self):
        with pytest.raises(ValidationError, match="不能为负"):
            RunOfRiverHydro(
                id="A", max_flow_m3_per_s=100.0, downstream_plant_id="B", water_travel_time_hours=-1.0
            )

    def test_initial_volume_out_of_range(self):
        with pytest.raises(ValidationError, match="initial_volume_hm3"):
            ReservoirHydro(
                id="R",
                max_volume_hm3=100.0,
                min_volume_hm3=10.0,
                initial_volume_hm3=5.0,
                max_outflow_m3_per_s=500.0,
            )

    def test_min_greater_than_max(self):
        with pytest.raises(ValidationError, match="大于"):
            RunOfRiverHydro(id="A", max_flow_m3_per_s=10.0, min_flow_m3_per_s=20.0)

    def test_empty_id(self):
        with pytest.raises(ValidationError, match="非空字符串"):
            RunOfRiverHydro(id=" ", max_flow_m3_per_s=10.0)

    def test_records_are_frozen(self):
        plant = RunOfRiverHydro(id="A", max_flow_m3_per_s=10.0)
        with pytest.raises(AttributeError):
            plant.max_flow_m3_per_s = 20.0


class TestPlantConfig:
    """测试字典配置"""

    @pytest.fixture
    def specs(self):
        return [
            {
                "id": "UP",
                "kind": "reservoir",
                "max_volume_hm3": 200.0,
                "min_volume_hm3": 20.0,
                "initial_volume_hm3": 120.0,
                "max_outflow_m3_per_s": 400.0,
                "downstream_plant_id": "MID",
                "water_travel_time_hours": 2.0,
            },
            {
                "id": "MID",
                "kind": "run_of_river",
                "max_flow_m3_per_s": 450.0,
                "downstream_plant_id": "LOW",
                "water_travel_time_hours": 1.0,
            },
            {
                "id": "LOW",
                "max_volume_hm3": 300.0,
                "min_volume_hm3": 30.0,
                "initial_volume_hm3": 150.0,
                "max_outflow_m3_per_s": 600.0,
            },
        ]

    def test_plants_from_config(self, specs):
        plants = plants_from_config(specs)

        assert [p.id for p in plants] == ["UP", "MID", "LOW"]
        assert isinstance(plants[1], RunOfRiverHydro)
        assert isinstance(plants[2], ReservoirHydro)
        assert plants[0].downstream_plant_id == "MID"

    def test_duplicate_id(self, specs):
        specs[2]["id"] = "UP"
        with pytest.raises(DuplicatePlantError, match="UP"):
            validate_plant_config(specs)

    def test_invalid_kind(self, specs):
        specs[0]["kind"] = "thermal"
        with pytest.raises(ValidationError, match="无效"):
            validate_plant_config(specs)

    def test_missing_required_field(self, specs):
        del specs[1]["max_flow_m3_per_s"]
        with pytest.raises(ConfigurationError, match="max_flow_m3_per_s"):
            validate_plant_config(specs)

    def test_missing_id(self, specs):
        del specs[0]["id"]
        with pytest.raises(ConfigurationError, match="缺少 'id'"):
            plants_from_config(specs)

    def test_non_numeric_value(self, specs):
        specs[2]["max_volume_hm3"] = "large"
        with pytest.raises(ValidationError, match="不是有效数字"):
            validate_plant_config(specs)

    def test_invalid_types(self):
        with pytest.raises(ConfigurationError, match="列表类型"):
            validate_plant_config({"id": "A"})
        with pytest.raises(ConfigurationError, match="字典类型"):
            validate_plant_config(["A"])


class TestInflowData:
    """测试来水数据"""

    def test_lookup(self):
        inflow = InflowData({"A": [10.0, 20.0, 30.0]})

        assert inflow.get_inflow("A", 1) == 10.0
        assert inflow("A", 3) == 30.0
        assert inflow.num_periods == 3
        assert inflow.plant_ids == ["A"]

    def test_missing_lookups_return_zero(self):
        inflow = InflowData({"A": [10.0, 20.0]})

        assert inflow.get_inflow("B", 1) == 0.0
        assert inflow.get_inflow("A", 0) == 0.0
        assert inflow.get_inflow("A", 3) == 0.0

    def test_first_period_offset(self):
        inflow = InflowData({"A": [5.0, 6.0]}, first_period=3)

        assert inflow.get_inflow("A", 3) == 5.0
        assert inflow.get_inflow("A", 1) == 0.0

    def test_invalid_series(self):
        with pytest.raises(DataError, match="负值"):
            InflowData({"A": [1.0, -1.0]})
        with pytest.raises(DataError, match="缺失值"):
            InflowData({"A": [1.0, np.nan]})
        with pytest.raises(TimeSeriesError):
            InflowData({"A": [[1.0, 2.0], [3.0, 4.0]]})

    def test_dataframe_round_trip(self):
        frame = pd.DataFrame({"A": [1.0, 2.0], "B": [3.0, 4.0]}, index=[1, 2])
        inflow = InflowData.from_dataframe(frame)

        assert inflow.get_inflow("B", 2) == 4.0
        pd.testing.assert_frame_equal(
            inflow.to_dataframe(), frame.rename_axis("period"), check_index_type=False
        )

    def test_resolve_inflow_sources(self):
        """统一查询接口支持多种来水形式"""
        assert resolve_inflow(None, "A", 1) == 0.0
        assert resolve_inflow({"A": [7.0, 8.0]}, "A", 2) == 8.0
        assert resolve_inflow({"A": [7.0, 8.0]}, "A", 3) == 0.0
        assert resolve_inflow(lambda plant_id, t: 2.0 * t, "A", 4) == 8.0
        assert resolve_inflow(InflowData({"A": [1.5]}), "A", 1) == 1.5


class TestDefaults:
    """测试默认参数"""

    def test_get_default(self):
        assert get_default("water_balance", "m3s_to_hm3_per_hour") == 0.0036
        assert get_default("water_balance", "nonexistent", "fallback") == "fallback"
        assert get_default("unknown", "x") is None

    def test_update_defaults(self):
        original = WATER_BALANCE_DEFAULTS.include_spill
        try:
            update_defaults("water_balance", include_spill=False)
            assert get_default("water_balance", "include_spill") is False
        finally:
            update_defaults("water_balance", include_spill=original)

    def test_update_unknown(self):
        with pytest.raises(ValueError):
            update_defaults("unknown", x=1)
        with pytest.raises(ValueError):
            update_defaults("water_balance", nonexistent=1)
