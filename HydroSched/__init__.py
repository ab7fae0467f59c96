"""
梯级水电站日前调度建模包
"""

# 导入异常类（不依赖外部库）
from .exceptions import (
    HydroSchedError,
    ConfigurationError,
    ValidationError,
    TopologyError,
    DuplicatePlantError,
    TimeSeriesError,
    SolverError,
    DataError,
)
from .defaults import (
    WATER_BALANCE_DEFAULTS,
    VARIABLE_DEFAULTS,
    OPTIMIZATION_DEFAULTS,
    get_default,
    update_defaults,
)
from .plant_schema import (
    ReservoirHydro,
    RunOfRiverHydro,
    PumpedStorageHydro,
    PlantSpec,
    plants_from_config,
)
from .validation import validate_plant_config
from .cascade_topology import (
    CascadeTopology,
    build_cascade_topology,
    get_upstream_plants,
    find_headwaters,
    find_terminal_plants,
)
from .inflow import InflowData

__all__ = [
    # 异常
    "HydroSchedError",
    "ConfigurationError",
    "ValidationError",
    "TopologyError",
    "DuplicatePlantError",
    "TimeSeriesError",
    "SolverError",
    "DataError",
    # 默认配置
    "WATER_BALANCE_DEFAULTS",
    "VARIABLE_DEFAULTS",
    "OPTIMIZATION_DEFAULTS",
    "get_default",
    "update_defaults",
    # 电站
    "ReservoirHydro",
    "RunOfRiverHydro",
    "PumpedStorageHydro",
    "PlantSpec",
    "plants_from_config",
    "validate_plant_config",
    # 梯级拓扑
    "CascadeTopology",
    "build_cascade_topology",
    "get_upstream_plants",
    "find_headwaters",
    "find_terminal_plants",
    # 来水
    "InflowData",
]

# 依赖 pyomo 的建模模块
from .variables import create_hydro_variables, create_spill_variables
from .water_balance import (
    HydroWaterBalanceConstraint,
    ConstraintBuildResult,
    build_water_balance,
)
from .feasibility import (
    FeasibilityStatus,
    FeasibilityResult,
    check_solver_results,
    check_constraint_violations,
    check_plant_feasibility,
)
from .utils import TimeSeriesGenerator, ResultExtractor, SolverManager, solver_options_for

__all__.extend([
    "create_hydro_variables",
    "create_spill_variables",
    "HydroWaterBalanceConstraint",
    "ConstraintBuildResult",
    "build_water_balance",
    "FeasibilityStatus",
    "FeasibilityResult",
    "check_solver_results",
    "check_constraint_violations",
    "check_plant_feasibility",
    "TimeSeriesGenerator",
    "ResultExtractor",
    "SolverManager",
    "solver_options_for",
])
