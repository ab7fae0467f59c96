"""
自定义异常类：用于梯级水电调度模型的错误处理
"""


class HydroSchedError(Exception):
    """水电调度模型基础异常类"""

    pass


class ConfigurationError(HydroSchedError):
    """配置错误"""

    pass


class ValidationError(HydroSchedError):
    """验证错误"""

    pass


class TopologyError(ValidationError):
    """梯级拓扑错误（例如环状水力联系）"""

    pass


class DuplicatePlantError(ValidationError):
    """电站ID重复"""

    pass


class TimeSeriesError(HydroSchedError):
    """时间序列错误"""

    pass


class SolverError(HydroSchedError):
    """求解器错误"""

    pass


class DataError(HydroSchedError):
    """数据错误"""

    pass
