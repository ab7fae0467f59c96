"""
天然来水数据

按电站ID与时段（从1开始的整数）查询天然来水流量（m³/s）。
未知电站或超出范围的时段返回 0.0，不抛出异常。
"""

from typing import Dict, Iterable, List, Mapping, Optional

import numpy as np
import pandas as pd

from .exceptions import DataError, TimeSeriesError


class InflowData:
    """电站逐时段天然来水（m³/s）"""

    def __init__(self, inflows: Mapping[str, Iterable[float]], first_period: int = 1):
        """
        Args:
            inflows: {电站ID: 逐时段来水序列}
            first_period: 序列第一个值对应的时段编号
        """
        self.first_period = int(first_period)
        self.inflows: Dict[str, np.ndarray] = {}
        for plant_id, values in inflows.items():
            series = np.asarray(list(values), dtype=float)
            if series.ndim != 1:
                raise TimeSeriesError(f"电站 '{plant_id}' 的来水序列必须是一维序列")
            if np.isnan(series).any():
                raise DataError(f"电站 '{plant_id}' 的来水序列包含缺失值")
            if (series < 0).any():
                raise DataError(f"电站 '{plant_id}' 的来水序列包含负值")
            self.inflows[plant_id] = series

    @property
    def num_periods(self) -> int:
        return max((len(v) for v in self.inflows.values()), default=0)

    @property
    def plant_ids(self) -> List[str]:
        return list(self.inflows.keys())

    def get_inflow(self, plant_id: str, t: int) -> float:
        series = self.inflows.get(plant_id)
        if series is None:
            return 0.0
        idx = int(t) - self.first_period
        if idx < 0 or idx >= len(series):
            return 0.0
        return float(series[idx])

    def __call__(self, plant_id: str, t: int) -> float:
        return self.get_inflow(plant_id, t)

    @classmethod
    def from_series(cls, series: Mapping[str, Iterable[float]], first_period: int = 1) -> "InflowData":
        return cls(series, first_period=first_period)

    @classmethod
    def from_dataframe(cls, frame: pd.DataFrame, first_period: Optional[int] = None) -> "InflowData":
        """
        从 DataFrame 构建来水数据

        Args:
            frame: 每列一个电站、每行一个时段的表格
            first_period: 第一行对应的时段编号；None 时使用整数索引的首个值，
                非整数索引时默认为1

        Returns:
            InflowData
        """
        if first_period is None:
            if pd.api.types.is_integer_dtype(frame.index) and len(frame.index) > 0:
                first_period = int(frame.index[0])
            else:
                first_period = 1
        data = {str(col): frame[col].to_numpy(dtype=float) for col in frame.columns}
        return cls(data, first_period=first_period)

    def to_dataframe(self) -> pd.DataFrame:
        periods = range(self.first_period, self.first_period + self.num_periods)
        return pd.DataFrame(
            {plant_id: [self.get_inflow(plant_id, t) for t in periods] for plant_id in self.inflows},
            index=pd.Index(list(periods), name="period"),
        )

    def __repr__(self):
        return f"InflowData(plants={len(self.inflows)}, periods={self.num_periods})"


def resolve_inflow(inflow_data, plant_id: str, t: int) -> float:
    """
    统一的来水查询接口

    inflow_data 可以是 None（全部为0）、InflowData、
    {电站: 序列} 字典（按1开始编号）或可调用对象 f(plant_id, t)。
    """
    if inflow_data is None:
        return 0.0
    if isinstance(inflow_data, InflowData):
        return inflow_data.get_inflow(plant_id, t)
    if callable(inflow_data):
        return float(inflow_data(plant_id, t))
    series = inflow_data.get(plant_id)
    if series is None:
        return 0.0
    idx = int(t) - 1
    if idx < 0 or idx >= len(series):
        return 0.0
    return float(series[idx])


__all__ = ["InflowData", "resolve_inflow"]
