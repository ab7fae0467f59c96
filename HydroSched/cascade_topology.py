"""
梯级拓扑构建模块。

根据各电站的下游电站引用（downstream_plant_id）和水流滞时推断流域的汇流拓扑：

1. 建立 ID 索引，检测重复 ID；
2. 由下游引用反推上游映射 {下游电站: [(上游电站, 滞时小时数), ...]}，
   未知的下游引用只给出警告，该电站按末级电站处理；
3. 三色深度优先遍历检测环路（自环同样视为环），发现即抛出 TopologyError；
4. 按上游优先顺序（Kahn 入度法）计算各电站的深度；
5. 生成拓扑序、源头电站与末级电站列表。

每个电站至多有一个下游，因此流域是一组汇向末级电站的树（森林）。
"""

import warnings
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Dict, List, Mapping, Optional, Sequence, Tuple

import pandas as pd
import structlog

from .exceptions import DuplicatePlantError, TopologyError

logger = structlog.get_logger()

UpstreamLink = Tuple[str, float]

_WHITE, _GRAY, _BLACK = 0, 1, 2


@dataclass(frozen=True)
class CascadeTopology:
    """
    梯级拓扑（构建后不可变）

    Attributes:
        upstream_map: {电站: ((上游电站, 滞时小时), ...)}，只包含有上游来水的电站
        downstream_map: {电站: 下游电站}，只包含下游引用可解析的电站
        depths: {电站: 深度}，源头电站深度为0
        topological_order: 上游优先的电站顺序
        headwaters: 无上游来水的电站
        terminals: 出流离开系统的电站（无下游或下游未知）
        warnings: 构建过程中的诊断信息
    """

    upstream_map: Mapping[str, Tuple[UpstreamLink, ...]]
    downstream_map: Mapping[str, str]
    depths: Mapping[str, int]
    topological_order: Tuple[str, ...]
    headwaters: Tuple[str, ...]
    terminals: Tuple[str, ...]
    warnings: Tuple[str, ...] = field(default=())

    def get_upstream_plants(self, plant_id: str) -> Tuple[UpstreamLink, ...]:
        """上游电站及滞时；源头电站或未知电站返回空元组"""
        return self.upstream_map.get(plant_id, ())

    def get_downstream_plant(self, plant_id: str) -> Optional[str]:
        return self.downstream_map.get(plant_id)

    def find_headwaters(self) -> List[str]:
        return list(self.headwaters)

    def find_terminal_plants(self) -> List[str]:
        return list(self.terminals)

    def __contains__(self, plant_id) -> bool:
        return plant_id in self.depths

    def __len__(self) -> int:
        return len(self.topological_order)

    def to_frame(self) -> pd.DataFrame:
        """
        以表格形式汇总拓扑，便于报表与诊断

        Returns:
            以电站ID为索引的 DataFrame，按拓扑序排列
        """
        headwaters = set(self.headwaters)
        terminals = set(self.terminals)
        rows = []
        for plant_id in self.topological_order:
            upstream = self.get_upstream_plants(plant_id)
            rows.append({
                "plant_id": plant_id,
                "depth": self.depths[plant_id],
                "downstream": self.downstream_map.get(plant_id),
                "num_upstream": len(upstream),
                "upstream": ", ".join(u for u, _ in upstream),
                "is_headwater": plant_id in headwaters,
                "is_terminal": plant_id in terminals,
            })
        columns = ["plant_id", "depth", "downstream", "num_upstream", "upstream", "is_headwater", "is_terminal"]
        return pd.DataFrame(rows, columns=columns).set_index("plant_id")


def _index_plants(plants: Sequence) -> Dict[str, object]:
    lookup: Dict[str, object] = {}
    for plant in plants:
        if plant.id in lookup:
            raise DuplicatePlantError(f"电站ID重复: {plant.id}")
        lookup[plant.id] = plant
    return lookup


def _find_cycle(order: Sequence[str], downstream_map: Mapping[str, str]) -> Optional[List[str]]:
    """
    三色深度优先遍历，沿已解析的下游边检测环路

    Returns:
        环路路径（首尾为同一电站），无环返回 None
    """
    color = {plant_id: _WHITE for plant_id in order}

    for start in order:
        if color[start] != _WHITE:
            continue

        path: List[str] = []
        current: Optional[str] = start
        while current is not None and color[current] == _WHITE:
            color[current] = _GRAY
            path.append(current)
            current = downstream_map.get(current)

        if current is not None and color[current] == _GRAY:
            return path[path.index(current):] + [current]

        for plant_id in path:
            color[plant_id] = _BLACK

    return None


def build_cascade_topology(plants: Sequence) -> CascadeTopology:
    """
    根据电站列表构建梯级拓扑

    Args:
        plants: 电站对象序列，需提供 id、downstream_plant_id、water_travel_time_hours

    Returns:
        CascadeTopology: 拓扑信息

    Raises:
        DuplicatePlantError: 电站ID重复
        TopologyError: 存在环状梯级（含自环），消息中给出完整环路

    Example:
        >>> topology = build_cascade_topology(plants)
        >>> for plant_id in topology.topological_order:
        ...     upstream = topology.get_upstream_plants(plant_id)
    """
    lookup = _index_plants(plants)
    order = [plant.id for plant in plants]
    position = {plant_id: idx for idx, plant_id in enumerate(order)}

    upstream_lists: Dict[str, List[UpstreamLink]] = {}
    downstream_map: Dict[str, str] = {}
    diagnostics: List[str] = []

    for plant in plants:
        downstream_id = plant.downstream_plant_id
        if not downstream_id:
            continue
        if downstream_id in lookup:
            delay = float(plant.water_travel_time_hours or 0.0)
            upstream_lists.setdefault(downstream_id, []).append((plant.id, delay))
            downstream_map[plant.id] = downstream_id
        else:
            message = (
                f"未知的下游电站引用: 电站 '{plant.id}' 指向不存在的电站 '{downstream_id}'，"
                f"按末级电站处理"
            )
            diagnostics.append(message)
            logger.warning("Unknown downstream reference", plant_id=plant.id, downstream_id=downstream_id)
            warnings.warn(message)

    cycle = _find_cycle(order, downstream_map)
    if cycle is not None:
        raise TopologyError(f"检测到环状梯级: {' -> '.join(cycle)}")

    # Kahn 入度法：电站的全部上游处理完毕后才确定其深度
    pending = {plant_id: len(upstream_lists.get(plant_id, ())) for plant_id in order}
    depths: Dict[str, int] = {}
    queue = [plant_id for plant_id in order if pending[plant_id] == 0]
    for plant_id in queue:
        depths[plant_id] = 0
    head = 0
    while head < len(queue):
        current = queue[head]
        head += 1
        downstream_id = downstream_map.get(current)
        if downstream_id is None:
            continue
        depths[downstream_id] = max(depths.get(downstream_id, 0), depths[current] + 1)
        pending[downstream_id] -= 1
        if pending[downstream_id] == 0:
            queue.append(downstream_id)

    # 同深度电站保持输入顺序
    topological_order = tuple(sorted(order, key=lambda p: (depths[p], position[p])))
    headwaters = tuple(p for p in order if p not in upstream_lists)
    terminals = tuple(p for p in order if p not in downstream_map)

    upstream_map = MappingProxyType({
        plant_id: tuple(links)
        for plant_id, links in sorted(upstream_lists.items(), key=lambda item: position[item[0]])
    })

    logger.info(
        "Cascade topology built",
        num_plants=len(order),
        num_links=len(downstream_map),
        max_depth=max(depths.values(), default=0),
    )

    return CascadeTopology(
        upstream_map=upstream_map,
        downstream_map=MappingProxyType(downstream_map),
        depths=MappingProxyType(depths),
        topological_order=topological_order,
        headwaters=headwaters,
        terminals=terminals,
        warnings=tuple(diagnostics),
    )


def get_upstream_plants(topology: CascadeTopology, plant_id: str) -> Tuple[UpstreamLink, ...]:
    """获取给定电站的上游电站及滞时，未知电站返回空元组"""
    return topology.get_upstream_plants(plant_id)


def find_headwaters(topology: CascadeTopology) -> List[str]:
    """获取源头电站（无上游来水）"""
    return topology.find_headwaters()


def find_terminal_plants(topology: CascadeTopology) -> List[str]:
    """获取末级电站（出流离开系统）"""
    return topology.find_terminal_plants()


__all__ = [
    "CascadeTopology",
    "build_cascade_topology",
    "get_upstream_plants",
    "find_headwaters",
    "find_terminal_plants",
]
