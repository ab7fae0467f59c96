"""
可视化工具：库容过程与梯级拓扑示意图，支持中文字体
"""
import platform
from collections import defaultdict

import matplotlib.pyplot as plt
from matplotlib.font_manager import fontManager

_FONT_CANDIDATES = {
    "Windows": ["SimHei", "Microsoft YaHei"],
    "Darwin": ["STHeiti", "Arial Unicode MS"],
}
_LINUX_FONTS = ["WenQuanYi Micro Hei", "Noto Sans CJK SC", "Droid Sans Fallback"]


def configure_chinese_font():
    """
    配置 matplotlib 中文字体，找不到中文字体时回退到 DejaVu Sans

    Returns:
        选中的字体名称
    """
    candidates = _FONT_CANDIDATES.get(platform.system(), _LINUX_FONTS) + ["DejaVu Sans"]
    available = {f.name for f in fontManager.ttflist}
    selected = next((font for font in candidates if font in available), "sans-serif")

    plt.rcParams["font.sans-serif"] = [selected] + candidates
    plt.rcParams["axes.unicode_minus"] = False  # 正常显示负号
    return selected


def plot_storage_trajectories(storage, plants=None, title="水库库容过程", save_path=None):
    """
    绘制库容过程

    Args:
        storage: ResultExtractor.extract_storage 返回的表格（行为时段，列为电站）
        plants: 电站列表，给定时绘制死库容/最大库容参考线
        title: 图表标题
        save_path: 保存路径（None则不保存）

    Returns:
        fig, ax
    """
    configure_chinese_font()
    fig, ax = plt.subplots(figsize=(12, 6))

    plant_map = {p.id: p for p in plants or []}
    for plant_id in storage.columns:
        line, = ax.plot(storage.index, storage[plant_id], label=plant_id, marker="o", markersize=3)
        plant = plant_map.get(plant_id)
        if plant is not None and plant.volume_bounds is not None:
            lower, upper = plant.volume_bounds
            ax.axhline(lower, color=line.get_color(), linestyle=":", alpha=0.5)
            ax.axhline(upper, color=line.get_color(), linestyle="--", alpha=0.5)

    ax.set_xlabel("时段（小时）")
    ax.set_ylabel("库容（hm³）")
    ax.set_title(title, fontweight="bold")
    ax.legend(loc="best")
    ax.grid(True, alpha=0.3)
    fig.tight_layout()

    if save_path:
        fig.savefig(save_path, dpi=150, bbox_inches="tight")

    return fig, ax


def plot_cascade_topology(topology, title="梯级拓扑", save_path=None):
    """
    按深度分层绘制梯级拓扑，箭头由上游指向下游并标注滞时

    Returns:
        fig, ax
    """
    configure_chinese_font()

    layers = defaultdict(list)
    for plant_id in topology.topological_order:
        layers[topology.depths[plant_id]].append(plant_id)

    position = {}
    for depth, plant_ids in layers.items():
        for rank, plant_id in enumerate(plant_ids):
            position[plant_id] = (rank - (len(plant_ids) - 1) / 2.0, -depth)

    fig, ax = plt.subplots(figsize=(8, 2 + 1.5 * len(layers)))
    for downstream_id, links in topology.upstream_map.items():
        x1, y1 = position[downstream_id]
        for upstream_id, delay in links:
            x0, y0 = position[upstream_id]
            ax.annotate("", xy=(x1, y1), xytext=(x0, y0), arrowprops={"arrowstyle": "->", "alpha": 0.6})
            ax.text((x0 + x1) / 2, (y0 + y1) / 2, f"{delay:g} h", fontsize=8, ha="center")

    terminals = set(topology.terminals)
    for plant_id, (x, y) in position.items():
        color = "tab:red" if plant_id in terminals else "tab:blue"
        ax.scatter([x], [y], s=400, color=color, zorder=3)
        ax.text(x, y, plant_id, ha="center", va="center", color="white", fontsize=8, zorder=4)

    ax.set_title(title, fontweight="bold")
    ax.axis("off")
    fig.tight_layout()

    if save_path:
        fig.savefig(save_path, dpi=150, bbox_inches="tight")

    return fig, ax


__all__ = ["configure_chinese_font", "plot_storage_trajectories", "plot_cascade_topology"]
