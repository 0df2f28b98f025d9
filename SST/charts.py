"""
图表模块 - 进度曲线与预测图导出 (matplotlib Agg)
"""
import logging
from typing import List, Optional

import matplotlib
matplotlib.use('Agg')
from matplotlib.backends.backend_agg import FigureCanvasAgg
from matplotlib.figure import Figure

from models import MeasurementSnapshot, ProjectionStep
from analytics import build_chart_data, build_consistency_data
from utils import convert_unit

logger = logging.getLogger(__name__)

CHART_COLORS = {
    'length': '#ef4444',
    'girth': '#3b82f6',
    'projection': '#8b5cf6',
    'delta': '#10b981',
    'text_muted': '#94a3b8',
    'border': '#cbd5e1',
}


def _empty(ax, message: str):
    ax.text(0.5, 0.5, message,
            horizontalalignment='center', verticalalignment='center',
            transform=ax.transAxes, color=CHART_COLORS['text_muted'])


def draw_progress_chart(ax, snapshots: List[MeasurementSnapshot], unit: str = 'cm'):
    """绘制长度/周长随时间的折线"""
    data = build_chart_data(snapshots, unit)
    if not data:
        _empty(ax, "暂无测量数据")
        return

    for axis, label in (('length', "长度"), ('girth', "周长")):
        points = [(i, d[axis]) for i, d in enumerate(data) if d[axis] is not None]
        if points:
            xs, ys = zip(*points)
            ax.plot(xs, ys, marker='o', linewidth=1.5, label=label, color=CHART_COLORS[axis])

    ax.set_xticks(range(len(data)))
    ax.set_xticklabels([d['date'] for d in data], rotation=45, ha='right', fontsize=7)
    ax.set_ylabel(f'测量值 ({unit})', fontsize=9)
    ax.grid(True, axis='y', alpha=0.3, linestyle='--', color=CHART_COLORS['border'])
    ax.legend(fontsize=8)


def draw_consistency_chart(ax, snapshots: List[MeasurementSnapshot]):
    """相邻记录的变化量柱状图"""
    data = build_consistency_data(snapshots)
    if not data:
        _empty(ax, "至少需要两条记录")
        return

    ax.bar(range(len(data)), [d['delta'] for d in data],
           color=CHART_COLORS['delta'], alpha=0.8, edgecolor='white')
    ax.set_xticks(range(len(data)))
    ax.set_xticklabels([d['date'] for d in data], rotation=45, ha='right', fontsize=7)
    ax.set_ylabel('变化量 (cm)', fontsize=9)
    ax.grid(True, axis='y', alpha=0.3, linestyle='--', color=CHART_COLORS['border'])


def draw_projection_chart(ax, steps: List[ProjectionStep], unit: str = 'cm'):
    """预测值与 ±10% 区间"""
    if not steps:
        _empty(ax, "暂无预测数据")
        return

    weeks = [s.week for s in steps]
    values = [convert_unit(s.predicted_value, 'cm', unit) for s in steps]
    lows = [convert_unit(s.range_low, 'cm', unit) for s in steps]
    highs = [convert_unit(s.range_high, 'cm', unit) for s in steps]

    ax.fill_between(weeks, lows, highs, alpha=0.2, color=CHART_COLORS['projection'])
    ax.plot(weeks, values, marker='o', linewidth=1.5, color=CHART_COLORS['projection'])
    ax.set_xlabel('周', fontsize=9)
    ax.set_ylabel(f'预测值 ({unit})', fontsize=9)
    ax.grid(True, alpha=0.3, linestyle='--', color=CHART_COLORS['border'])


def export_charts(file_path: str, snapshots: List[MeasurementSnapshot],
                  steps: Optional[List[ProjectionStep]] = None, unit: str = 'cm',
                  dpi: int = 100) -> str:
    """把进度、变化量和预测图导出为一张图片"""
    panels = 3 if steps is not None else 2
    fig = Figure(figsize=(6, 3.2 * panels), dpi=dpi)
    FigureCanvasAgg(fig)

    axes = [fig.add_subplot(panels, 1, i + 1) for i in range(panels)]
    draw_progress_chart(axes[0], snapshots, unit)
    axes[0].set_title('测量趋势', fontsize=10)
    draw_consistency_chart(axes[1], snapshots)
    axes[1].set_title('记录变化', fontsize=10)
    if steps is not None:
        draw_projection_chart(axes[2], steps, unit)
        axes[2].set_title('12周预测', fontsize=10)

    fig.tight_layout()
    fig.savefig(file_path)
    logger.info(f"图表已导出到: {file_path}")
    return file_path
