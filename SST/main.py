"""
测量进度跟踪 - 程序入口

读取数据目录中的快照，输出文本进度报告，可选导出图表。
"""
import argparse
import logging
import os
import sys
from datetime import datetime

import matplotlib
matplotlib.use('Agg')
import matplotlib.pyplot as plt

from storage import JsonRecordStore, JsonKeyValueStore
from tracker import ProgressTracker, ProgressReport
from analytics import get_statistics
from errors import InsufficientData, MeasurementError
from utils import BASE_UNIT, TIME_RANGES, UNIT_LABELS, convert_unit

# 日志配置
logging.basicConfig(level=logging.INFO, format='%(asctime)s [%(levelname)s] %(message)s')
logger = logging.getLogger(__name__)

# 配置matplotlib中文字体
plt.rcParams['font.sans-serif'] = ['Microsoft YaHei', 'DejaVu Sans']
plt.rcParams['axes.unicode_minus'] = False


def build_tracker(data_dir: str) -> ProgressTracker:
    records = JsonRecordStore(os.path.join(data_dir, 'snapshots'))
    kv_store = JsonKeyValueStore(os.path.join(data_dir, 'store.json'))
    return ProgressTracker(records, kv_store)


def format_report(tracker: ProgressTracker, report: ProgressReport, range_key: str) -> str:
    """生成文本报告"""
    unit = tracker.settings.display_unit
    summary = report.summary
    metrics = summary.metrics
    snapshots = tracker.snapshots(range_key)

    def show(value_cm: float) -> str:
        return f"{convert_unit(value_cm, BASE_UNIT, unit):.2f} {UNIT_LABELS[unit]}"

    text = f"""
========================================
    测量进度报告
========================================
生成时间: {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}
时间范围: {range_key}

----------------------------------------
    统计摘要
----------------------------------------
快照数量: {summary.total_snapshots}
含测量的快照: {summary.total_measurements}
增长次数: {summary.growth_steps}
平均长度增长: {show(summary.average_length_growth)}
平均周长增长: {show(summary.average_girth_growth)}
当前连续: {summary.current_streak}
最长连续: {summary.longest_streak}
距首次记录: {summary.days_since_first} 天

  - 一致性: {metrics.consistency:.1f}%
  - 动量: {metrics.momentum:.3f}%
  - 波动: {metrics.volatility:.3f}
  - 趋势强度: {metrics.trend_strength:.3f}
"""
    for axis, label in (('length', "长度"), ('girth', "周长")):
        stats = get_statistics(snapshots, axis)
        if not stats:
            continue
        text += f"""
{label}统计 (所选范围):
  - 平均值: {show(stats['mean'])}
  - 标准差: {show(stats['std'])}
  - 最小值: {show(stats['min'])}
  - 最大值: {show(stats['max'])}
"""

    text += """
----------------------------------------
    目标与成就
----------------------------------------
"""
    for goal in report.goals:
        text += f"  - [{goal.status.value}] {goal.description}: {goal.progress * 100:.1f}%\n"
    for achievement in report.achievements:
        mark = '✓' if achievement.unlocked else ' '
        text += f"  [{mark}] {achievement.title} ({achievement.progress:.2f}/{achievement.max_progress:.2f})\n"
    for insight in report.insights:
        text += f"  * {insight.title}: {insight.description}\n"
    for notice in report.notices():
        text += f"  ! {notice.title}: {notice.description}\n"

    text += """
========================================
            报告结束
========================================
"""
    return text


def main(argv=None):
    """主函数"""
    parser = argparse.ArgumentParser(description="测量进度报告")
    parser.add_argument('data_dir', help="数据目录 (包含 snapshots/ 与 store.json)")
    parser.add_argument('--range', dest='range_key', choices=list(TIME_RANGES), default=None,
                        help="统计时间范围，默认使用设置中的值")
    parser.add_argument('--unit', choices=list(UNIT_LABELS), default=None, help="显示单位")
    parser.add_argument('--chart', default=None, help="导出图表的 PNG 路径")
    parser.add_argument('--output', default=None, help="报告输出文件，默认打印到终端")
    args = parser.parse_args(argv)

    try:
        tracker = build_tracker(args.data_dir)
        if args.unit:
            tracker.update_settings(display_unit=args.unit)
        range_key = args.range_key or tracker.settings.time_range

        report = tracker.refresh()
        text = format_report(tracker, report, range_key)

        if args.output:
            with open(args.output, 'w', encoding='utf-8') as f:
                f.write(text)
            logger.info(f"报告已导出到: {args.output}")
        else:
            print(text)

        if args.chart:
            from charts import export_charts
            try:
                steps = tracker.projection('length')
            except InsufficientData as e:
                logger.warning(f"跳过预测图: {e}")
                steps = None
            export_charts(args.chart, tracker.snapshots(range_key), steps,
                          unit=tracker.settings.display_unit)
    except MeasurementError as e:
        logger.error(f"生成报告失败: {e}")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
