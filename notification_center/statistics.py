"""
投递统计

按投递记录自身的时间戳分桶，乱序到达的记录也会落到正确的桶里。
"""

import math
import threading
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Dict, Iterable, List, Optional, Tuple

from shared.models import DeliveryOutcome


class Period(str, Enum):
    """统计周期"""
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    YEARLY = "yearly"


class Dimension(str, Enum):
    """统计维度"""
    ALL = "all"
    CHANNEL = "channel"
    SYSTEM = "system"
    MESSAGE_TYPE = "messageType"


UNKNOWN = "unknown"


def bucket_key(timestamp: datetime, period: Period) -> str:
    """计算时间戳所在的桶"""
    if period == Period.DAILY:
        return timestamp.strftime("%Y-%m-%d")
    if period == Period.WEEKLY:
        year, week, _ = timestamp.isocalendar()
        return f"{year}-W{week:02d}"
    if period == Period.MONTHLY:
        return timestamp.strftime("%Y-%m")
    return timestamp.strftime("%Y")


def success_rate(success: int, total: int) -> int:
    """成功率，四舍五入到整数百分比"""
    if total <= 0:
        return 0
    return int(math.floor(100.0 * success / total + 0.5))


@dataclass
class BucketStats:
    """单个桶的统计"""
    period: Period
    bucket: str
    dimension: Dimension
    value: str
    total: int = 0
    success: int = 0
    failed: int = 0

    @property
    def success_rate(self) -> int:
        return success_rate(self.success, self.total)

    def to_dict(self) -> Dict[str, object]:
        return {
            "period": self.period.value,
            "bucket": self.bucket,
            "dimension": self.dimension.value,
            "value": self.value,
            "total": self.total,
            "success": self.success,
            "failed": self.failed,
            "success_rate": self.success_rate,
        }


class StatisticsAggregator:
    """投递统计汇总"""

    def __init__(self):
        self._stats: Dict[Tuple[Period, str, Dimension, str], BucketStats] = {}
        self._lock = threading.Lock()

    @staticmethod
    def _dimension_values(outcome: DeliveryOutcome) -> List[Tuple[Dimension, str]]:
        return [
            (Dimension.ALL, "*"),
            (Dimension.CHANNEL, outcome.channel_id or UNKNOWN),
            (Dimension.SYSTEM, outcome.source_system or UNKNOWN),
            (Dimension.MESSAGE_TYPE, outcome.message_type or UNKNOWN),
        ]

    def record(self, outcome: DeliveryOutcome) -> bool:
        """
        记录一条投递记录，只统计发送尝试的结果

        Returns:
            bool: 是否计入统计
        """
        if not outcome.state.is_attempt_result:
            return False

        with self._lock:
            for period in Period:
                key = bucket_key(outcome.timestamp, period)
                for dimension, value in self._dimension_values(outcome):
                    stats_key = (period, key, dimension, value)
                    stats = self._stats.get(stats_key)
                    if stats is None:
                        stats = BucketStats(period, key, dimension, value)
                        self._stats[stats_key] = stats
                    stats.total += 1
                    if outcome.success:
                        stats.success += 1
                    else:
                        stats.failed += 1
        return True

    def record_many(self, outcomes: Iterable[DeliveryOutcome]) -> int:
        return sum(1 for outcome in outcomes if self.record(outcome))

    def summary(
        self,
        period: Period = Period.DAILY,
        start: Optional[str] = None,
        end: Optional[str] = None
    ) -> List[BucketStats]:
        """
        按周期汇总的时间序列

        Args:
            period: 统计周期
            start: 起始桶（含）
            end: 结束桶（含）

        Returns:
            List[BucketStats]: 按桶排序的统计
        """
        with self._lock:
            rows = [
                BucketStats(**vars(stats)) for (p, _, dimension, _), stats in self._stats.items()
                if p == period and dimension == Dimension.ALL
            ]
        if start is not None:
            rows = [row for row in rows if row.bucket >= start]
        if end is not None:
            rows = [row for row in rows if row.bucket <= end]
        return sorted(rows, key=lambda row: row.bucket)

    def breakdown(
        self,
        dimension: Dimension,
        period: Period = Period.DAILY,
        bucket: Optional[str] = None
    ) -> List[BucketStats]:
        """
        按维度分布统计；未指定桶时合并该周期下的所有桶

        Returns:
            List[BucketStats]: 按总量降序排列
        """
        merged: Dict[str, BucketStats] = {}
        with self._lock:
            for (p, key, dim, value), stats in self._stats.items():
                if p != period or dim != dimension:
                    continue
                if bucket is not None and key != bucket:
                    continue
                row = merged.get(value)
                if row is None:
                    row = BucketStats(period, bucket or "*", dimension, value)
                    merged[value] = row
                row.total += stats.total
                row.success += stats.success
                row.failed += stats.failed
        return sorted(merged.values(), key=lambda row: (-row.total, row.value))

    def totals(self) -> BucketStats:
        """全部历史的合计"""
        total = BucketStats(Period.YEARLY, "*", Dimension.ALL, "*")
        for row in self.summary(Period.YEARLY):
            total.total += row.total
            total.success += row.success
            total.failed += row.failed
        return total

    def clear(self):
        with self._lock:
            self._stats.clear()
