"""
渠道注册表：渠道配置、可用性筛选、限流计数与健康指标
"""

import logging
import threading
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Deque, Dict, Iterable, List, Mapping, Optional

from shared.models import Channel, ChannelStatus, ChannelUpdate, MonitorMetrics
from .exceptions import ChannelNotFound, RateLimited


logger = logging.getLogger(__name__)


class RateLimiter:
    """固定窗口限流计数器，每个渠道每个窗口一个计数"""

    def __init__(self, window_seconds: int = 60):
        self.window_seconds = window_seconds
        self._counters: Dict[str, Dict[int, int]] = {}

    def window_key(self, now: datetime) -> int:
        return int(now.timestamp()) // self.window_seconds

    def count(self, channel_id: str, now: datetime) -> int:
        return self._counters.get(channel_id, {}).get(self.window_key(now), 0)

    def allows(self, channel_id: str, limit: int, now: datetime) -> bool:
        return self.count(channel_id, now) < limit

    def acquire(self, channel_id: str, limit: int, now: datetime) -> bool:
        """检查并占用一个发送名额，调用方负责加锁"""
        key = self.window_key(now)
        channel_counter = self._counters.setdefault(channel_id, {})

        # 清理旧窗口的计数
        for old_key in [k for k in channel_counter if k < key]:
            del channel_counter[old_key]

        current = channel_counter.get(key, 0)
        if current >= limit:
            return False
        channel_counter[key] = current + 1
        return True

    def reset(self, channel_id: Optional[str] = None):
        if channel_id is None:
            self._counters.clear()
        else:
            self._counters.pop(channel_id, None)


@dataclass
class MetricWindow:
    """最近N个样本的滑动窗口，增量维护合计值"""
    size: int
    samples: Deque[tuple] = field(default_factory=deque)
    success_total: int = 0
    reachable_total: int = 0
    response_time_total: float = 0.0

    def add(self, success: bool, reachable: bool, response_time_ms: float):
        if len(self.samples) >= self.size:
            old_success, old_reachable, old_time = self.samples.popleft()
            self.success_total -= int(old_success)
            self.reachable_total -= int(old_reachable)
            self.response_time_total -= old_time
        self.samples.append((success, reachable, response_time_ms))
        self.success_total += int(success)
        self.reachable_total += int(reachable)
        self.response_time_total += response_time_ms

    def metrics(self) -> MonitorMetrics:
        count = len(self.samples)
        if count == 0:
            return MonitorMetrics()
        return MonitorMetrics(
            availability=round(100.0 * self.reachable_total / count, 2),
            success_rate=round(100.0 * self.success_total / count, 2),
            avg_response_time_ms=round(max(self.response_time_total, 0.0) / count, 2),
            sample_count=count,
        )


class ChannelRegistry:
    """渠道注册表"""

    def __init__(
        self,
        channels: Iterable[Channel] = (),
        rate_window_seconds: int = 60,
        metrics_window_size: int = 100
    ):
        self._channels: Dict[str, Channel] = {}
        self._windows: Dict[str, MetricWindow] = {}
        self._lock = threading.Lock()
        self.rate_limiter = RateLimiter(rate_window_seconds)
        self.metrics_window_size = metrics_window_size
        for channel in channels:
            self.register(channel)

    def load(self, channels: Iterable[Channel]):
        """用持久化数据替换全部渠道"""
        with self._lock:
            self._channels = {channel.id: channel.model_copy(deep=True) for channel in channels}
            self._windows = {}
            self.rate_limiter.reset()
        logger.info(f"加载通知渠道: {len(self._channels)} 个")

    def register(self, channel: Channel) -> Channel:
        with self._lock:
            self._channels[channel.id] = channel.model_copy(deep=True)
            self._windows.pop(channel.id, None)
        logger.info(f"注册通知渠道: {channel.id} ({channel.type})")
        return channel

    def remove(self, channel_id: str):
        with self._lock:
            if channel_id not in self._channels:
                raise ChannelNotFound(channel_id)
            del self._channels[channel_id]
            self._windows.pop(channel_id, None)
            self.rate_limiter.reset(channel_id)
        logger.info(f"移除通知渠道: {channel_id}")

    def get(self, channel_id: str) -> Channel:
        """获取渠道快照"""
        with self._lock:
            channel = self._channels.get(channel_id)
            if channel is None:
                raise ChannelNotFound(channel_id)
            return channel.model_copy(deep=True)

    def list_channels(self) -> List[Channel]:
        with self._lock:
            channels = [channel.model_copy(deep=True) for channel in self._channels.values()]
        return sorted(channels, key=lambda c: (c.priority, c.id))

    def update(self, channel_id: str, changes: ChannelUpdate) -> Channel:
        """更新渠道配置"""
        with self._lock:
            channel = self._channels.get(channel_id)
            if channel is None:
                raise ChannelNotFound(channel_id)
            data = channel.model_dump()
            data.update(changes.model_dump(exclude_unset=True))
            data["updated_at"] = datetime.utcnow()
            updated = Channel.model_validate(data)
            self._channels[channel_id] = updated
            return updated.model_copy(deep=True)

    def _set_status(self, channel_id: str, status: ChannelStatus) -> Channel:
        with self._lock:
            channel = self._channels.get(channel_id)
            if channel is None:
                raise ChannelNotFound(channel_id)
            channel.status = status
            channel.updated_at = datetime.utcnow()
            snapshot = channel.model_copy(deep=True)
        logger.info(f"渠道 {snapshot.name} 状态变更为: {status.value}")
        return snapshot

    def enable(self, channel_id: str) -> Channel:
        return self._set_status(channel_id, ChannelStatus.ENABLED)

    def disable(self, channel_id: str) -> Channel:
        return self._set_status(channel_id, ChannelStatus.DISABLED)

    def list_eligible(self, standard_fields: Mapping[str, Any], now: datetime) -> List[Channel]:
        """
        列出当前可用的渠道

        Args:
            standard_fields: 通知的标准字段（由调度器按渠道映射进一步校验）
            now: 当前时间

        Returns:
            List[Channel]: 按优先级升序排列的渠道快照
        """
        eligible = []
        with self._lock:
            for channel in self._channels.values():
                if not channel.is_enabled:
                    continue
                if not channel.available_time.is_available(now):
                    logger.debug(f"渠道 {channel.id} 不在可用时间窗口内")
                    continue
                if not self.rate_limiter.allows(channel.id, channel.rate_limit, now):
                    logger.debug(f"渠道 {channel.id} 已达到限流 {channel.rate_limit}")
                    continue
                eligible.append(channel.model_copy(deep=True))
        return sorted(eligible, key=lambda c: (c.priority, c.id))

    def list_by_type(self, channel_type: str) -> List[Channel]:
        channel_type = channel_type.strip().lower()
        return [channel for channel in self.list_channels() if channel.type == channel_type]

    def is_eligible(self, channel_id: str, now: datetime) -> bool:
        """渠道是否仍然启用且在可用时间窗口内，渠道已移除时返回False"""
        with self._lock:
            channel = self._channels.get(channel_id)
            return (
                channel is not None
                and channel.is_enabled
                and channel.available_time.is_available(now)
            )

    def try_acquire(self, channel_id: str, now: datetime) -> bool:
        """原子地检查限流并占用一个发送名额"""
        with self._lock:
            channel = self._channels.get(channel_id)
            if channel is None:
                raise ChannelNotFound(channel_id)
            return self.rate_limiter.acquire(channel_id, channel.rate_limit, now)

    def acquire(self, channel_id: str, now: datetime):
        """
        占用发送名额

        Raises:
            ChannelNotFound: 渠道不存在
            RateLimited: 当前窗口已达到限流
        """
        with self._lock:
            channel = self._channels.get(channel_id)
            if channel is None:
                raise ChannelNotFound(channel_id)
            if not self.rate_limiter.acquire(channel_id, channel.rate_limit, now):
                raise RateLimited(channel_id, channel.rate_limit)

    def sends_in_window(self, channel_id: str, now: datetime) -> int:
        with self._lock:
            return self.rate_limiter.count(channel_id, now)

    def record_metric_sample(
        self,
        channel_id: str,
        success: bool,
        response_time_ms: float,
        reachable: Optional[bool] = None
    ) -> MonitorMetrics:
        """
        记录一次发送样本并刷新渠道健康指标

        Args:
            channel_id: 渠道ID
            success: 是否发送成功
            response_time_ms: 响应时间
            reachable: 渠道是否可达，默认与success一致

        Returns:
            MonitorMetrics: 刷新后的指标
        """
        if reachable is None:
            reachable = success
        with self._lock:
            channel = self._channels.get(channel_id)
            if channel is None:
                raise ChannelNotFound(channel_id)
            window = self._windows.get(channel_id)
            if window is None:
                window = MetricWindow(size=self.metrics_window_size)
                self._windows[channel_id] = window
            window.add(success, reachable, max(response_time_ms, 0.0))
            metrics = window.metrics()
            channel.monitor_metrics = metrics
            return metrics.model_copy()
