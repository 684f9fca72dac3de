"""
通知中心模块

把标准参数映射到各渠道参数，渲染消息模板，按优先级、可用时间、限流和重试策略
选择渠道投递，并把投递记录汇总为统计数据和异常告警。
"""

from .alerts import AlertEvaluator
from .channels import ChannelRegistry, RateLimiter
from .dispatcher import CancellationToken, DispatchResult, Dispatcher
from .events import OutcomeBus
from .mapping import ParamMappingTable
from .renderer import Renderer, substitute
from .service import NotificationCenter
from .statistics import Dimension, Period, StatisticsAggregator
from .store import EntityKind, EntityStore, InMemoryStore, JsonFileStore
from .templates import TemplateCatalog
from .transport import CallableTransport, Transport

__all__ = [
    'AlertEvaluator',
    'ChannelRegistry',
    'RateLimiter',
    'CancellationToken',
    'DispatchResult',
    'Dispatcher',
    'OutcomeBus',
    'ParamMappingTable',
    'Renderer',
    'substitute',
    'NotificationCenter',
    'Dimension',
    'Period',
    'StatisticsAggregator',
    'EntityKind',
    'EntityStore',
    'InMemoryStore',
    'JsonFileStore',
    'TemplateCatalog',
    'CallableTransport',
    'Transport',
]
