"""数据模型包"""

from .base import BaseSchema, PLACEHOLDER_PATTERN, find_placeholders
from .param import STANDARD_PARAM_KEYS, StandardParam, ChannelParamMapping, ParamMappingEntry
from .channel import (
    Channel, ChannelType, ChannelStatus, ChannelUpdate,
    AvailableTime, TimeRange, MonitorMetrics
)
from .template import (
    Template, TemplateStatus, VariableConfig, VariableDataType, RenderedContent
)
from .notification import (
    Notification, NotificationImportance, DispatchState,
    DeliveryOutcome, TransportResult
)
from .alert import (
    AnomalyAlert, AlertLevel, AlertType, AlertStatus,
    AlertRule, Comparison, MetricSample
)

__all__ = [
    "BaseSchema",
    "PLACEHOLDER_PATTERN",
    "find_placeholders",
    "STANDARD_PARAM_KEYS",
    "StandardParam",
    "ChannelParamMapping",
    "ParamMappingEntry",
    "Channel",
    "ChannelType",
    "ChannelStatus",
    "ChannelUpdate",
    "AvailableTime",
    "TimeRange",
    "MonitorMetrics",
    "Template",
    "TemplateStatus",
    "VariableConfig",
    "VariableDataType",
    "RenderedContent",
    "Notification",
    "NotificationImportance",
    "DispatchState",
    "DeliveryOutcome",
    "TransportResult",
    "AnomalyAlert",
    "AlertLevel",
    "AlertType",
    "AlertStatus",
    "AlertRule",
    "Comparison",
    "MetricSample",
]
