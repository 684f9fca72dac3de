"""异常告警数据模型"""

import uuid
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field

from .base import BaseSchema


class AlertLevel(str, Enum):
    """告警级别"""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class AlertType(str, Enum):
    """告警对象类型"""
    CHANNEL = "channel"
    SYSTEM = "system"
    MESSAGE_TYPE = "messageType"


class AlertStatus(str, Enum):
    """告警状态"""
    ACTIVE = "active"
    RESOLVED = "resolved"


class Comparison(str, Enum):
    """阈值比较方式"""
    GREATER_THAN = "gt"
    LESS_THAN = "lt"


class AlertRule(BaseModel):
    """告警阈值规则"""
    type: AlertType = Field(..., description="告警对象类型")
    metric: str = Field(..., min_length=1, description="指标名")
    threshold: float = Field(..., description="阈值")
    comparison: Comparison = Field(Comparison.GREATER_THAN, description="比较方式")
    level: AlertLevel = Field(AlertLevel.MEDIUM, description="告警级别")
    title: Optional[str] = Field(None, description="告警标题")

    def is_breached(self, value: float) -> bool:
        if self.comparison == Comparison.LESS_THAN:
            return value < self.threshold
        return value > self.threshold


@dataclass(frozen=True)
class MetricSample:
    """指标样本"""
    type: AlertType
    subject_id: str
    metric: str
    value: float
    timestamp: datetime


class AnomalyAlert(BaseSchema):
    """异常告警记录"""
    id: str = Field(default_factory=lambda: str(uuid.uuid4()), description="告警ID")
    title: str = Field(..., description="告警标题")
    level: AlertLevel = Field(..., description="告警级别")
    type: AlertType = Field(..., description="告警对象类型")
    subject_id: str = Field(..., description="告警对象ID")
    metric: str = Field(..., description="指标名")
    value: float = Field(..., description="触发时的指标值")
    threshold: float = Field(..., description="阈值")
    status: AlertStatus = Field(AlertStatus.ACTIVE, description="告警状态")
    timestamp: datetime = Field(..., description="触发时间")
    resolved_at: Optional[datetime] = Field(None, description="解除时间")

    @property
    def identity(self) -> tuple:
        """去重标识"""
        return (self.type, self.subject_id, self.metric)

    @property
    def is_active(self) -> bool:
        return self.status == AlertStatus.ACTIVE
