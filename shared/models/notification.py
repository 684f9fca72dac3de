"""通知及投递结果数据模型"""

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field


class NotificationImportance(str, Enum):
    """通知重要性枚举"""
    LOW = "low"
    NORMAL = "normal"
    HIGH = "high"
    URGENT = "urgent"


class DispatchState(str, Enum):
    """投递状态机中的状态"""
    PENDING = "pending"
    MAPPING = "mapping"
    RENDERING = "rendering"
    SENDING = "sending"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    RETRYING = "retrying"
    SKIPPED = "skipped"
    DELIVERED = "delivered"
    EXHAUSTED = "exhausted"
    CANCELLED = "cancelled"

    @property
    def is_attempt_result(self) -> bool:
        """是否为一次发送尝试的结果"""
        return self in (DispatchState.SUCCEEDED, DispatchState.FAILED)

    @property
    def is_terminal(self) -> bool:
        return self in (DispatchState.DELIVERED, DispatchState.EXHAUSTED, DispatchState.CANCELLED)


@dataclass
class Notification:
    """待投递的通知（瞬时对象，不持久化）"""
    standard_fields: Dict[str, Any]
    template_id: Optional[str] = None
    variables: Dict[str, Any] = field(default_factory=dict)
    direct_content: Optional[str] = None
    importance: NotificationImportance = NotificationImportance.NORMAL
    source_system: Optional[str] = None
    message_type: Optional[str] = None
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    created_at: Optional[datetime] = None

    @property
    def recipient_ref(self) -> Optional[str]:
        return self.standard_fields.get("recipient")


@dataclass
class TransportResult:
    """传输层返回结果"""
    success: bool
    response_time_ms: float = 0.0
    error_reason: Optional[str] = None
    reachable: Optional[bool] = None

    @property
    def channel_reachable(self) -> bool:
        """渠道是否可达，未显式给出时与发送结果一致"""
        return self.success if self.reachable is None else self.reachable


class DeliveryOutcome(BaseModel):
    """一次状态迁移的投递记录，创建后不可修改"""

    model_config = ConfigDict(frozen=True)

    notification_id: str = Field(..., description="通知ID")
    channel_id: Optional[str] = Field(None, description="渠道ID")
    channel_type: Optional[str] = Field(None, description="渠道类型")
    state: DispatchState = Field(..., description="进入的状态")
    attempt: int = Field(0, ge=0, description="当前渠道上的尝试序号")
    success: bool = Field(False, description="是否成功")
    response_time_ms: float = Field(0.0, ge=0, description="响应时间(毫秒)")
    error_reason: Optional[str] = Field(None, description="失败原因")
    timestamp: datetime = Field(..., description="记录时间")
    source_system: Optional[str] = Field(None, description="来源系统")
    message_type: Optional[str] = Field(None, description="消息类型")

