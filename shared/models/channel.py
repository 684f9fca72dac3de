"""通知渠道数据模型"""

from datetime import datetime, time
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from .base import BaseSchema
from .param import STANDARD_PARAM_KEYS


class ChannelType(str, Enum):
    """内置渠道类型枚举（渠道类型本身是开放集合）"""
    INTERNAL = "internal"
    EMAIL = "email"
    SMS = "sms"
    WECHAT = "wechat"
    DINGTALK = "dingtalk"
    WEBHOOK = "webhook"


class ChannelStatus(str, Enum):
    """渠道状态枚举"""
    ENABLED = "enabled"
    DISABLED = "disabled"


class TimeRange(BaseModel):
    """可用时间段，两端均包含"""
    start: time = Field(..., description="开始时间 HH:MM")
    end: time = Field(..., description="结束时间 HH:MM")

    def contains(self, moment: time) -> bool:
        """判断时刻是否落在时间段内（按分钟比较，结束早于开始时视为跨零点）"""
        moment = moment.replace(second=0, microsecond=0)
        start = self.start.replace(second=0, microsecond=0)
        end = self.end.replace(second=0, microsecond=0)
        if start <= end:
            return start <= moment <= end
        return moment >= start or moment <= end


class AvailableTime(BaseModel):
    """渠道可用时间窗口"""
    work_days: List[int] = Field(default_factory=lambda: [1, 2, 3, 4, 5, 6, 7], description="工作日(1=周一)")
    time_ranges: List[TimeRange] = Field(
        default_factory=lambda: [TimeRange(start=time(0, 0), end=time(23, 59))],
        description="可用时间段"
    )

    @field_validator('work_days')
    @classmethod
    def validate_work_days(cls, v):
        for day in v:
            if day < 1 or day > 7:
                raise ValueError(f'工作日必须在1-7之间: {day}')
        return sorted(set(v))

    def is_available(self, now: datetime) -> bool:
        """检查给定时刻是否在可用窗口内"""
        if now.isoweekday() not in self.work_days:
            return False
        moment = now.time()
        return any(time_range.contains(moment) for time_range in self.time_ranges)


class MonitorMetrics(BaseModel):
    """渠道健康指标"""
    availability: float = Field(100.0, ge=0, le=100, description="可用率(%)")
    success_rate: float = Field(100.0, ge=0, le=100, description="成功率(%)")
    avg_response_time_ms: float = Field(0.0, ge=0, description="平均响应时间(毫秒)")
    sample_count: int = Field(0, ge=0, description="统计窗口内的样本数")

    @property
    def failure_rate(self) -> float:
        """失败率(%)"""
        return round(100.0 - self.success_rate, 2)


class Channel(BaseSchema):
    """通知渠道"""
    id: str = Field(..., min_length=1, description="渠道ID")
    name: str = Field(..., min_length=1, description="渠道名称")
    type: str = Field(..., min_length=1, description="渠道类型")
    status: ChannelStatus = Field(ChannelStatus.ENABLED, description="渠道状态")
    config: Dict[str, Any] = Field(default_factory=dict, description="渠道私有配置")
    priority: int = Field(1, description="优先级，数值越小越先尝试")
    retry_times: int = Field(0, ge=0, description="重试次数")
    retry_interval_seconds: float = Field(30, gt=0, description="重试间隔(秒)")
    rate_limit: int = Field(100, ge=0, description="每个限流窗口内的最大发送量")
    param_mapping: Dict[str, str] = Field(default_factory=dict, description="标准参数到渠道参数的映射")
    available_time: AvailableTime = Field(default_factory=AvailableTime, description="可用时间")
    monitor_metrics: MonitorMetrics = Field(default_factory=MonitorMetrics, description="监控指标")
    vendor: Optional[str] = Field(None, description="服务商")
    tags: List[str] = Field(default_factory=list, description="标签")
    description: Optional[str] = Field(None, description="渠道描述")

    @field_validator('type')
    @classmethod
    def validate_type(cls, v):
        return v.strip().lower()

    @model_validator(mode='after')
    def validate_param_mapping(self):
        unknown = [key for key in self.param_mapping if key not in STANDARD_PARAM_KEYS]
        if unknown:
            raise ValueError(f"参数映射包含未知的标准参数: {', '.join(unknown)}")
        return self

    @property
    def is_enabled(self) -> bool:
        return self.status == ChannelStatus.ENABLED


class ChannelUpdate(BaseModel):
    """渠道更新模式"""
    name: Optional[str] = Field(None, min_length=1, description="渠道名称")
    config: Optional[Dict[str, Any]] = Field(None, description="渠道私有配置")
    priority: Optional[int] = Field(None, description="优先级")
    retry_times: Optional[int] = Field(None, ge=0, description="重试次数")
    retry_interval_seconds: Optional[float] = Field(None, gt=0, description="重试间隔(秒)")
    rate_limit: Optional[int] = Field(None, ge=0, description="限流")
    param_mapping: Optional[Dict[str, str]] = Field(None, description="参数映射")
    available_time: Optional[AvailableTime] = Field(None, description="可用时间")
    tags: Optional[List[str]] = Field(None, description="标签")
    description: Optional[str] = Field(None, description="渠道描述")
