"""配置管理模块"""

from typing import List, Optional
from pydantic import Field
from pydantic_settings import BaseSettings

from shared.models.alert import AlertRule, AlertType, AlertLevel, Comparison


def default_alert_rules() -> List[AlertRule]:
    """默认告警阈值"""
    return [
        AlertRule(
            type=AlertType.CHANNEL,
            metric="failureRate",
            threshold=5,
            comparison=Comparison.GREATER_THAN,
            level=AlertLevel.HIGH,
            title="渠道失败率过高",
        ),
        AlertRule(
            type=AlertType.SYSTEM,
            metric="volumeGrowth",
            threshold=150,
            comparison=Comparison.GREATER_THAN,
            level=AlertLevel.MEDIUM,
            title="系统消息量异常增长",
        ),
        AlertRule(
            type=AlertType.MESSAGE_TYPE,
            metric="unreadRate",
            threshold=30,
            comparison=Comparison.GREATER_THAN,
            level=AlertLevel.LOW,
            title="消息未读率过高",
        ),
    ]


class DispatchConfig(BaseSettings):
    """投递配置"""

    rate_window_seconds: int = Field(default=60, ge=1, description="限流窗口(秒)")
    metrics_window_size: int = Field(default=100, ge=1, description="健康指标统计的样本窗口")
    production_mode: bool = Field(default=True, description="生产模式下草稿模板不可投递")

    model_config = {"env_prefix": "NOTIFY_DISPATCH_", "env_file": ".env", "extra": "ignore"}


class AlertConfig(BaseSettings):
    """告警配置"""

    enabled: bool = Field(default=True)
    rules: List[AlertRule] = Field(default_factory=default_alert_rules)

    model_config = {"env_prefix": "NOTIFY_ALERT_", "env_file": ".env", "extra": "ignore"}


class LoggingConfig(BaseSettings):
    """日志配置"""

    level: str = Field(default="INFO")
    log_file: Optional[str] = Field(default=None)
    max_bytes: int = Field(default=10 * 1024 * 1024)
    backup_count: int = Field(default=5)
    console_output: bool = Field(default=True)

    model_config = {"env_prefix": "NOTIFY_LOG_", "env_file": ".env", "extra": "ignore"}


class NotificationSettings(BaseSettings):
    """通知中心配置"""

    name: str = Field(default="Notification Center")
    version: str = Field(default="0.1.0")
    store_dir: Optional[str] = Field(default=None, description="JSON存储目录，为空时使用内存存储")

    # 投递配置
    dispatch: DispatchConfig = Field(default_factory=DispatchConfig)

    # 告警配置
    alert: AlertConfig = Field(default_factory=AlertConfig)

    # 日志配置
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    model_config = {"env_prefix": "NOTIFY_", "env_file": ".env", "extra": "ignore"}


# 全局配置实例
settings = NotificationSettings()
