"""通知中心异常定义"""

from typing import List, Optional


class NotificationError(Exception):
    """通知中心异常基类"""
    pass


class NotFoundError(NotificationError):
    """对象不存在，直接返回给调用方，不重试"""

    def __init__(self, kind: str, identifier: str):
        self.kind = kind
        self.identifier = identifier
        super().__init__(f"未找到{kind}: {identifier}")


class ChannelNotFound(NotFoundError):
    def __init__(self, channel_id: str):
        super().__init__("渠道", channel_id)


class TemplateNotFound(NotFoundError):
    def __init__(self, template_ref: str):
        super().__init__("模板", template_ref)


class AlertNotFound(NotFoundError):
    def __init__(self, alert_id: str):
        super().__init__("告警", alert_id)


class ValidationFailure(NotificationError):
    """校验失败，投递不会开始"""
    pass


class ChannelUnsupported(ValidationFailure):
    """模板没有该渠道类型的正文"""

    def __init__(self, template_code: str, channel_type: str):
        self.template_code = template_code
        self.channel_type = channel_type
        super().__init__(f"模板 {template_code} 不支持渠道类型: {channel_type}")


class TemplateNotPublished(ValidationFailure):
    def __init__(self, template_code: str):
        self.template_code = template_code
        super().__init__(f"模板 {template_code} 尚未发布，不能用于生产投递")


class MissingRequiredVariables(ValidationFailure):
    """缺少必填变量，列出全部缺失项"""

    def __init__(self, names: List[str]):
        self.names = list(names)
        super().__init__(f"缺少必填变量: {', '.join(self.names)}")


class VariableValidationFailed(ValidationFailure):
    def __init__(self, name: str, rule: str):
        self.name = name
        self.rule = rule
        super().__init__(f"变量 {name} 未通过校验规则: {rule}")


class MissingRequiredParams(ValidationFailure):
    """没有任何可用渠道能接受该通知的必填参数"""

    def __init__(self, violations: dict):
        self.violations = violations
        details = "; ".join(
            f"{channel_id}: {', '.join(keys)}" for channel_id, keys in violations.items()
        )
        super().__init__(f"缺少渠道必填参数: {details}")


class DuplicateTemplateCode(ValidationFailure):
    def __init__(self, code: str):
        self.code = code
        super().__init__(f"模板编码 {code} 已存在")


class TransportFailure(NotificationError):
    """传输层返回失败，按重试策略处理"""

    def __init__(self, channel_id: str, reason: Optional[str] = None):
        self.channel_id = channel_id
        self.reason = reason
        super().__init__(f"渠道 {channel_id} 发送失败: {reason or '未知错误'}")


class RateLimited(NotificationError):
    """渠道在当前窗口已达到限流，跳过该渠道，不计入失败"""

    def __init__(self, channel_id: str, limit: int):
        self.channel_id = channel_id
        self.limit = limit
        super().__init__(f"渠道 {channel_id} 已达到限流: {limit}")


class DeliveryExhausted(NotificationError):
    """所有可用渠道均投递失败"""

    def __init__(self, notification_id: str, reason: Optional[str] = None):
        self.notification_id = notification_id
        self.reason = reason
        super().__init__(f"通知 {notification_id} 无可用渠道完成投递: {reason or '全部渠道重试耗尽'}")


class DuplicateNotification(ValidationFailure):
    """同一ID的通知仍在投递中"""

    def __init__(self, notification_id: str):
        self.notification_id = notification_id
        super().__init__(f"通知 {notification_id} 正在投递中")
