"""
内置的标准参数、参数映射与消息模板
"""

from datetime import datetime
from typing import Dict, List, Tuple

from shared.models import (
    StandardParam, ChannelParamMapping, ParamMappingEntry,
    Template, TemplateStatus, VariableConfig, VariableDataType
)


STANDARD_PARAMS: List[StandardParam] = [
    StandardParam(key="recipient", label="接收者", description="消息接收者的标识符", required=True),
    StandardParam(key="subject", label="主题", description="消息的主题或标题", required=True),
    StandardParam(key="content", label="内容", description="消息的正文内容", required=True),
    StandardParam(key="attachment", label="附件", description="消息的附件", required=False),
    StandardParam(key="importance", label="重要性", description="消息的重要程度", required=False),
    StandardParam(key="template_id", label="模板ID", description="消息模板的唯一标识", required=False),
    StandardParam(key="url", label="链接", description="相关的链接地址", required=False),
]


# (标准参数, 渠道类型) -> (渠道参数名, 说明, 是否必填)
_DEFAULT_MAPPINGS: Dict[str, Dict[str, Tuple[str, str, bool]]] = {
    "recipient": {
        "email": ("to_email", "邮件收件人", True),
        "sms": ("phone_number", "手机号码", True),
        "wechat": ("open_id", "微信OpenID", True),
        "dingtalk": ("user_id", "钉钉用户ID", True),
        "internal": ("user_id", "用户ID", True),
    },
    "subject": {
        "email": ("subject", "邮件主题", True),
        "wechat": ("first_data", "首行数据", True),
        "dingtalk": ("title", "标题", True),
        "internal": ("title", "标题", True),
    },
    "content": {
        "email": ("html_body", "HTML正文", True),
        "sms": ("content", "短信内容", True),
        "wechat": ("remark", "备注", True),
        "dingtalk": ("text", "文本内容", True),
        "webhook": ("payload", "请求数据", True),
        "internal": ("content", "内容", True),
    },
    "attachment": {
        "email": ("attachments", "附件列表", False),
    },
    "importance": {
        "internal": ("type", "站内信类型", False),
    },
    "template_id": {
        "sms": ("template_code", "模板编码", False),
        "wechat": ("template_id", "模板ID", False),
    },
    "url": {
        "wechat": ("url", "跳转链接", False),
        "internal": ("link", "链接", False),
    },
}


def default_param_mappings() -> List[ParamMappingEntry]:
    """默认参数映射表，每个标准参数一条"""
    entries = []
    for param in STANDARD_PARAMS:
        mappings = {
            channel_type: ChannelParamMapping(
                param_key=param_key,
                description=description,
                is_required=is_required
            )
            for channel_type, (param_key, description, is_required)
            in _DEFAULT_MAPPINGS.get(param.key, {}).items()
        }
        entries.append(ParamMappingEntry(standard_param=param, mappings=mappings))
    return entries


def default_templates() -> List[Template]:
    """默认消息模板"""
    now = datetime.utcnow()
    return [
        Template(
            id="SYS_MAINTENANCE",
            name="系统维护通知",
            code="SYS_MAINTENANCE",
            category="system",
            status=TemplateStatus.PUBLISHED,
            content={
                "email": "尊敬的用户：<br><br>我们将于{date}进行系统维护升级，届时系统将暂停服务{duration}小时。<br><br>给您带来的不便，敬请谅解。",
                "sms": "【系统通知】尊敬的用户，我们将于{date}进行系统维护，预计{duration}小时恢复，给您带来不便敬请谅解。",
                "internal": "系统将于{date}进行维护升级，届时系统将暂停服务{duration}小时。",
                "wechat": "系统维护通知：我们将于{date}进行系统维护，预计{duration}小时恢复。",
            },
            variable_config=[
                VariableConfig(
                    name="date", data_type=VariableDataType.DATE, required=True,
                    description="维护日期", format="yyyy-MM-dd", example="2023-10-15"
                ),
                VariableConfig(
                    name="duration", data_type=VariableDataType.NUMBER, required=True,
                    description="维护时长(小时)", example="4"
                ),
            ],
            description="系统计划维护的通知",
            created_at=now,
            updated_at=now,
        ),
        Template(
            id="ORDER_REVIEW",
            name="订单审核提醒",
            code="ORDER_REVIEW",
            category="reminder",
            status=TemplateStatus.PUBLISHED,
            content={
                "email": "您好：<br><br>订单#{orderId}需要您的审核，请尽快处理。<br><br>订单详情：{orderDetail}",
                "sms": "【工作提醒】订单#{orderId}需要您审核，请尽快处理。",
                "internal": "订单#{orderId}需要您的审核，请尽快处理。订单详情：{orderDetail}",
                "wechat": "订单审核提醒：订单#{orderId}需要您审核，请尽快处理。",
            },
            variable_config=[
                VariableConfig(name="orderId", required=True, description="订单号", example="20231015001"),
                VariableConfig(name="orderDetail", required=False, description="订单详情", example="办公用品采购 3 件"),
            ],
            created_at=now,
            updated_at=now,
        ),
        Template(
            id="SERVER_ALERT",
            name="服务器告警通知",
            code="SERVER_ALERT",
            category="alert",
            status=TemplateStatus.PUBLISHED,
            content={
                "email": "警告：<br><br>服务器{serverName}出现异常，异常信息：{alertInfo}。<br><br>请及时处理！",
                "sms": "【告警信息】服务器{serverName}异常：{alertInfo}，请及时处理！",
                "internal": "服务器{serverName}出现异常，异常信息：{alertInfo}。请及时处理！",
                "wechat": "服务器告警：{serverName}异常，{alertInfo}，请及时处理！",
            },
            variable_config=[
                VariableConfig(name="serverName", required=True, description="服务器名称", example="web-01"),
                VariableConfig(name="alertInfo", required=True, description="异常信息", example="CPU使用率超过95%"),
            ],
            created_at=now,
            updated_at=now,
        ),
        Template(
            id="MEETING_REMINDER",
            name="会议提醒模板",
            code="MEETING_REMINDER",
            category="meeting",
            status=TemplateStatus.PUBLISHED,
            content={
                "email": "会议通知：<br><br>主题：{subject}<br>时间：{time}<br>地点：{location}<br>参与人：{participants}<br><br>请准时参加！",
                "sms": "【会议通知】{subject}，时间：{time}，地点：{location}，请准时参加！",
                "internal": "会议通知：{subject}，时间：{time}，地点：{location}，参与人：{participants}，请准时参加！",
                "wechat": "会议提醒：{subject}，{time}，{location}，请准时参加！",
            },
            variable_config=[
                VariableConfig(name="subject", required=True, description="会议主题", example="季度总结会"),
                VariableConfig(
                    name="time", data_type=VariableDataType.DATE, required=True,
                    description="会议时间", format="yyyy-MM-dd HH:mm", example="2023-10-16 14:00"
                ),
                VariableConfig(name="location", required=True, description="会议地点", example="3楼会议室"),
                VariableConfig(name="participants", required=False, description="参与人", example="张三、李四"),
            ],
            created_at=now,
            updated_at=now,
        ),
        Template(
            id="ORDER_CONFIRM",
            name="订单确认通知",
            code="ORDER_CONFIRM",
            category="notification",
            status=TemplateStatus.PUBLISHED,
            content={
                "email": "尊敬的{userName}，您的订单 {orderNo} 已确认，金额：{amount}元，下单时间：{orderTime}，预计发货时间：{shipTime}。感谢您的购买！",
                "sms": "【信立集团】尊敬的{userName}，您的订单{orderNo}已确认，金额{amount}元，下单时间{orderTime}，预计发货{shipTime}。",
                "app_push": "订单确认通知：您的订单 {orderNo} 已确认，预计{shipTime}发货。",
            },
            variable_config=[
                VariableConfig(name="userName", required=True, description="用户姓名", max_length=50, example="张三"),
                VariableConfig(
                    name="orderNo", required=True, description="订单号",
                    validation_rule="^[A-Z0-9]{8,15}$", example="ORD20230615001"
                ),
                VariableConfig(
                    name="amount", data_type=VariableDataType.NUMBER, required=True,
                    description="金额", format="0,0.00", example="199.99"
                ),
                VariableConfig(
                    name="orderTime", data_type=VariableDataType.DATE, required=True,
                    description="下单时间", format="yyyy-MM-dd HH:mm:ss", example="2023-06-15 14:30:25"
                ),
                VariableConfig(
                    name="shipTime", data_type=VariableDataType.DATE, required=False,
                    description="预计发货时间", format="yyyy-MM-dd", example="2023-06-18"
                ),
            ],
            description="用户下单后发送订单确认信息",
            version="1.0.2",
            created_at=now,
            updated_at=now,
        ),
        Template(
            id="MARKETING_CAMPAIGN",
            name="营销活动通知",
            code="MARKETING_CAMPAIGN",
            category="marketing",
            status=TemplateStatus.DRAFT,
            content={
                "email": "尊敬的客户：<br><br>我们将于{startDate}至{endDate}期间开展{activityName}活动，活动详情：{activityDetail}<br><br>欢迎参与！",
                "sms": "【营销活动】{activityName}，{startDate}至{endDate}，{activityDetail}，欢迎参与！",
                "internal": "营销活动：{activityName}，时间：{startDate}至{endDate}，详情：{activityDetail}",
                "wechat": "营销活动：{activityName}，{startDate}至{endDate}，{activityDetail}",
            },
            variable_config=[
                VariableConfig(name="activityName", required=True, description="活动名称", example="双十一大促"),
                VariableConfig(
                    name="startDate", data_type=VariableDataType.DATE, required=True,
                    format="yyyy-MM-dd", example="2023-11-01"
                ),
                VariableConfig(
                    name="endDate", data_type=VariableDataType.DATE, required=True,
                    format="yyyy-MM-dd", example="2023-11-11"
                ),
                VariableConfig(name="activityDetail", required=False, example="全场八折"),
            ],
            created_at=now,
            updated_at=now,
        ),
    ]
