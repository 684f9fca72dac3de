"""
模板渲染单元测试
"""

import pytest

from shared.models import Template, TemplateStatus, VariableConfig, VariableDataType, find_placeholders
from notification_center.exceptions import (
    ChannelUnsupported, MissingRequiredVariables, TemplateNotFound,
    TemplateNotPublished, VariableValidationFailed
)
from notification_center.renderer import Renderer, substitute, to_strptime_format
from notification_center.templates import TemplateCatalog


ORDER_VALUES = {
    "userName": "张三",
    "orderNo": "ORD20230615001",
    "amount": "199.99",
    "orderTime": "2023-06-15 14:30:25",
    "shipTime": "2023-06-18",
}


class TestSubstitute:
    """测试占位符替换"""

    def test_basic_substitution(self):
        """测试基本替换"""
        text, unresolved = substitute("你好 {name}，订单 {order_no}", {"name": "张三", "order_no": 42})

        assert text == "你好 张三，订单 42"
        assert unresolved == []

    def test_unresolved_left_literal(self):
        """测试缺少取值的占位符原样保留"""
        text, unresolved = substitute("{a} 和 {b} 和 {b}", {"a": "1"})

        assert text == "1 和 {b} 和 {b}"
        assert unresolved == ["b"]

    def test_nested_braces_not_placeholder(self):
        """测试嵌套花括号不视为占位符"""
        text, unresolved = substitute("{{name}} / {name}", {"name": "x"})

        assert text == "{{name}} / x"
        assert unresolved == []

    def test_non_identifier_not_placeholder(self):
        """测试非标识符内容不视为占位符"""
        body = "{1abc} {a-b} { name } {}"

        assert find_placeholders(body) == []
        assert substitute(body, {"name": "x"})[0] == body

    def test_strptime_format(self):
        """测试日期格式转换"""
        assert to_strptime_format("yyyy-MM-dd HH:mm:ss") == "%Y-%m-%d %H:%M:%S"


class TestRender:
    """测试模板渲染"""

    def test_render_sys_maintenance(self, renderer):
        """测试渲染系统维护模板"""
        rendered = renderer.render("SYS_MAINTENANCE", "email", {"date": "2023-10-15", "duration": "4"})

        assert "于2023-10-15进行系统维护" in rendered.content
        assert "4小时" in rendered.content
        assert rendered.fully_resolved
        assert rendered.warnings == []

    def test_render_is_deterministic(self, renderer):
        """测试相同输入渲染结果一致"""
        first = renderer.render("ORDER_CONFIRM", "sms", ORDER_VALUES)
        second = renderer.render("ORDER_CONFIRM", "sms", dict(ORDER_VALUES))

        assert first.content == second.content

    def test_examples_resolve_every_placeholder(self, catalog, renderer):
        """测试用示例值渲染所有模板不留占位符"""
        for template in catalog.list_templates():
            for channel_type in template.channel_types:
                rendered = renderer.render(
                    template.id, channel_type, template.example_values(), production=False
                )
                assert find_placeholders(rendered.content) == [], (template.code, channel_type)

    def test_missing_required_lists_all(self, renderer):
        """测试缺少必填变量时列出全部缺失项"""
        with pytest.raises(MissingRequiredVariables) as exc_info:
            renderer.render("ORDER_CONFIRM", "email", {"userName": "张三", "orderTime": ""})

        assert exc_info.value.names == ["orderNo", "amount", "orderTime"]

    def test_validation_rule_failure(self, renderer):
        """测试校验正则失败为硬错误"""
        values = dict(ORDER_VALUES, orderNo="bad-no")

        with pytest.raises(VariableValidationFailed) as exc_info:
            renderer.render("ORDER_CONFIRM", "email", values)

        assert exc_info.value.name == "orderNo"

    def test_format_mismatch_is_warning(self, renderer):
        """测试日期格式不符只产生警告"""
        values = dict(ORDER_VALUES, shipTime="18/06/2023")

        rendered = renderer.render("ORDER_CONFIRM", "email", values)

        assert "18/06/2023" in rendered.content
        assert len(rendered.warnings) == 1
        assert "shipTime" in rendered.warnings[0]

    def test_number_and_length_warnings(self, renderer):
        """测试数字类型和最大长度只产生警告"""
        values = dict(ORDER_VALUES, amount="一百元", userName="张" * 51)

        rendered = renderer.render("ORDER_CONFIRM", "email", values)

        assert len(rendered.warnings) == 2

    def test_optional_variable_unresolved(self, renderer):
        """测试未提供的可选变量保留占位符"""
        values = {key: value for key, value in ORDER_VALUES.items() if key != "shipTime"}

        rendered = renderer.render("ORDER_CONFIRM", "email", values)

        assert "{shipTime}" in rendered.content
        assert rendered.unresolved == ["shipTime"]

    def test_channel_unsupported(self, renderer):
        """测试模板不支持的渠道类型"""
        with pytest.raises(ChannelUnsupported):
            renderer.render("ORDER_CONFIRM", "wechat", ORDER_VALUES)

    def test_channel_checked_before_variables(self, renderer):
        """测试渠道类型在变量校验之前检查"""
        with pytest.raises(ChannelUnsupported):
            renderer.render("ORDER_CONFIRM", "wechat", {})

    def test_channel_checked_before_publication(self, renderer):
        """测试渠道类型在发布状态之前检查"""
        with pytest.raises(ChannelUnsupported):
            renderer.render("MARKETING_CAMPAIGN", "wechat", {})

    def test_template_not_found(self, renderer):
        """测试模板不存在"""
        with pytest.raises(TemplateNotFound):
            renderer.render("NOPE", "email", {})

    def test_draft_rejected_in_production(self, renderer):
        """测试生产模式下草稿模板不可渲染"""
        values = {"activityName": "双十一", "startDate": "2023-11-01", "endDate": "2023-11-11"}

        with pytest.raises(TemplateNotPublished):
            renderer.render("MARKETING_CAMPAIGN", "sms", values)

        rendered = renderer.render("MARKETING_CAMPAIGN", "sms", values, production=False)
        assert "双十一" in rendered.content

    def test_invalid_regex_is_warning(self):
        """测试无效的校验正则只产生警告"""
        template = Template(
            id="t1", name="测试", code="T1", status=TemplateStatus.PUBLISHED,
            content={"sms": "验证码 {code}"},
            variable_config=[VariableConfig(name="code", required=True, validation_rule="([0-9")],
        )
        renderer = Renderer(TemplateCatalog([template]))

        rendered = renderer.render("T1", "sms", {"code": "1234"})

        assert rendered.content == "验证码 1234"
        assert len(rendered.warnings) == 1

    def test_preview_all_channels(self, renderer):
        """测试预览所有渠道正文"""
        preview = renderer.preview("SYS_MAINTENANCE", {"date": "2023-10-15"})

        assert set(preview) == {"email", "sms", "internal", "wechat"}
        assert "{duration}" in preview["sms"]


class TestTemplateModel:
    """测试模板定义校验"""

    def test_undeclared_placeholder_rejected(self):
        """测试正文引用未定义变量"""
        with pytest.raises(ValueError):
            Template(id="t", name="t", code="T", content={"sms": "{missing}"})

    def test_duplicate_variable_rejected(self):
        """测试重复的变量名"""
        with pytest.raises(ValueError):
            Template(
                id="t", name="t", code="T",
                variable_config=[VariableConfig(name="a"), VariableConfig(name="a")],
            )

    def test_date_variable_without_format(self):
        """测试未指定格式的日期按ISO校验"""
        template = Template(
            id="t", name="t", code="T", status=TemplateStatus.PUBLISHED,
            content={"email": "{day}"},
            variable_config=[VariableConfig(name="day", data_type=VariableDataType.DATE)],
        )
        renderer = Renderer(TemplateCatalog([template]))

        assert renderer.render("T", "email", {"day": "2024-01-15"}).warnings == []
        assert len(renderer.render("T", "email", {"day": "明天"}).warnings) == 1
