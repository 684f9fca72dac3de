"""
参数映射表单元测试
"""

import pytest

from shared.models import Channel, ParamMappingEntry, StandardParam
from notification_center.exceptions import NotFoundError
from notification_center.mapping import ParamMappingTable


class TestResolve:
    """测试参数查找"""

    def test_resolve_email_recipient(self, mapping_table):
        """测试邮件渠道的收件人映射"""
        assert mapping_table.resolve("recipient", "email") == "to_email"
        assert mapping_table.resolve("content", "email") == "html_body"
        assert mapping_table.resolve("recipient", "sms") == "phone_number"

    def test_resolve_unsupported(self, mapping_table):
        """测试不支持的参数返回None"""
        assert mapping_table.resolve("subject", "sms") is None
        assert mapping_table.resolve("attachment", "webhook") is None
        assert mapping_table.resolve("unknown", "email") is None

    def test_channel_mapping_overrides_type(self, mapping_table, make_channel):
        """测试渠道自身的映射优先"""
        channel = make_channel(param_mapping={"recipient": "mail_to", "content": "body"})

        assert mapping_table.resolve_for_channel(channel, "recipient") == "mail_to"
        assert mapping_table.resolve_for_channel(channel, "content") == "body"
        # 渠道映射存在时未列出的参数视为不支持
        assert mapping_table.resolve_for_channel(channel, "subject") is None

    def test_channel_without_mapping_inherits(self, mapping_table, email_channel):
        """测试渠道未配置映射时继承类型映射"""
        assert mapping_table.resolve_for_channel(email_channel, "subject") == "subject"


class TestMapFields:
    """测试负载映射"""

    def test_unmapped_and_empty_fields_dropped(self, mapping_table, sms_channel):
        """测试丢弃未映射和空值字段"""
        payload = mapping_table.map_fields(sms_channel, {
            "recipient": "13800000000",
            "subject": "不支持",
            "template_id": "",
            "url": None,
        })

        assert payload == {"phone_number": "13800000000"}

    def test_required_keys(self, mapping_table, email_channel, sms_channel):
        """测试渠道要求的必填参数"""
        assert set(mapping_table.required_keys(email_channel)) == {"recipient", "subject", "content"}
        assert set(mapping_table.required_keys(sms_channel)) == {"recipient", "content"}


class TestValidate:
    """测试映射完整性检查"""

    def test_complete_mapping(self, mapping_table, email_channel):
        """测试映射完整的渠道"""
        assert mapping_table.validate(email_channel) == []

    def test_missing_required_mapping(self, mapping_table, sms_channel):
        """测试短信渠道缺少主题映射"""
        violations = mapping_table.validate(sms_channel)

        assert len(violations) == 1
        assert "subject" in violations[0]

    def test_unknown_channel_type(self, mapping_table):
        """测试未配置映射的渠道类型，不抛出异常"""
        channel = Channel(id="fs", name="飞书", type="feishu")

        violations = mapping_table.validate(channel)

        assert len(violations) == 3


class TestUpdateMapping:
    """测试映射更新"""

    def test_update_mapping(self, mapping_table):
        """测试新增映射"""
        entry = mapping_table.update_mapping("subject", "sms", "sign_name", "短信签名", True)

        assert entry.mapping_for("sms").param_key == "sign_name"
        assert mapping_table.resolve("subject", "sms") == "sign_name"

    def test_clear_mapping(self, mapping_table):
        """测试清空映射表示不支持"""
        mapping_table.update_mapping("attachment", "email", "")

        assert mapping_table.resolve("attachment", "email") is None

    def test_unknown_standard_key(self, mapping_table):
        """测试未知的标准参数"""
        with pytest.raises(NotFoundError):
            mapping_table.update_mapping("priority", "email", "x")

    def test_returned_entry_is_copy(self, mapping_table):
        """测试返回值修改不影响映射表"""
        entry = mapping_table.update_mapping("url", "email", "link")
        entry.mappings.clear()

        assert mapping_table.resolve("url", "email") == "link"

    def test_load_replaces_entries(self):
        """测试加载持久化数据"""
        table = ParamMappingTable()
        table.load([ParamMappingEntry(
            standard_param=StandardParam(key="recipient", label="接收者", required=True),
            mappings={},
        )])

        assert [param.key for param in table.standard_params()] == ["recipient"]
        assert table.resolve("recipient", "email") is None
