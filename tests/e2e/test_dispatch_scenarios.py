"""
端到端投递场景测试
"""

import pytest

from shared.config import NotificationSettings
from shared.models import DispatchState, Notification
from notification_center.service import NotificationCenter
from notification_center.store import InMemoryStore


@pytest.fixture
def center(transport, clock, sleep, email_channel, sms_channel, internal_channel):
    center = NotificationCenter(
        settings=NotificationSettings(),
        store=InMemoryStore(),
        transports={"email": transport, "sms": transport, "internal": transport},
        clock=clock,
        sleep=sleep,
    )
    center.load()
    for channel in (email_channel, sms_channel, internal_channel):
        center.add_channel(channel)
    return center


def maintenance_notification():
    return Notification(
        standard_fields={"recipient": "u1@example.com"},
        template_id="SYS_MAINTENANCE",
        variables={"date": "2023-10-15", "duration": "4"},
    )


class TestDispatchScenarios:
    """测试完整投递流程"""

    @pytest.mark.asyncio
    async def test_maintenance_notice_by_email(self, center, transport):
        """系统维护通知经邮件渠道投递"""
        assert center.mapping.resolve("recipient", "email") == "to_email"

        result = await center.send(maintenance_notification())

        assert result.states == [
            DispatchState.PENDING,
            DispatchState.MAPPING,
            DispatchState.RENDERING,
            DispatchState.SENDING,
            DispatchState.SUCCEEDED,
            DispatchState.DELIVERED,
        ]
        payload = transport.calls[0]["payload"]
        assert transport.calls[0]["channel_id"] == "email-main"
        assert payload["to_email"] == "u1@example.com"
        assert "于2023-10-15进行系统维护" in payload["html_body"]
        assert "4小时" in payload["html_body"]

    @pytest.mark.asyncio
    async def test_rate_limited_email_falls_back(self, center, transport, fixed_now):
        """邮件渠道本窗口已发送50条，投递转入下一优先级渠道"""
        for _ in range(50):
            assert center.registry.try_acquire("email-main", fixed_now)

        eligible = center.registry.list_eligible({"recipient": "u1@example.com"}, fixed_now)
        assert "email-main" not in [c.id for c in eligible]

        result = await center.send(maintenance_notification())

        assert result.delivered
        assert result.channel_id == "sms-main"
        assert transport.calls_on("email-main") == []
        assert transport.calls[0]["payload"]["phone_number"] == "u1@example.com"

    @pytest.mark.asyncio
    async def test_failover_then_statistics(self, center, transport):
        """邮件渠道失败后由短信渠道送达，统计与告警同步更新"""
        transport.script = [False]

        result = await center.send(maintenance_notification())

        assert result.channel_id == "sms-main"
        stats = center.get_statistics()
        assert (stats["total"], stats["success"], stats["failed"]) == (2, 1, 1)
        assert stats["success_rate"] == 50
        assert stats["active_alerts"] == 1
        channel_rows = {row["value"]: row for row in stats["channel_distribution"]}
        assert channel_rows["email-main"]["failed"] == 1
        assert channel_rows["sms-main"]["success"] == 1
