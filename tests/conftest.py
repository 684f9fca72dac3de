"""测试配置"""

import asyncio
import pytest
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, Union
from unittest.mock import AsyncMock

import sys
import os
sys.path.insert(0, os.path.dirname(os.path.dirname(__file__)))

from shared.models import Channel, TransportResult
from notification_center.channels import ChannelRegistry
from notification_center.defaults import default_param_mappings, default_templates
from notification_center.dispatcher import Dispatcher
from notification_center.events import OutcomeBus
from notification_center.mapping import ParamMappingTable
from notification_center.renderer import Renderer
from notification_center.templates import TemplateCatalog
from notification_center.transport import Transport


# 2024-01-15 是周一
FIXED_NOW = datetime(2024, 1, 15, 10, 0, 0)


ScriptStep = Union[bool, TransportResult, Exception]


class ScriptedTransport(Transport):
    """
    按脚本返回结果的传输层，脚本用完后一律成功

    delay 大于0时每次发送前真实等待，on_send 在发送过程中被调用，用于模拟发送期间的配置变更。
    """

    def __init__(
        self,
        script: Optional[List[ScriptStep]] = None,
        response_time_ms: float = 20.0,
        delay: float = 0.0,
        on_send: Optional[Callable[[Channel], None]] = None
    ):
        self.script = list(script or [])
        self.response_time_ms = response_time_ms
        self.delay = delay
        self.on_send = on_send
        self.calls: List[Dict[str, Any]] = []

    async def send(self, channel: Channel, payload: Dict[str, Any]) -> TransportResult:
        self.calls.append({"channel_id": channel.id, "payload": payload})
        if self.delay > 0:
            await asyncio.sleep(self.delay)
        if self.on_send is not None:
            self.on_send(channel)
        step = self.script.pop(0) if self.script else True
        if isinstance(step, Exception):
            raise step
        if isinstance(step, TransportResult):
            return step
        if step:
            return TransportResult(success=True, response_time_ms=self.response_time_ms)
        return TransportResult(success=False, response_time_ms=self.response_time_ms, error_reason="模拟发送失败")

    def calls_on(self, channel_id: str) -> List[Dict[str, Any]]:
        return [call for call in self.calls if call["channel_id"] == channel_id]


def build_channel(**overrides) -> Channel:
    """创建测试渠道"""
    data = {
        "id": "email-main",
        "name": "主邮件渠道",
        "type": "email",
        "priority": 1,
        "retry_times": 0,
        "retry_interval_seconds": 30,
        "rate_limit": 50,
    }
    data.update(overrides)
    return Channel(**data)


@pytest.fixture
def fixed_now():
    return FIXED_NOW


@pytest.fixture
def clock():
    return lambda: FIXED_NOW


@pytest.fixture
def make_channel():
    return build_channel


@pytest.fixture
def make_transport():
    return ScriptedTransport


@pytest.fixture
def email_channel():
    return build_channel()


@pytest.fixture
def sms_channel():
    return build_channel(id="sms-main", name="主短信渠道", type="sms", priority=2, rate_limit=100)


@pytest.fixture
def internal_channel():
    return build_channel(id="internal", name="站内信", type="internal", priority=3, rate_limit=1000)


@pytest.fixture
def mapping_table():
    return ParamMappingTable(default_param_mappings())


@pytest.fixture
def catalog():
    return TemplateCatalog(default_templates())


@pytest.fixture
def renderer(catalog):
    return Renderer(catalog)


@pytest.fixture
def registry(email_channel, sms_channel, internal_channel):
    return ChannelRegistry([email_channel, sms_channel, internal_channel])


@pytest.fixture
def transport():
    return ScriptedTransport()


@pytest.fixture
def sleep():
    return AsyncMock()


@pytest.fixture
def bus():
    return OutcomeBus()


@pytest.fixture
def dispatcher(registry, mapping_table, renderer, transport, bus, clock, sleep):
    return Dispatcher(
        registry=registry,
        mapping=mapping_table,
        renderer=renderer,
        transports={"email": transport, "sms": transport, "internal": transport},
        bus=bus,
        clock=clock,
        sleep=sleep,
    )
