"""
传输层接口

邮件、短信、Webhook、即时通讯等具体协议都在传输层之后实现，由调用方按渠道类型注入。
"""

from abc import ABC, abstractmethod
from typing import Any, Awaitable, Callable, Dict

from shared.models import Channel, TransportResult


class Transport(ABC):
    """传输层基类"""

    @abstractmethod
    async def send(self, channel: Channel, payload: Dict[str, Any]) -> TransportResult:
        """
        发送已映射的负载

        Args:
            channel: 渠道快照（包含渠道私有配置）
            payload: 按渠道参数名组织的负载

        Returns:
            TransportResult: 发送结果
        """
        pass


class CallableTransport(Transport):
    """把普通协程函数包装为传输层"""

    def __init__(self, func: Callable[[Channel, Dict[str, Any]], Awaitable[TransportResult]]):
        self.func = func

    async def send(self, channel: Channel, payload: Dict[str, Any]) -> TransportResult:
        return await self.func(channel, payload)
