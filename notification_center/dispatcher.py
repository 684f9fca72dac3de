"""
通知调度器

每条通知的投递过程是一个线性的状态机：

    Pending -> Mapping -> Rendering -> Sending -> Succeeded -> Delivered
                                         |
                                         +-> Failed -> Retrying -> Sending (同一渠道)
                                                    +-> 下一个渠道的 Mapping / Exhausted

每次状态迁移都会产生一条 DeliveryOutcome 并发布到 OutcomeBus。
"""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple, Union

from shared.models import (
    Channel, DeliveryOutcome, DispatchState, Notification, Template, TransportResult
)
from .channels import ChannelRegistry
from .events import OutcomeBus
from .exceptions import (
    ChannelNotFound, ChannelUnsupported, DeliveryExhausted, MissingRequiredParams,
    RateLimited, TransportFailure
)
from .mapping import ParamMappingTable
from .renderer import Renderer
from .transport import Transport


logger = logging.getLogger(__name__)


class CancellationToken:
    """取消标记，在进入发送前检查；发送中的尝试会执行完毕但不再重试"""

    def __init__(self):
        self._event = asyncio.Event()

    def cancel(self):
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    async def wait(self, timeout: float) -> bool:
        """等待取消或超时，返回是否已取消"""
        try:
            await asyncio.wait_for(self._event.wait(), timeout=timeout)
        except asyncio.TimeoutError:
            pass
        return self.cancelled


@dataclass
class DispatchResult:
    """一次通知投递的最终结果"""
    notification_id: str
    state: DispatchState = DispatchState.PENDING
    channel_id: Optional[str] = None
    payload: Dict[str, Any] = field(default_factory=dict)
    outcomes: List[DeliveryOutcome] = field(default_factory=list)
    error_reason: Optional[str] = None

    @property
    def delivered(self) -> bool:
        return self.state == DispatchState.DELIVERED

    @property
    def attempts(self) -> int:
        """发送尝试总数"""
        return sum(1 for outcome in self.outcomes if outcome.state.is_attempt_result)

    @property
    def states(self) -> List[DispatchState]:
        return [outcome.state for outcome in self.outcomes]

    def attempts_on(self, channel_id: str) -> int:
        return sum(
            1 for outcome in self.outcomes
            if outcome.channel_id == channel_id and outcome.state == DispatchState.SENDING
        )

    def raise_for_exhausted(self):
        """所有渠道均投递失败时抛出DeliveryExhausted"""
        if self.state == DispatchState.EXHAUSTED:
            raise DeliveryExhausted(self.notification_id, self.error_reason)


class Dispatcher:
    """通知调度器"""

    def __init__(
        self,
        registry: ChannelRegistry,
        mapping: ParamMappingTable,
        renderer: Renderer,
        transports: Optional[Dict[str, Transport]] = None,
        bus: Optional[OutcomeBus] = None,
        clock: Optional[Callable[[], datetime]] = None,
        sleep: Optional[Callable[[float], Awaitable[Any]]] = None,
        production: bool = True
    ):
        self.registry = registry
        self.mapping = mapping
        self.renderer = renderer
        self.transports: Dict[str, Transport] = dict(transports or {})
        self.bus = bus or OutcomeBus()
        self._clock = clock or datetime.now
        self._sleep = sleep
        self.production = production

    def register_transport(self, channel_type: str, transport: Transport):
        """
        注册渠道类型的传输层

        Args:
            channel_type: 渠道类型
            transport: 传输层实例
        """
        self.transports[channel_type] = transport
        logger.info(f"注册传输层: {channel_type}")

    def unregister_transport(self, channel_type: str):
        if channel_type in self.transports:
            del self.transports[channel_type]
            logger.info(f"注销传输层: {channel_type}")

    async def send_test_message(self, channel: Channel, fields: Dict[str, Any]) -> TransportResult:
        """
        不经过状态机直接向渠道发送测试消息并记录健康指标

        测试消息不占用限流名额，也不产生投递记录。
        """
        payload = self.mapping.map_fields(channel, fields)
        transport_result = await self._invoke(channel, payload)
        self.registry.record_metric_sample(
            channel.id,
            transport_result.success,
            transport_result.response_time_ms,
            transport_result.channel_reachable
        )
        return transport_result

    async def send(
        self,
        notification: Notification,
        cancel_token: Optional[CancellationToken] = None
    ) -> DispatchResult:
        """
        投递一条通知

        Args:
            notification: 通知
            cancel_token: 取消标记

        Returns:
            DispatchResult: 投递结果，状态为 Delivered / Exhausted / Cancelled

        Raises:
            NotFoundError: 模板不存在
            ValidationFailure: 必填参数或变量校验失败，投递不会开始
        """
        token = cancel_token or CancellationToken()
        result = DispatchResult(notification_id=notification.id)

        template = None
        if notification.template_id:
            template, warnings = self.renderer.check_template(
                notification.template_id, notification.variables, self.production
            )
            for warning in warnings:
                logger.warning(f"通知 {notification.id}: {warning}")

        fields = self._standard_values(notification, template)
        eligible = self.registry.list_eligible(fields, self._clock())
        candidates = self._accepting_channels(eligible, fields, notification, template)

        await self._emit(result, notification, DispatchState.PENDING)

        if not candidates:
            return await self._finish(
                result, notification, DispatchState.EXHAUSTED, reason="没有可用的渠道"
            )

        last_error = None
        for channel in candidates:
            if token.cancelled:
                return await self._finish(result, notification, DispatchState.CANCELLED, channel)

            state, last_error = await self._deliver_on_channel(
                result, notification, channel, fields, template, token
            )
            if state is not None:
                return await self._finish(result, notification, state, channel, last_error)

        return await self._finish(
            result, notification, DispatchState.EXHAUSTED, reason=last_error or "全部渠道重试耗尽"
        )

    async def send_batch(
        self,
        notifications: List[Notification]
    ) -> List[Union[DispatchResult, Exception]]:
        """
        并发投递多条通知

        Returns:
            List[Union[DispatchResult, Exception]]: 与输入顺序一致，校验失败的位置为异常对象
        """
        results = await asyncio.gather(
            *(self.send(notification) for notification in notifications),
            return_exceptions=True
        )
        for notification, outcome in zip(notifications, results):
            if isinstance(outcome, Exception):
                logger.error(f"批量投递失败: {notification.id}, 错误: {outcome}")
        return list(results)

    def _standard_values(self, notification: Notification, template: Optional[Template]) -> Dict[str, Any]:
        """整理标准字段，模板投递时补全主题与模板编码"""
        fields = dict(notification.standard_fields)
        fields.setdefault("importance", notification.importance.value)
        if template is not None:
            if not fields.get("subject"):
                fields["subject"] = template.name
            fields["template_id"] = template.code
        if notification.direct_content is not None:
            fields["content"] = notification.direct_content
        return fields

    def _accepting_channels(
        self,
        eligible: List[Channel],
        fields: Dict[str, Any],
        notification: Notification,
        template: Optional[Template]
    ) -> List[Channel]:
        """
        过滤出能接受该通知的渠道

        Raises:
            MissingRequiredParams: 存在可用渠道，但都缺少必填参数
            ChannelUnsupported: 存在可用渠道，但模板不支持其中任何一个
        """
        accepting = []
        violations: Dict[str, List[str]] = {}
        unsupported = []

        for channel in eligible:
            if template is not None and channel.type not in template.content:
                unsupported.append(channel.type)
                logger.debug(f"模板 {template.code} 不支持渠道 {channel.id}({channel.type})")
                continue

            missing = []
            for key in self.mapping.required_keys(channel):
                if key == "content" and template is not None:
                    continue
                value = fields.get(key)
                if value is None or value == "":
                    missing.append(key)
            if missing:
                violations[channel.id] = missing
                continue

            accepting.append(channel)

        if eligible and not accepting:
            if violations:
                raise MissingRequiredParams(violations)
            raise ChannelUnsupported(template.code, ", ".join(unsupported))

        if violations:
            logger.info(f"通知 {notification.id} 跳过缺少必填参数的渠道: {list(violations)}")
        return accepting

    async def _deliver_on_channel(
        self,
        result: DispatchResult,
        notification: Notification,
        channel: Channel,
        fields: Dict[str, Any],
        template: Optional[Template],
        token: CancellationToken
    ) -> Tuple[Optional[DispatchState], Optional[str]]:
        """
        在单个渠道上完成映射、渲染与带重试的发送

        Returns:
            Tuple[Optional[DispatchState], Optional[str]]: (终态, 最后的错误)，终态为None表示转入下一个渠道
        """
        # 候选列表在Pending时确定，渠道可能在此之后被停用或离开可用时间窗口
        if not self.registry.is_eligible(channel.id, self._clock()):
            return await self._skip(result, notification, channel, 0, f"渠道 {channel.id} 已停用或不在可用时间内")

        # Mapping
        await self._emit(result, notification, DispatchState.MAPPING, channel)
        payload = self.mapping.map_fields(
            channel, {key: value for key, value in fields.items() if key != "content"}
        )

        # Rendering
        await self._emit(result, notification, DispatchState.RENDERING, channel)
        if template is not None:
            rendered = self.renderer.render(
                template.id, channel.type, notification.variables, self.production
            )
            content = rendered.content
        else:
            content = fields.get("content")
        content_key = self.mapping.resolve_for_channel(channel, "content")
        if content_key and content not in (None, ""):
            payload[content_key] = content

        # Sending / Retrying
        max_attempts = channel.retry_times + 1
        last_error = None
        for attempt in range(1, max_attempts + 1):
            if token.cancelled:
                return DispatchState.CANCELLED, last_error

            now = self._clock()
            if attempt > 1 and not self.registry.is_eligible(channel.id, now):
                return await self._skip(
                    result, notification, channel, attempt, f"渠道 {channel.id} 已停用或不在可用时间内"
                )

            try:
                self.registry.acquire(channel.id, now)
            except (RateLimited, ChannelNotFound) as e:
                return await self._skip(result, notification, channel, attempt, str(e))

            await self._emit(result, notification, DispatchState.SENDING, channel, attempt)
            transport_result = await self._invoke(channel, payload)
            try:
                self.registry.record_metric_sample(
                    channel.id,
                    transport_result.success,
                    transport_result.response_time_ms,
                    transport_result.channel_reachable
                )
            except ChannelNotFound:
                logger.warning(f"渠道 {channel.id} 在发送期间被移除，未记录健康指标")

            if transport_result.success:
                await self._emit(
                    result, notification, DispatchState.SUCCEEDED, channel, attempt,
                    success=True, response_time_ms=transport_result.response_time_ms
                )
                result.payload = payload
                logger.info(f"通知投递成功: {notification.id} -> {channel.id} (第{attempt}次尝试)")
                return DispatchState.DELIVERED, None

            last_error = transport_result.error_reason or "发送失败"
            await self._emit(
                result, notification, DispatchState.FAILED, channel, attempt,
                response_time_ms=transport_result.response_time_ms, error_reason=last_error
            )
            logger.warning(
                f"通知发送失败 {notification.id} -> {channel.id} "
                f"(尝试 {attempt}/{max_attempts}): {last_error}"
            )

            if token.cancelled:
                return DispatchState.CANCELLED, last_error

            if attempt < max_attempts:
                await self._emit(
                    result, notification, DispatchState.RETRYING, channel, attempt, error_reason=last_error
                )
                if await self._wait_retry(channel.retry_interval_seconds, token):
                    return DispatchState.CANCELLED, last_error

        logger.warning(f"渠道 {channel.id} 重试耗尽: {notification.id}")
        return None, last_error

    async def _skip(
        self,
        result: DispatchResult,
        notification: Notification,
        channel: Channel,
        attempt: int,
        reason: str
    ) -> Tuple[None, str]:
        """跳过渠道，不计入失败"""
        logger.info(f"通知 {notification.id}: {reason}，转入下一个渠道")
        await self._emit(
            result, notification, DispatchState.SKIPPED, channel, attempt, error_reason=reason
        )
        return None, reason

    async def _invoke(self, channel: Channel, payload: Dict[str, Any]) -> TransportResult:
        """调用传输层，异常视为发送失败"""
        try:
            transport = self.transports.get(channel.type)
            if transport is None:
                raise TransportFailure(channel.id, f"未注册渠道类型 {channel.type} 的传输层")
            return await transport.send(channel, dict(payload))
        except TransportFailure as e:
            return TransportResult(success=False, error_reason=e.reason)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error(f"渠道 {channel.id} 传输层异常: {e}")
            return TransportResult(success=False, error_reason=str(e))

    async def _wait_retry(self, interval: float, token: CancellationToken) -> bool:
        """重试等待，返回等待期间是否被取消"""
        if self._sleep is not None:
            await self._sleep(interval)
            return token.cancelled
        return await token.wait(interval)

    async def _finish(
        self,
        result: DispatchResult,
        notification: Notification,
        state: DispatchState,
        channel: Optional[Channel] = None,
        reason: Optional[str] = None
    ) -> DispatchResult:
        result.state = state
        if state == DispatchState.DELIVERED:
            result.channel_id = channel.id
        else:
            result.error_reason = reason
        await self._emit(
            result, notification, state,
            channel if state == DispatchState.DELIVERED else None,
            success=state == DispatchState.DELIVERED,
            error_reason=None if state == DispatchState.DELIVERED else reason
        )
        if state == DispatchState.EXHAUSTED:
            logger.error(f"通知 {notification.id} 投递失败，所有渠道均不可用: {reason}")
        elif state == DispatchState.CANCELLED:
            logger.info(f"通知 {notification.id} 已取消")
        return result

    async def _emit(
        self,
        result: DispatchResult,
        notification: Notification,
        state: DispatchState,
        channel: Optional[Channel] = None,
        attempt: int = 0,
        success: bool = False,
        response_time_ms: float = 0.0,
        error_reason: Optional[str] = None
    ):
        outcome = DeliveryOutcome(
            notification_id=notification.id,
            channel_id=channel.id if channel else None,
            channel_type=channel.type if channel else None,
            state=state,
            attempt=attempt,
            success=success,
            response_time_ms=max(response_time_ms, 0.0),
            error_reason=error_reason,
            timestamp=self._clock(),
            source_system=notification.source_system,
            message_type=notification.message_type,
        )
        result.outcomes.append(outcome)
        await self.bus.publish(outcome)
