"""
通知中心服务 - 统一的投递、配置变更与查询入口
"""

import asyncio
from datetime import datetime
from typing import Any, Awaitable, Callable, Dict, List, Optional

import structlog

from shared.config import NotificationSettings, settings as default_settings
from shared.logger import setup_logging
from shared.models import (
    AnomalyAlert, Channel, ChannelUpdate, DeliveryOutcome, MetricSample,
    Notification, ParamMappingEntry, Template, TransportResult
)
from .alerts import AlertEvaluator
from .channels import ChannelRegistry
from .defaults import default_param_mappings, default_templates
from .dispatcher import CancellationToken, DispatchResult, Dispatcher
from .events import OutcomeBus
from .exceptions import DuplicateNotification, NotFoundError
from .mapping import ParamMappingTable
from .renderer import Renderer
from .statistics import Dimension, Period, StatisticsAggregator
from .store import EntityKind, EntityStore, InMemoryStore, JsonFileStore
from .templates import TemplateCatalog
from .transport import Transport


logger = structlog.get_logger(__name__)


class NotificationCenter:
    """通知中心"""

    def __init__(
        self,
        settings: Optional[NotificationSettings] = None,
        store: Optional[EntityStore] = None,
        transports: Optional[Dict[str, Transport]] = None,
        clock: Optional[Callable[[], datetime]] = None,
        sleep: Optional[Callable[[float], Awaitable[Any]]] = None
    ):
        self.settings = settings or default_settings
        if store is None:
            store = JsonFileStore(self.settings.store_dir) if self.settings.store_dir else InMemoryStore()
        self.store = store

        self.mapping = ParamMappingTable(default_param_mappings())
        self.catalog = TemplateCatalog(default_templates())
        self.renderer = Renderer(self.catalog)
        self.registry = ChannelRegistry(
            rate_window_seconds=self.settings.dispatch.rate_window_seconds,
            metrics_window_size=self.settings.dispatch.metrics_window_size,
        )
        self.statistics = StatisticsAggregator()
        self.alerts = AlertEvaluator(self.settings.alert.rules, clock=clock)
        self.bus = OutcomeBus()
        self.dispatcher = Dispatcher(
            registry=self.registry,
            mapping=self.mapping,
            renderer=self.renderer,
            transports=transports,
            bus=self.bus,
            clock=clock,
            sleep=sleep,
            production=self.settings.dispatch.production_mode,
        )
        self.bus.subscribe(self._on_outcome)

        self._tasks: Dict[str, asyncio.Task] = {}
        self._tokens: Dict[str, CancellationToken] = {}

    @classmethod
    def from_settings(cls, settings: NotificationSettings, **kwargs) -> "NotificationCenter":
        """初始化日志并从存储加载状态"""
        setup_logging(settings.logging)
        center = cls(settings=settings, **kwargs)
        center.load()
        return center

    def load(self):
        """从存储加载渠道、模板、参数映射、告警和历史投递记录"""
        channels = self.store.load_all(EntityKind.CHANNEL)
        self.registry.load(channels)

        templates = self.store.load_all(EntityKind.TEMPLATE)
        if templates:
            self.catalog.load(templates)

        mappings = self.store.load_all(EntityKind.PARAM_MAPPING)
        if mappings:
            self.mapping.load(mappings)

        self.alerts.load(self.store.load_all(EntityKind.ALERT))

        self.statistics.clear()
        recorded = self.statistics.record_many(self.store.load_all(EntityKind.OUTCOME))

        logger.info(
            "notification_center_loaded",
            channels=len(channels),
            templates=len(self.catalog.list_templates()),
            outcomes=recorded,
        )

    def register_transport(self, channel_type: str, transport: Transport):
        self.dispatcher.register_transport(channel_type, transport)

    async def test_channel(self, channel_id: str, recipient: Optional[str] = None) -> TransportResult:
        """
        向渠道发送一条连接测试消息

        Args:
            channel_id: 渠道ID
            recipient: 接收人，渠道要求接收人时需要提供

        Returns:
            TransportResult: 传输层返回结果，发送异常时为失败结果

        Raises:
            ChannelNotFound: 渠道不存在
        """
        channel = self.registry.get(channel_id)
        fields = {
            "subject": "渠道连接测试",
            "content": f"这是一条来自通知中心的连接测试消息，渠道: {channel.name}",
            "recipient": recipient,
        }
        result = await self.dispatcher.send_test_message(channel, fields)

        log = logger.info if result.success else logger.warning
        log(
            "channel_test_finished",
            channel_id=channel_id,
            success=result.success,
            response_time_ms=result.response_time_ms,
            error=result.error_reason,
        )
        return result

    # 投递

    def _register(self, notification: Notification) -> CancellationToken:
        """登记投递中的通知，同一ID同时只能有一次投递"""
        if notification.id in self._tokens:
            raise DuplicateNotification(notification.id)
        token = CancellationToken()
        self._tokens[notification.id] = token
        return token

    def _release(self, notification_id: str, token: CancellationToken):
        if self._tokens.get(notification_id) is token:
            del self._tokens[notification_id]

    async def send(self, notification: Notification) -> DispatchResult:
        """
        投递通知并等待结果

        Raises:
            DuplicateNotification: 同一ID的通知仍在投递中
        """
        token = self._register(notification)
        return await self._dispatch(notification, token)

    async def _dispatch(self, notification: Notification, token: CancellationToken) -> DispatchResult:
        logger.info(
            "notification_dispatch_started",
            notification_id=notification.id,
            template_id=notification.template_id,
        )
        try:
            result = await self.dispatcher.send(notification, token)
        finally:
            self._release(notification.id, token)

        log = logger.info if result.delivered else logger.warning
        log(
            "notification_dispatch_finished",
            notification_id=notification.id,
            state=result.state.value,
            channel_id=result.channel_id,
            attempts=result.attempts,
            error=result.error_reason,
        )
        return result

    def submit(self, notification: Notification) -> asyncio.Task:
        """
        在后台投递通知，返回可等待的任务

        Raises:
            DuplicateNotification: 同一ID的通知仍在投递中
        """
        token = self._register(notification)
        task = asyncio.create_task(self._dispatch(notification, token))
        self._tasks[notification.id] = task

        def _done(finished: asyncio.Task):
            if self._tasks.get(notification.id) is finished:
                del self._tasks[notification.id]
            # 任务在开始执行前被取消时 _dispatch 的 finally 不会运行
            self._release(notification.id, token)

        task.add_done_callback(_done)
        return task

    async def send_batch(self, notifications: List[Notification]) -> List[Any]:
        return await asyncio.gather(
            *(self.send(notification) for notification in notifications),
            return_exceptions=True
        )

    def cancel(self, notification_id: str) -> bool:
        """
        取消通知投递

        Returns:
            bool: 通知是否仍在投递中
        """
        token = self._tokens.get(notification_id)
        if token is None:
            return False
        token.cancel()
        logger.info("notification_cancel_requested", notification_id=notification_id)
        return True

    async def wait_all(self):
        """等待所有后台投递完成"""
        tasks = list(self._tasks.values())
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

    # 投递记录订阅

    async def _save(self, kind: EntityKind, entity):
        """在线程池中写存储，文件IO不阻塞事件循环"""
        loop = asyncio.get_running_loop()
        await loop.run_in_executor(None, self.store.save_one, kind, entity)

    async def _on_outcome(self, outcome: DeliveryOutcome):
        self.statistics.record(outcome)
        await self._save(EntityKind.OUTCOME, outcome)

        if not outcome.state.is_attempt_result or outcome.channel_id is None:
            return
        if not self.settings.alert.enabled:
            return

        try:
            channel = self.registry.get(outcome.channel_id)
        except NotFoundError:
            logger.warning("alert_channel_missing", channel_id=outcome.channel_id)
            return

        for alert in self.alerts.evaluate_channel(channel, outcome.timestamp):
            await self._save(EntityKind.ALERT, alert)
            logger.warning(
                "anomaly_alert_raised",
                alert_id=alert.id,
                subject_id=alert.subject_id,
                metric=alert.metric,
                value=alert.value,
                threshold=alert.threshold,
            )

    # 配置变更

    def add_channel(self, channel: Channel) -> Channel:
        violations = self.mapping.validate(channel)
        if violations:
            logger.warning("channel_mapping_incomplete", channel_id=channel.id, violations=violations)
        self.registry.register(channel)
        self.store.save_one(EntityKind.CHANNEL, channel)
        return self.registry.get(channel.id)

    def update_channel(self, channel_id: str, changes: ChannelUpdate) -> Channel:
        channel = self.registry.update(channel_id, changes)
        self.store.save_one(EntityKind.CHANNEL, channel)
        logger.info("channel_updated", channel_id=channel_id)
        return channel

    def enable_channel(self, channel_id: str) -> Channel:
        channel = self.registry.enable(channel_id)
        self.store.save_one(EntityKind.CHANNEL, channel)
        logger.info("channel_enabled", channel_id=channel_id)
        return channel

    def disable_channel(self, channel_id: str) -> Channel:
        channel = self.registry.disable(channel_id)
        self.store.save_one(EntityKind.CHANNEL, channel)
        logger.info("channel_disabled", channel_id=channel_id)
        return channel

    def update_mapping(
        self,
        standard_key: str,
        channel_type: str,
        param_key: str,
        description: str = "",
        is_required: bool = False
    ) -> ParamMappingEntry:
        entry = self.mapping.update_mapping(standard_key, channel_type, param_key, description, is_required)
        self.store.save_one(EntityKind.PARAM_MAPPING, entry)
        logger.info("param_mapping_updated", standard_key=standard_key, channel_type=channel_type)
        return entry

    def add_template(self, template: Template) -> Template:
        template = self.catalog.add(template)
        self.store.save_one(EntityKind.TEMPLATE, template)
        return template

    def publish_template(self, template_ref: str) -> Template:
        template = self.catalog.publish(template_ref)
        self.store.save_one(EntityKind.TEMPLATE, template)
        logger.info("template_published", template_id=template.id, code=template.code)
        return template

    def resolve_alert(self, alert_id: str) -> AnomalyAlert:
        alert = self.alerts.resolve(alert_id)
        self.store.save_one(EntityKind.ALERT, alert)
        logger.info("anomaly_alert_resolved", alert_id=alert_id)
        return alert

    def evaluate_metric(self, sample: MetricSample) -> Optional[AnomalyAlert]:
        """评估外部上报的指标（系统消息量、消息未读率等）"""
        alert = self.alerts.evaluate(sample)
        if alert is not None:
            self.store.save_one(EntityKind.ALERT, alert)
        return alert

    # 查询

    def preview_template(self, template_ref: str, values: Dict[str, Any]) -> Dict[str, str]:
        return self.renderer.preview(template_ref, values)

    def get_statistics(self, period: Period = Period.DAILY) -> Dict[str, Any]:
        """
        获取统计信息

        Returns:
            Dict[str, Any]: 合计、时间序列、各维度分布和active告警数
        """
        totals = self.statistics.totals()
        return {
            "total": totals.total,
            "success": totals.success,
            "failed": totals.failed,
            "success_rate": totals.success_rate,
            "series": [row.to_dict() for row in self.statistics.summary(period)],
            "channel_distribution": [
                row.to_dict() for row in self.statistics.breakdown(Dimension.CHANNEL, period)
            ],
            "system_distribution": [
                row.to_dict() for row in self.statistics.breakdown(Dimension.SYSTEM, period)
            ],
            "type_distribution": [
                row.to_dict() for row in self.statistics.breakdown(Dimension.MESSAGE_TYPE, period)
            ],
            "active_alerts": len(self.alerts.active_alerts()),
            "in_flight": len(self._tasks),
        }
