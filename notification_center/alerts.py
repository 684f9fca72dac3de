"""
异常告警评估

阈值被突破时生成active告警；同一 (类型, 对象, 指标) 已有active告警时不重复生成。
指标恢复到阈值以下不会自动解除告警，只能显式调用 resolve。
"""

import logging
import math
import threading
from datetime import datetime
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple, Union

from pydantic import ValidationError

from shared.models import (
    AlertRule, AlertStatus, AlertType, AnomalyAlert, Channel, MetricSample
)
from .exceptions import AlertNotFound


logger = logging.getLogger(__name__)


class AlertEvaluator:
    """告警评估器"""

    def __init__(
        self,
        rules: Iterable[AlertRule] = (),
        clock: Optional[Callable[[], datetime]] = None
    ):
        self._rules: Dict[Tuple[AlertType, str], AlertRule] = {}
        self._alerts: Dict[str, AnomalyAlert] = {}
        self._lock = threading.Lock()
        self._clock = clock or datetime.now
        self.load_rules(rules)

    def load_rules(self, rules: Iterable[Union[AlertRule, Dict[str, Any]]]) -> int:
        """加载阈值规则，配置错误的规则记录日志后跳过"""
        loaded = 0
        for raw in rules:
            try:
                rule = raw if isinstance(raw, AlertRule) else AlertRule.model_validate(raw)
            except ValidationError as e:
                logger.error(f"告警规则配置错误，已跳过: {raw}, 错误: {e}")
                continue
            self.set_rule(rule)
            loaded += 1
        return loaded

    def set_rule(self, rule: AlertRule):
        self._rules[(rule.type, rule.metric)] = rule

    def rules(self) -> List[AlertRule]:
        return list(self._rules.values())

    def load(self, alerts: Iterable[AnomalyAlert]):
        """加载历史告警，用于恢复active告警的去重状态"""
        with self._lock:
            self._alerts = {alert.id: alert for alert in alerts}
        logger.info(f"加载告警记录: {len(self._alerts)} 条")

    def _find_active(self, sample: MetricSample) -> Optional[AnomalyAlert]:
        for alert in self._alerts.values():
            if alert.is_active and alert.identity == (sample.type, sample.subject_id, sample.metric):
                return alert
        return None

    def evaluate(self, sample: MetricSample) -> Optional[AnomalyAlert]:
        """
        评估一个指标样本

        Args:
            sample: 指标样本

        Returns:
            Optional[AnomalyAlert]: 新生成的告警；未突破阈值或已有active告警时返回None
        """
        rule = self._rules.get((sample.type, sample.metric))
        if rule is None:
            return None

        try:
            threshold = float(rule.threshold)
            value = float(sample.value)
            if math.isnan(threshold) or math.isnan(value):
                raise ValueError("阈值或指标值为NaN")
            breached = rule.is_breached(value)
        except (TypeError, ValueError) as e:
            logger.error(f"告警规则配置错误 {sample.type.value}/{sample.metric}: {e}")
            return None

        if not breached:
            return None

        with self._lock:
            existing = self._find_active(sample)
            if existing is not None:
                logger.debug(f"已存在active告警，跳过: {existing.id}")
                return None

            alert = AnomalyAlert(
                title=rule.title or f"{sample.subject_id} {sample.metric} 异常",
                level=rule.level,
                type=sample.type,
                subject_id=sample.subject_id,
                metric=sample.metric,
                value=value,
                threshold=threshold,
                status=AlertStatus.ACTIVE,
                timestamp=sample.timestamp,
                created_at=self._clock(),
            )
            self._alerts[alert.id] = alert

        logger.warning(
            f"触发告警 [{alert.level.value}] {alert.title}: "
            f"{alert.subject_id} {alert.metric}={value} 阈值={threshold}"
        )
        return alert

    def evaluate_many(self, samples: Iterable[MetricSample]) -> List[AnomalyAlert]:
        alerts = []
        for sample in samples:
            alert = self.evaluate(sample)
            if alert is not None:
                alerts.append(alert)
        return alerts

    def evaluate_channel(self, channel: Channel, now: Optional[datetime] = None) -> List[AnomalyAlert]:
        """根据渠道健康指标生成样本并评估"""
        now = now or self._clock()
        metrics = channel.monitor_metrics
        samples = [
            MetricSample(AlertType.CHANNEL, channel.id, "failureRate", metrics.failure_rate, now),
            MetricSample(AlertType.CHANNEL, channel.id, "availability", metrics.availability, now),
            MetricSample(AlertType.CHANNEL, channel.id, "avgResponseTime", metrics.avg_response_time_ms, now),
        ]
        return self.evaluate_many(samples)

    def resolve(self, alert_id: str) -> AnomalyAlert:
        """
        解除告警

        Raises:
            AlertNotFound: 告警不存在
        """
        with self._lock:
            alert = self._alerts.get(alert_id)
            if alert is None:
                raise AlertNotFound(alert_id)
            if alert.is_active:
                now = self._clock()
                alert = alert.model_copy(update={
                    "status": AlertStatus.RESOLVED,
                    "resolved_at": now,
                    "updated_at": now,
                })
                self._alerts[alert_id] = alert
        logger.info(f"告警已解除: {alert_id}")
        return alert

    def get(self, alert_id: str) -> AnomalyAlert:
        with self._lock:
            alert = self._alerts.get(alert_id)
        if alert is None:
            raise AlertNotFound(alert_id)
        return alert

    def list_alerts(self, status: Optional[AlertStatus] = None) -> List[AnomalyAlert]:
        with self._lock:
            alerts = list(self._alerts.values())
        if status is not None:
            alerts = [alert for alert in alerts if alert.status == status]
        return sorted(alerts, key=lambda a: a.timestamp)

    def active_alerts(self) -> List[AnomalyAlert]:
        return self.list_alerts(AlertStatus.ACTIVE)
