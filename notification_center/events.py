"""
投递结果事件总线
"""

import asyncio
import logging
from typing import Callable, List

from shared.models import DeliveryOutcome


logger = logging.getLogger(__name__)


OutcomeHandler = Callable[[DeliveryOutcome], object]


class OutcomeBus:
    """把调度器产生的投递记录分发给统计、健康指标和告警等订阅者"""

    def __init__(self):
        self._handlers: List[OutcomeHandler] = []

    def subscribe(self, handler: OutcomeHandler):
        """订阅投递记录"""
        self._handlers.append(handler)
        logger.debug(f"订阅投递记录处理器: {getattr(handler, '__qualname__', handler)}")

    def unsubscribe(self, handler: OutcomeHandler):
        """取消订阅"""
        try:
            self._handlers.remove(handler)
        except ValueError:
            pass

    async def publish(self, outcome: DeliveryOutcome):
        """
        发布投递记录

        订阅者的异常只记录日志，不影响投递流程。
        """
        if not self._handlers:
            return

        tasks = []
        for handler in list(self._handlers):
            try:
                result = handler(outcome)
            except Exception as e:
                logger.error(f"投递记录处理器执行失败: {e}")
                continue
            if asyncio.iscoroutine(result):
                tasks.append(result)

        if tasks:
            results = await asyncio.gather(*tasks, return_exceptions=True)
            for i, result in enumerate(results):
                if isinstance(result, Exception):
                    logger.error(f"异步投递记录处理器 {i} 执行失败: {result}")
