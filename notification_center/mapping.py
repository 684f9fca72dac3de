"""
标准参数到渠道参数的映射表
"""

import logging
import threading
from typing import Any, Dict, Iterable, List, Optional

from shared.models import (
    Channel, ChannelParamMapping, ParamMappingEntry, StandardParam, STANDARD_PARAM_KEYS
)
from .exceptions import NotFoundError


logger = logging.getLogger(__name__)


class ParamMappingTable:
    """参数映射表"""

    def __init__(self, entries: Iterable[ParamMappingEntry] = ()):
        self._entries: Dict[str, ParamMappingEntry] = {}
        self._lock = threading.Lock()
        for entry in entries:
            self._entries[entry.key] = entry

    def load(self, entries: Iterable[ParamMappingEntry]):
        """用持久化数据替换整个映射表"""
        with self._lock:
            self._entries = {entry.key: entry for entry in entries}
        logger.info(f"加载参数映射: {len(self._entries)} 条")

    def entries(self) -> List[ParamMappingEntry]:
        with self._lock:
            return [entry.model_copy(deep=True) for entry in self._entries.values()]

    def get_entry(self, standard_key: str) -> Optional[ParamMappingEntry]:
        with self._lock:
            entry = self._entries.get(standard_key)
            return entry.model_copy(deep=True) if entry else None

    def standard_params(self) -> List[StandardParam]:
        with self._lock:
            return [entry.standard_param for entry in self._entries.values()]

    def resolve(self, standard_key: str, channel_type: str) -> Optional[str]:
        """
        查找标准参数在渠道类型下的参数名

        Args:
            standard_key: 标准参数键
            channel_type: 渠道类型

        Returns:
            Optional[str]: 渠道参数名，不支持时返回None
        """
        with self._lock:
            entry = self._entries.get(standard_key)
            if entry is None:
                return None
            mapping = entry.mapping_for(channel_type)
            return mapping.param_key if mapping else None

    def resolve_for_channel(self, channel: Channel, standard_key: str) -> Optional[str]:
        """渠道自身配置了映射时以其为准，否则继承渠道类型的映射"""
        if channel.param_mapping:
            return channel.param_mapping.get(standard_key) or None
        return self.resolve(standard_key, channel.type)

    def map_fields(self, channel: Channel, values: Dict[str, Any]) -> Dict[str, Any]:
        """
        将标准字段转换为渠道负载，没有映射或值为空的字段直接丢弃

        Args:
            channel: 目标渠道
            values: 标准字段值

        Returns:
            Dict[str, Any]: 渠道负载
        """
        payload = {}
        for standard_key, value in values.items():
            if value is None or value == "":
                continue
            channel_key = self.resolve_for_channel(channel, standard_key)
            if channel_key is None:
                logger.debug(f"渠道 {channel.id} 不支持参数 {standard_key}，已丢弃")
                continue
            payload[channel_key] = value
        return payload

    def required_keys(self, channel: Channel) -> List[str]:
        """渠道要求必须提供值的标准参数"""
        keys = []
        with self._lock:
            for entry in self._entries.values():
                mapping = entry.mapping_for(channel.type)
                if mapping is None or not mapping.is_required:
                    continue
                if channel.param_mapping and not channel.param_mapping.get(entry.key):
                    continue
                keys.append(entry.key)
        return keys

    def validate(self, channel: Channel) -> List[str]:
        """
        检查必填标准参数在渠道上是否都有映射

        Returns:
            List[str]: 违规描述列表，为空表示通过
        """
        violations = []
        with self._lock:
            params = [entry.standard_param for entry in self._entries.values()]
        for param in params:
            if not param.required:
                continue
            if not self.resolve_for_channel(channel, param.key):
                violations.append(f"渠道 {channel.id}({channel.type}) 缺少必填参数映射: {param.key}")
        return violations

    def update_mapping(
        self,
        standard_key: str,
        channel_type: str,
        param_key: str,
        description: str = "",
        is_required: bool = False
    ) -> ParamMappingEntry:
        """
        更新某一标准参数在渠道类型下的映射，param_key为空表示取消支持

        Returns:
            ParamMappingEntry: 更新后的条目
        """
        if standard_key not in STANDARD_PARAM_KEYS:
            raise NotFoundError("标准参数", standard_key)

        with self._lock:
            entry = self._entries.get(standard_key)
            if entry is None:
                raise NotFoundError("参数映射", standard_key)
            mappings = dict(entry.mappings)
            mappings[channel_type] = ChannelParamMapping(
                param_key=param_key,
                description=description,
                is_required=is_required
            )
            updated = entry.model_copy(update={"mappings": mappings})
            self._entries[standard_key] = updated

        logger.info(f"更新参数映射: {standard_key} -> {channel_type}.{param_key or '(不支持)'}")
        return updated.model_copy(deep=True)
