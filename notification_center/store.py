"""
持久化接口

通知中心只依赖 load_all / save_one 两个操作，存储引擎本身不在本模块范围内。
"""

import json
import logging
import os
import threading
from abc import ABC, abstractmethod
from enum import Enum
from pathlib import Path
from typing import Dict, List, Optional, Type

from pydantic import BaseModel

from shared.models import AnomalyAlert, Channel, DeliveryOutcome, ParamMappingEntry, Template


logger = logging.getLogger(__name__)


class EntityKind(str, Enum):
    """持久化实体类型"""
    CHANNEL = "channels"
    TEMPLATE = "templates"
    PARAM_MAPPING = "param_mappings"
    OUTCOME = "outcomes"
    ALERT = "alerts"


ENTITY_MODELS: Dict[EntityKind, Type[BaseModel]] = {
    EntityKind.CHANNEL: Channel,
    EntityKind.TEMPLATE: Template,
    EntityKind.PARAM_MAPPING: ParamMappingEntry,
    EntityKind.OUTCOME: DeliveryOutcome,
    EntityKind.ALERT: AnomalyAlert,
}


def entity_key(kind: EntityKind, entity: BaseModel) -> Optional[str]:
    """实体的唯一键，投递记录只追加，没有键"""
    if kind == EntityKind.PARAM_MAPPING:
        return entity.key
    if kind == EntityKind.OUTCOME:
        return None
    return entity.id


class EntityStore(ABC):
    """实体存储接口"""

    @abstractmethod
    def load_all(self, kind: EntityKind) -> List[BaseModel]:
        """加载某类实体的全部记录"""
        pass

    @abstractmethod
    def save_one(self, kind: EntityKind, entity: BaseModel):
        """保存一条实体记录，有键的实体按键覆盖"""
        pass


class InMemoryStore(EntityStore):
    """内存存储"""

    def __init__(self):
        self._data: Dict[EntityKind, List[BaseModel]] = {kind: [] for kind in EntityKind}
        self._lock = threading.Lock()

    def load_all(self, kind: EntityKind) -> List[BaseModel]:
        with self._lock:
            return [entity.model_copy(deep=True) for entity in self._data[kind]]

    def save_one(self, kind: EntityKind, entity: BaseModel):
        key = entity_key(kind, entity)
        with self._lock:
            records = self._data[kind]
            if key is not None:
                records[:] = [r for r in records if entity_key(kind, r) != key]
            records.append(entity.model_copy(deep=True))


class JsonFileStore(EntityStore):
    """
    JSON文件存储

    有键的实体每类一个JSON列表文件，整体重写；投递记录写入 outcomes.jsonl，
    每条记录一行，只追加不重写。
    """

    def __init__(self, directory: str):
        self.directory = Path(directory)
        self.directory.mkdir(parents=True, exist_ok=True)
        self._lock = threading.Lock()

    def _path(self, kind: EntityKind) -> Path:
        if kind == EntityKind.OUTCOME:
            return self.directory / f"{kind.value}.jsonl"
        return self.directory / f"{kind.value}.json"

    def _read(self, kind: EntityKind) -> List[dict]:
        path = self._path(kind)
        if not path.is_file():
            return []
        with open(path, "r", encoding="utf-8") as f:
            if kind == EntityKind.OUTCOME:
                return [json.loads(line) for line in f if line.strip()]
            raw = json.load(f)
        if not isinstance(raw, list):
            raise ValueError(f"存储文件格式错误，应为列表: {path}")
        return raw

    def _write(self, kind: EntityKind, records: List[dict]):
        path = self._path(kind)
        tmp_path = path.with_suffix(".json.tmp")
        with open(tmp_path, "w", encoding="utf-8") as f:
            json.dump(records, f, ensure_ascii=False, indent=2)
        os.replace(tmp_path, path)

    def _append(self, kind: EntityKind, entity: BaseModel):
        with open(self._path(kind), "a", encoding="utf-8") as f:
            f.write(entity.model_dump_json() + "\n")

    def load_all(self, kind: EntityKind) -> List[BaseModel]:
        model = ENTITY_MODELS[kind]
        with self._lock:
            records = self._read(kind)
        entities = [model.model_validate(record) for record in records]
        logger.debug(f"从 {self._path(kind)} 加载 {len(entities)} 条记录")
        return entities

    def save_one(self, kind: EntityKind, entity: BaseModel):
        model = ENTITY_MODELS[kind]
        key = entity_key(kind, entity)
        with self._lock:
            if key is None:
                self._append(kind, entity)
                return
            records = [
                r for r in self._read(kind)
                if entity_key(kind, model.model_validate(r)) != key
            ]
            records.append(entity.model_dump(mode="json"))
            self._write(kind, records)
