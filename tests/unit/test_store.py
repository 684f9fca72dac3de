"""
持久化存储单元测试
"""

import json
import pytest
from datetime import datetime

from shared.models import DeliveryOutcome, DispatchState
from notification_center.defaults import default_param_mappings, default_templates
from notification_center.store import EntityKind, InMemoryStore, JsonFileStore


def _outcome(notification_id):
    return DeliveryOutcome(
        notification_id=notification_id,
        state=DispatchState.PENDING,
        timestamp=datetime(2024, 1, 15, 10, 0),
    )


@pytest.fixture(params=["memory", "json"])
def store(request, tmp_path):
    if request.param == "memory":
        return InMemoryStore()
    return JsonFileStore(str(tmp_path / "store"))


class TestEntityStore:
    """测试存储接口"""

    def test_empty(self, store):
        """测试空存储"""
        for kind in EntityKind:
            assert store.load_all(kind) == []

    def test_upsert_by_key(self, store, make_channel):
        """测试有键的实体按键覆盖"""
        store.save_one(EntityKind.CHANNEL, make_channel(priority=1))
        store.save_one(EntityKind.CHANNEL, make_channel(priority=5))
        store.save_one(EntityKind.CHANNEL, make_channel(id="sms-main", type="sms"))

        channels = store.load_all(EntityKind.CHANNEL)

        assert sorted(c.id for c in channels) == ["email-main", "sms-main"]
        assert [c.priority for c in channels if c.id == "email-main"] == [5]

    def test_outcomes_append_only(self, store):
        """测试投递记录只追加"""
        store.save_one(EntityKind.OUTCOME, _outcome("n1"))
        store.save_one(EntityKind.OUTCOME, _outcome("n1"))

        assert len(store.load_all(EntityKind.OUTCOME)) == 2

    def test_param_mapping_keyed_by_standard_param(self, store):
        """测试参数映射按标准参数覆盖"""
        entries = default_param_mappings()
        for entry in entries:
            store.save_one(EntityKind.PARAM_MAPPING, entry)
        store.save_one(EntityKind.PARAM_MAPPING, entries[0])

        loaded = store.load_all(EntityKind.PARAM_MAPPING)

        assert len(loaded) == len(entries)

    def test_templates_preserved(self, store):
        """测试模板保存后内容一致"""
        template = default_templates()[0]
        store.save_one(EntityKind.TEMPLATE, template)

        loaded = store.load_all(EntityKind.TEMPLATE)[0]

        assert loaded.code == template.code
        assert loaded.content == template.content
        assert loaded.variable_config == template.variable_config


class TestJsonFileStore:
    """测试JSON文件存储"""

    def test_survives_reopen(self, tmp_path, make_channel):
        """测试重新打开后数据仍在"""
        directory = str(tmp_path / "data")
        JsonFileStore(directory).save_one(EntityKind.CHANNEL, make_channel())

        channels = JsonFileStore(directory).load_all(EntityKind.CHANNEL)

        assert channels[0].id == "email-main"
        assert (tmp_path / "data" / "channels.json").is_file()

    def test_invalid_document(self, tmp_path):
        """测试格式错误的存储文件"""
        store = JsonFileStore(str(tmp_path))
        (tmp_path / "alerts.json").write_text(json.dumps({"id": "x"}), encoding="utf-8")

        with pytest.raises(ValueError):
            store.load_all(EntityKind.ALERT)

    def test_outcomes_written_as_json_lines(self, tmp_path):
        """测试投递记录每条一行追加写入，已写入的行不被改写"""
        store = JsonFileStore(str(tmp_path))
        path = tmp_path / "outcomes.jsonl"

        store.save_one(EntityKind.OUTCOME, _outcome("n1"))
        first_line = path.read_text(encoding="utf-8").splitlines()[0]
        store.save_one(EntityKind.OUTCOME, _outcome("n2"))
        store.save_one(EntityKind.OUTCOME, _outcome("n3"))

        lines = path.read_text(encoding="utf-8").splitlines()
        assert len(lines) == 3
        assert lines[0] == first_line
        assert json.loads(lines[2])["notification_id"] == "n3"
        assert not (tmp_path / "outcomes.json").exists()

        reloaded = JsonFileStore(str(tmp_path)).load_all(EntityKind.OUTCOME)
        assert [o.notification_id for o in reloaded] == ["n1", "n2", "n3"]

    def test_blank_outcome_lines_ignored(self, tmp_path):
        """测试读取投递记录时忽略空行"""
        line = _outcome("n1").model_dump_json()
        (tmp_path / "outcomes.jsonl").write_text(f"{line}\n\n{line}\n", encoding="utf-8")

        outcomes = JsonFileStore(str(tmp_path)).load_all(EntityKind.OUTCOME)

        assert len(outcomes) == 2
