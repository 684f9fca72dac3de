"""
配置与日志单元测试
"""

import logging
import logging.handlers

from shared.config import AlertConfig, DispatchConfig, LoggingConfig, NotificationSettings
from shared.logger import build_formatter, setup_logger, setup_logging
from shared.models import AlertType


class TestSettings:
    """测试配置加载"""

    def test_defaults(self):
        """测试默认配置"""
        settings = NotificationSettings()

        assert settings.store_dir is None
        assert settings.dispatch.rate_window_seconds == 60
        assert settings.dispatch.metrics_window_size == 100
        assert settings.dispatch.production_mode is True
        assert settings.alert.enabled is True
        assert {(rule.type, rule.metric) for rule in settings.alert.rules} == {
            (AlertType.CHANNEL, "failureRate"),
            (AlertType.SYSTEM, "volumeGrowth"),
            (AlertType.MESSAGE_TYPE, "unreadRate"),
        }

    def test_env_override(self, monkeypatch):
        """测试环境变量覆盖"""
        monkeypatch.setenv("NOTIFY_DISPATCH_RATE_WINDOW_SECONDS", "30")
        monkeypatch.setenv("NOTIFY_DISPATCH_PRODUCTION_MODE", "false")
        monkeypatch.setenv("NOTIFY_STORE_DIR", "/tmp/notify")

        settings = NotificationSettings()

        assert settings.dispatch.rate_window_seconds == 30
        assert settings.dispatch.production_mode is False
        assert settings.store_dir == "/tmp/notify"

    def test_alert_rules_from_env(self, monkeypatch):
        """测试从环境变量加载告警规则"""
        monkeypatch.setenv(
            "NOTIFY_ALERT_RULES",
            '[{"type": "channel", "metric": "failureRate", "threshold": 10, "level": "low"}]'
        )

        config = AlertConfig()

        assert len(config.rules) == 1
        assert config.rules[0].threshold == 10

    def test_dispatch_config_direct(self):
        """测试直接构造配置"""
        config = DispatchConfig(rate_window_seconds=5, metrics_window_size=10)

        assert config.rate_window_seconds == 5


class TestLogger:
    """测试日志初始化"""

    def test_rotating_file_handler(self, tmp_path):
        """测试配置日志文件时使用轮转处理器"""
        log_file = tmp_path / "logs" / "notify.log"

        logger = setup_logger(
            name="test_notify_file", level="DEBUG", log_file=str(log_file), console_output=False
        )

        assert logger.level == logging.DEBUG
        assert any(
            isinstance(h, logging.handlers.RotatingFileHandler) for h in logger.handlers
        )
        assert log_file.parent.is_dir()

    def test_no_duplicate_handlers(self):
        """测试重复初始化不会重复添加处理器"""
        first = setup_logger(name="test_notify_console")
        count = len(first.handlers)

        second = setup_logger(name="test_notify_console")

        assert second is first
        assert len(second.handlers) == count

    def test_setup_logging_from_config(self):
        """测试根据配置初始化"""
        logger = setup_logging(LoggingConfig(level="WARNING"), name="test_notify_config")

        assert logger.level == logging.WARNING

    def test_formatter_renders_key_value(self):
        """测试标准logging记录输出为 key=value 行"""
        record = logging.LogRecord(
            name="notification_center.channels", level=logging.WARNING, pathname=__file__,
            lineno=1, msg="渠道 %s 已达到限流", args=("sms-main",), exc_info=None
        )

        line = build_formatter().format(record)

        assert line.startswith("timestamp=")
        assert "level='warning'" in line
        assert "logger='notification_center.channels'" in line
        assert "event='渠道 sms-main 已达到限流'" in line
        assert "_record" not in line

    def test_file_output_uses_formatter(self, tmp_path):
        """测试写入日志文件的内容使用统一格式"""
        log_file = tmp_path / "notify.log"
        logger = setup_logger(
            name="test_notify_format", log_file=str(log_file), console_output=False
        )

        logger.info("发送完成")
        for handler in logger.handlers:
            handler.flush()

        content = log_file.read_text(encoding="utf-8")
        assert "event='日志系统已初始化，日志文件: " in content
        assert "event='发送完成'" in content
