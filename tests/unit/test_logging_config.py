"""
Unit Tests for Logging Configuration
"""

import json
import logging
import pytest
from pathlib import Path

import sys
sys.path.insert(0, str(Path(__file__).parent.parent.parent / 'src'))

from common.config import LoggingConfig, RadioCityConfig
from common.logging_config import (
    ENGINE_LOGGERS,
    JSONFormatter,
    MetricsLogger,
    ServiceLogger,
    setup_logging,
    setup_logging_from_config,
)


@pytest.fixture
def restore_loggers():
    """Undo handler and level changes made by setup_logging"""
    names = ("radiocity-test",) + ENGINE_LOGGERS
    yield names
    for name in names:
        logger = logging.getLogger(name)
        for handler in logger.handlers:
            handler.close()
        logger.handlers.clear()
        logger.setLevel(logging.NOTSET)


class TestJSONFormatter:

    def test_extras_become_fields(self):
        record = logging.LogRecord("radiocity", logging.INFO, __file__, 10, "hello %s", ("city",), None)
        record.service = "radiocity"
        record.component = "session"
        record.transmitters = 3

        data = json.loads(JSONFormatter().format(record))
        assert data['message'] == "hello city"
        assert data['level'] == "INFO"
        assert data['service'] == "radiocity"
        assert data['component'] == "session"
        assert data['transmitters'] == 3
        assert 'args' not in data
        assert 'msg' not in data

    def test_exception(self):
        try:
            raise ValueError("boom")
        except ValueError:
            record = logging.LogRecord("radiocity", logging.ERROR, __file__, 10, "failed", (), sys.exc_info())

        data = json.loads(JSONFormatter().format(record))
        assert "ValueError: boom" in data['exception']


class TestSetupLogging:

    def test_file_handler(self, tmp_path, restore_loggers):
        log_file = tmp_path / "logs" / "radiocity.log"
        logger = setup_logging("radiocity-test", log_level="DEBUG", log_file=str(log_file))

        logger.debug("written")
        for handler in logger.handlers:
            handler.flush()

        assert logger.level == logging.DEBUG
        assert len(logger.handlers) == 2
        assert json.loads(log_file.read_text().strip())['message'] == "written"

    def test_engine_loggers_configured(self, restore_loggers):
        setup_logging("radiocity-test", log_level="WARNING", json_format=False)
        for name in ENGINE_LOGGERS:
            engine_logger = logging.getLogger(name)
            assert engine_logger.level == logging.WARNING
            assert len(engine_logger.handlers) == 1

        module_logger = logging.getLogger("raytracer.geometry_index")
        assert module_logger.getEffectiveLevel() == logging.WARNING

    def test_repeated_setup_replaces_handlers(self, restore_loggers):
        setup_logging("radiocity-test", json_format=False)
        logger = setup_logging("radiocity-test", json_format=False)
        assert len(logger.handlers) == 1

    def test_from_config(self, tmp_path, restore_loggers):
        log_file = tmp_path / "engine.log"
        config = LoggingConfig(level="DEBUG", json_format=False, log_file=str(log_file))

        logger = setup_logging_from_config(config, service_name="radiocity-test")
        logger.debug("from config")
        for handler in logger.handlers:
            handler.flush()

        assert logger.level == logging.DEBUG
        line = log_file.read_text().strip()
        assert line.endswith("DEBUG - from config")

    def test_default_config_section(self, restore_loggers):
        logger = setup_logging_from_config(RadioCityConfig().logging, service_name="radiocity-test")
        assert logger.level == logging.INFO
        assert isinstance(logger.handlers[0].formatter, JSONFormatter)


class TestServiceLogger:

    def test_context_attached(self, caplog):
        logger = ServiceLogger("radiocity", "scheduler")
        with caplog.at_level(logging.INFO, logger="radiocity"):
            logger.info("rebuild", extra={'transmitters': 3})

        record = caplog.records[-1]
        assert record.service == "radiocity"
        assert record.component == "scheduler"
        assert record.transmitters == 3


class TestMetricsLogger:

    @pytest.mark.parametrize("method,name,expected", [
        ("log_counter", "ray_rebuilds_adopted", "ray_rebuilds_adopted_total"),
        ("log_gauge", "ray_bundle_count", "ray_bundle_count"),
    ])
    def test_metric_names(self, caplog, method, name, expected):
        metrics = MetricsLogger("radiocity")
        with caplog.at_level(logging.INFO, logger="radiocity.metrics"):
            getattr(metrics, method)(name, 2, labels={'transmitters': '3'})

        data = json.loads(caplog.records[-1].getMessage())
        assert data['metric'] == expected
        assert data['value'] == 2
        assert data['labels'] == {'transmitters': '3'}

    def test_timed_block(self, caplog):
        metrics = MetricsLogger("radiocity")
        with caplog.at_level(logging.INFO, logger="radiocity.metrics"):
            with metrics.timed("ray_rebuild"):
                pass

        data = json.loads(caplog.records[-1].getMessage())
        assert data['metric'] == "ray_rebuild_seconds"
        assert data['value'] >= 0.0

    def test_timed_block_logs_on_error(self, caplog):
        metrics = MetricsLogger("radiocity")
        with caplog.at_level(logging.INFO, logger="radiocity.metrics"):
            with pytest.raises(ZeroDivisionError):
                with metrics.timed("ray_rebuild"):
                    1 / 0

        assert json.loads(caplog.records[-1].getMessage())['metric'] == "ray_rebuild_seconds"

    def test_disabled_level_skips(self, caplog):
        metrics = MetricsLogger("radiocity")
        with caplog.at_level(logging.WARNING, logger="radiocity.metrics"):
            metrics.log_gauge("ray_bundle_count", 5)
        assert not caplog.records
