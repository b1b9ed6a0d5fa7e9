"""
Logging Configuration for RadioCity

Engine code logs through two channels:

- Module loggers (``logging.getLogger(__name__)``) in the ``raytracer``,
  ``analysis``, ``session`` and ``explanation`` packages.
- ``ServiceLogger`` / ``MetricsLogger`` under the ``radiocity`` service
  logger, which tag records with a component and emit metric lines.

setup_logging() attaches the same handlers to the service logger and the
engine package loggers, so one call configures the whole engine.
"""

import logging
import sys
import json
import time
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Dict, Any, Iterator, Optional
from pathlib import Path

from .config import LoggingConfig

SERVICE_NAME = "radiocity"
ENGINE_LOGGERS = ("raytracer", "analysis", "session", "explanation")

# LogRecord attributes that are not user-supplied extras
_RECORD_FIELDS = set(vars(logging.LogRecord("", 0, "", 0, "", (), None))) | {"message", "asctime"}


class JSONFormatter(logging.Formatter):
    """
    One JSON object per record. Extras passed via ``extra=`` (component,
    transmitter counts, status codes) become top-level keys.
    """

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            'timestamp': datetime.now(timezone.utc).isoformat(),
            'level': record.levelname,
            'logger': record.name,
            'message': record.getMessage(),
            'module': record.module,
            'line': record.lineno,
        }

        for key, value in vars(record).items():
            if key not in _RECORD_FIELDS and key not in log_data:
                log_data[key] = value

        if record.exc_info:
            log_data['exception'] = self.formatException(record.exc_info)

        return json.dumps(log_data, default=str)


def setup_logging(
    service_name: str = SERVICE_NAME,
    log_level: str = "INFO",
    log_file: Optional[str] = None,
    json_format: bool = True
) -> logging.Logger:
    """
    Set up logging for the engine

    Args:
        service_name: Service logger name
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_file: Optional log file path (None for stdout only)
        json_format: Use JSON formatting (True) or simple text (False)

    Returns:
        The configured service logger
    """
    level = getattr(logging, log_level.upper())

    if json_format:
        formatter = JSONFormatter()
    else:
        formatter = logging.Formatter(
            '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
        )

    handlers = [logging.StreamHandler(sys.stdout)]
    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_file))

    for handler in handlers:
        handler.setLevel(level)
        handler.setFormatter(formatter)

    for name in (service_name,) + ENGINE_LOGGERS:
        logger = logging.getLogger(name)
        logger.setLevel(level)
        logger.handlers.clear()
        for handler in handlers:
            logger.addHandler(handler)

    return logging.getLogger(service_name)


def setup_logging_from_config(config: LoggingConfig, service_name: str = SERVICE_NAME) -> logging.Logger:
    """Set up logging from the ``logging`` section of RadioCityConfig."""
    return setup_logging(
        service_name,
        log_level=config.level,
        log_file=config.log_file,
        json_format=config.json_format,
    )


class ServiceLogger:
    """
    Component-tagged logger under the service logger
    """

    def __init__(self, service_name: str, component: Optional[str] = None):
        self.logger = logging.getLogger(service_name)
        self.service_name = service_name
        self.component = component

    def _add_context(self, extra: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        context = {'service': self.service_name}
        if self.component:
            context['component'] = self.component
        if extra:
            context.update(extra)
        return context

    def debug(self, message: str, extra: Optional[Dict[str, Any]] = None):
        self.logger.debug(message, extra=self._add_context(extra))

    def info(self, message: str, extra: Optional[Dict[str, Any]] = None):
        self.logger.info(message, extra=self._add_context(extra))

    def error(self, message: str, extra: Optional[Dict[str, Any]] = None, exc_info: bool = False):
        self.logger.error(message, extra=self._add_context(extra), exc_info=exc_info)


class MetricsLogger:
    """
    Engine metrics (rebuild timings, bundle counts, handovers) as JSON lines
    on the ``<service>.metrics`` logger.

    Example:
        metrics = MetricsLogger("radiocity")
        with metrics.timed("ray_rebuild", labels={'transmitters': '3'}):
            bundles = tracer.build_all(snapshot)
    """

    def __init__(self, service_name: str):
        self.logger = logging.getLogger(f"{service_name}.metrics")

    def log_metric(self, metric_name: str, value: float, labels: Optional[Dict[str, str]] = None):
        """
        Log a metric value

        Args:
            metric_name: Name of the metric
            value: Metric value
            labels: Optional metric labels
        """
        if not self.logger.isEnabledFor(logging.INFO):
            return

        metric_data = {'metric': metric_name, 'value': value}
        if labels:
            metric_data['labels'] = labels

        self.logger.info(json.dumps(metric_data))

    def log_counter(self, name: str, increment: int = 1, labels: Optional[Dict[str, str]] = None):
        """Log a counter increment"""
        self.log_metric(f"{name}_total", increment, labels)

    def log_gauge(self, name: str, value: float, labels: Optional[Dict[str, str]] = None):
        """Log a gauge value"""
        self.log_metric(name, value, labels)

    @contextmanager
    def timed(self, name: str, labels: Optional[Dict[str, str]] = None) -> Iterator[None]:
        """Time the enclosed block and log it as ``<name>_seconds``."""
        start = time.perf_counter()
        try:
            yield
        finally:
            self.log_metric(f"{name}_seconds", time.perf_counter() - start, labels)
