"""
Logging setup for the resume pipeline API and its delivery workers.

One dictConfig drives the API process and the Celery worker alike, so both
write to the same rotating files under LOG_DIR.
"""
import functools
import inspect
import logging
import logging.config
import os
import time
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Optional

LOG_FORMATS = {
    "simple": "%(levelname)s - %(name)s - %(message)s",
    "detailed": "%(asctime)s | %(levelname)-8s | %(name)-32s | %(funcName)-24s:%(lineno)-4d | %(message)s",
}

# library loggers that get the pipeline's console and file handlers
SERVICE_LOGGERS = ("uvicorn", "uvicorn.access", "celery")
QUIET_LOGGERS = {"pdfminer": "ERROR", "pymongo": "WARNING", "httpx": "WARNING"}

ENVIRONMENT_PROFILES = {
    "production": {"enable_file": True, "format_style": "detailed"},
    "development": {"level": "DEBUG", "enable_file": True, "format_style": "detailed"},
    "testing": {"level": "WARNING", "enable_file": False, "format_style": "simple"},
}

MAX_LOG_BYTES = 10 * 1024 * 1024


def _rotating_file(path: Path, level: str) -> Dict[str, Any]:
    return {
        "class": "logging.handlers.RotatingFileHandler",
        "level": level,
        "formatter": "detailed",
        "filename": str(path),
        "maxBytes": MAX_LOG_BYTES,
        "backupCount": 5,
        "encoding": "utf8",
    }


def setup_logging(
    level: str = "INFO",
    log_file: Optional[str] = None,
    enable_console: bool = True,
    enable_file: bool = True,
    format_style: str = "detailed"
) -> None:
    """
    Configure the root, uvicorn and celery loggers.

    Args:
        level: Root logging level
        log_file: Log file path, defaults to LOG_DIR/pipeline_<date>.log
        enable_console: Log to stdout
        enable_file: Log to rotating files; errors also go to a separate file
        format_style: 'simple' or 'detailed'
    """
    stamp = datetime.now().strftime('%Y%m%d')
    log_dir = Path(os.getenv("LOG_DIR", "logs"))
    if enable_file:
        log_dir.mkdir(parents=True, exist_ok=True)
    log_file = Path(log_file) if log_file else log_dir / f"pipeline_{stamp}.log"

    handlers: Dict[str, Any] = {}
    if enable_console:
        handlers["console"] = {
            "class": "logging.StreamHandler",
            "level": level,
            "formatter": format_style if format_style in LOG_FORMATS else "detailed",
            "stream": "ext://sys.stdout",
        }
    if enable_file:
        handlers["file"] = _rotating_file(log_file, level)
        handlers["error_file"] = _rotating_file(log_dir / f"pipeline_errors_{stamp}.log", "ERROR")

    shared = [name for name in ("console", "file") if name in handlers]
    loggers: Dict[str, Any] = {"": {"level": level, "handlers": list(handlers), "propagate": False}}
    for name in SERVICE_LOGGERS:
        loggers[name] = {"level": "INFO", "handlers": shared, "propagate": False}
    for name, quiet_level in QUIET_LOGGERS.items():
        loggers[name] = {"level": quiet_level, "handlers": [], "propagate": True}

    logging.config.dictConfig({
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            name: {"format": fmt, "datefmt": "%Y-%m-%d %H:%M:%S"} for name, fmt in LOG_FORMATS.items()
        },
        "handlers": handlers,
        "loggers": loggers,
    })

    logger = get_logger("logging")
    logger.info(f"Logging configured - Level: {level}, Console: {enable_console}, File: {enable_file}")
    if enable_file:
        logger.info(f"Log file: {log_file}")


def get_logger(name: str) -> logging.Logger:
    """Loggers live under the 'pipeline.' namespace."""
    return logging.getLogger(f"pipeline.{name}")


def configure_for_environment() -> None:
    """Pick a logging profile from ENVIRONMENT; LOG_LEVEL overrides the level outside development and testing."""
    environment = os.getenv("ENVIRONMENT", "development").lower()
    profile = dict(ENVIRONMENT_PROFILES.get(environment, {}))
    profile.setdefault("level", os.getenv("LOG_LEVEL", "INFO").upper())
    setup_logging(**profile)


def log_function_call(func):
    """Log entry, duration and failures of a sync or async callable at DEBUG/ERROR."""
    logger = get_logger(func.__module__)

    def _done(start: float, error: Optional[Exception] = None) -> None:
        elapsed = time.perf_counter() - start
        if error is None:
            logger.debug(f"Completed {func.__qualname__} in {elapsed:.3f}s")
        else:
            logger.error(f"Error in {func.__qualname__} after {elapsed:.3f}s: {error}")

    @functools.wraps(func)
    async def async_wrapper(*args, **kwargs):
        logger.debug(f"Entering {func.__qualname__} with kwargs={list(kwargs)}")
        start = time.perf_counter()
        try:
            result = await func(*args, **kwargs)
        except Exception as e:
            _done(start, e)
            raise
        _done(start)
        return result

    @functools.wraps(func)
    def sync_wrapper(*args, **kwargs):
        logger.debug(f"Entering {func.__qualname__} with kwargs={list(kwargs)}")
        start = time.perf_counter()
        try:
            result = func(*args, **kwargs)
        except Exception as e:
            _done(start, e)
            raise
        _done(start)
        return result

    return async_wrapper if inspect.iscoroutinefunction(func) else sync_wrapper


class PerformanceMonitor:
    """Times a block (document extraction, oracle calls) and warns past a threshold"""

    def __init__(self, operation_name: str, logger: logging.Logger = None, threshold_ms: float = 1000):
        self.operation_name = operation_name
        self.logger = logger or get_logger("performance")
        self.threshold_ms = threshold_ms
        self.elapsed_ms: Optional[float] = None
        self._start = 0.0

    def __enter__(self):
        self._start = time.perf_counter()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.elapsed_ms = (time.perf_counter() - self._start) * 1000
        if exc_type is not None:
            self.logger.error(f"{self.operation_name} failed after {self.elapsed_ms:.2f}ms: {exc_val}")
        elif self.elapsed_ms > self.threshold_ms:
            self.logger.warning(
                f"{self.operation_name} took {self.elapsed_ms:.2f}ms (threshold {self.threshold_ms}ms)"
            )
        else:
            self.logger.debug(f"{self.operation_name} took {self.elapsed_ms:.2f}ms")
        return False
