"""
Structured Logger for SwapGuard
Console and rotating-file logging with JSON or text formatting
"""

import json
import logging
import sys
import traceback
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, Dict, Optional

from utils.errors import (
    ConfigurationError,
    NetworkError,
    ValidationError,
)

logger = logging.getLogger(__name__)


class StructuredLogger:
    """
    Structured logging system with multiple outputs
    """

    def __init__(self, name: str = "SwapGuard", config: Optional[Dict] = None):
        """Initialize structured logger"""
        self.name = name

        default_config = self._default_config()
        if config:
            default_config.update(config)

        self.config = default_config
        self.setup_logging()

    def _default_config(self) -> Dict:
        """Default logging configuration"""
        return {
            "log_level": "INFO",
            "log_dir": "logs",
            "max_file_size": 10 * 1024 * 1024,  # 10MB
            "backup_count": 10,
            "format": "text",  # json or text
            "outputs": ["console", "file"],
            "error_tracking": True,
        }

    def _get_formatter(self, output_type: str) -> logging.Formatter:
        """Get appropriate formatter for output type"""
        if self.config["format"] == "json" and output_type != "console":
            return JsonFormatter()
        return ColoredFormatter() if output_type == "console" else StandardFormatter()

    def setup_logging(self, config: Optional[Dict] = None) -> None:
        """
        Setup logging configuration

        Args:
            config: Optional configuration dictionary
        """
        if config:
            self.config.update(config)

        root = logging.getLogger()
        root.setLevel(getattr(logging, str(self.config["log_level"]).upper()))
        root.handlers = []

        if "console" in self.config["outputs"]:
            console_handler = logging.StreamHandler(sys.stdout)
            console_handler.setFormatter(self._get_formatter("console"))
            root.addHandler(console_handler)

        if "file" in self.config["outputs"]:
            log_dir = Path(self.config["log_dir"])
            log_dir.mkdir(parents=True, exist_ok=True)

            file_handler = RotatingFileHandler(
                log_dir / f"{self.name}.log",
                maxBytes=self.config["max_file_size"],
                backupCount=self.config["backup_count"]
            )
            file_handler.setFormatter(self._get_formatter("file"))
            root.addHandler(file_handler)

            # Separate error log
            if self.config["error_tracking"]:
                error_handler = RotatingFileHandler(
                    log_dir / f"{self.name}_errors.log",
                    maxBytes=self.config["max_file_size"],
                    backupCount=self.config["backup_count"]
                )
                error_handler.setLevel(logging.ERROR)
                error_handler.setFormatter(self._get_formatter("file"))
                root.addHandler(error_handler)

        if config:
            logger.info(f"Logging reconfigured with: {config}")

    def log_error(self, error: Exception, context: Dict[str, Any]) -> None:
        """
        Log error with context, picking severity from the error type

        Args:
            error: Exception that occurred
            context: Dictionary containing error context
        """
        error_logger = logging.getLogger(f"{self.name}.errors")

        error_data = {
            "error_type": type(error).__name__,
            "error_message": str(error),
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "context": context,
        }
        where = context.get("function", context.get("path", "unknown"))

        if isinstance(error, ValidationError):
            error_logger.info(
                f"Rejected request in {where}: {error}",
                extra={"error_data": error_data}
            )
        elif isinstance(error, (NetworkError, ConnectionError, TimeoutError)):
            error_logger.warning(
                f"Upstream error in {where}: {error}",
                extra={"error_data": error_data}
            )
        elif isinstance(error, ConfigurationError):
            error_logger.error(
                f"Configuration error in {where}: {error}",
                extra={"error_data": error_data}
            )
        else:
            error_data["traceback"] = "".join(
                traceback.format_exception(type(error), error, error.__traceback__)
            )
            error_logger.error(
                f"Unexpected error in {where}: {error}",
                extra={"error_data": error_data},
                exc_info=(type(error), error, error.__traceback__)
            )

    def log_request(self, method: str, path: str, status: int, duration_ms: float,
                    remote: Optional[str] = None) -> None:
        """Log one API access line"""
        access_logger = logging.getLogger(f"{self.name}.access")
        request_data = {
            "method": method,
            "path": path,
            "status": status,
            "duration_ms": round(duration_ms, 2),
            "remote": remote,
        }
        level = logging.WARNING if status >= 500 else logging.INFO
        access_logger.log(
            level,
            f"{method} {path} {status} {duration_ms:.1f}ms",
            extra={"request_data": request_data}
        )


class JsonFormatter(logging.Formatter):
    """JSON log formatter"""

    def format(self, record):
        log_obj = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno
        }

        if record.exc_info:
            log_obj["exception"] = self.formatException(record.exc_info)

        if hasattr(record, 'error_data'):
            log_obj["error"] = record.error_data

        if hasattr(record, 'request_data'):
            log_obj["request"] = record.request_data

        return json.dumps(log_obj, default=str)


class ColoredFormatter(logging.Formatter):
    """Colored console formatter"""

    COLORS = {
        'DEBUG': '\033[36m',     # Cyan
        'INFO': '\033[32m',      # Green
        'WARNING': '\033[33m',   # Yellow
        'ERROR': '\033[31m',     # Red
        'CRITICAL': '\033[41m'   # Red Background
    }
    RESET = '\033[0m'

    def __init__(self):
        super().__init__(
            '%(asctime)s - %(name)s - %(levelname)s - %(message)s',
            datefmt='%Y-%m-%d %H:%M:%S'
        )

    def format(self, record):
        original = record.levelname
        log_color = self.COLORS.get(original, '')
        record.levelname = f"{log_color}{original}{self.RESET}"
        try:
            return super().format(record)
        finally:
            record.levelname = original


class StandardFormatter(logging.Formatter):
    """Standard text formatter"""

    def __init__(self):
        super().__init__(
            '%(asctime)s - %(name)s - %(levelname)s - %(message)s',
            datefmt='%Y-%m-%d %H:%M:%S'
        )
