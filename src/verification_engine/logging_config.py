"""
Logging Configuration

Centralized logging setup for the verification engine. Engine and
processor messages are prefixed with the verification id
(``[<id>] ...``); both formatters lift that prefix into its own field so
log lines for one verification can be grepped or queried together.
"""

import json
import logging
import re
import sys
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

ROOT_LOGGER = "verification_engine"

_VERIFICATION_PREFIX = re.compile(r"^\[([0-9a-fA-F-]{8,})\]\s*")

# Libraries that log every request at INFO
QUIET_LOGGERS = ("httpx", "httpcore", "uvicorn.access")


def split_verification_id(message: str) -> Tuple[Optional[str], str]:
    """Separate a leading ``[verification-id]`` from the message"""
    match = _VERIFICATION_PREFIX.match(message)
    if match is None:
        return None, message
    return match.group(1), message[match.end():]


class VerificationFormatter(logging.Formatter):
    """Console formatter: [TIME] LEVEL [logger] (vid) message"""

    COLORS = {
        "DEBUG": "\033[36m",
        "INFO": "\033[32m",
        "WARNING": "\033[33m",
        "ERROR": "\033[31m",
        "CRITICAL": "\033[35m",
    }
    RESET = "\033[0m"

    def __init__(self, use_colors: bool = True, stream=None):
        super().__init__()
        stream = stream or sys.stderr
        self.use_colors = use_colors and hasattr(stream, "isatty") and stream.isatty()

    def format(self, record: logging.LogRecord) -> str:
        timestamp = datetime.fromtimestamp(record.created).strftime("%H:%M:%S.%f")[:-3]
        level = f"{record.levelname:8}"
        if self.use_colors:
            level = f"{self.COLORS.get(record.levelname, '')}{level}{self.RESET}"

        verification_id, message = split_verification_id(record.getMessage())
        parts = [f"[{timestamp}]", level, f"[{record.name}]"]
        if verification_id:
            # Short form is enough to tell concurrent verifications apart
            parts.append(f"({verification_id[:8]})")
        parts.append(message)

        line = " ".join(parts)
        if record.exc_info:
            line = f"{line}\n{self.formatException(record.exc_info)}"
        return line


class JsonFormatter(logging.Formatter):
    """One JSON object per line, for log shipping from the HTTP server"""

    def format(self, record: logging.LogRecord) -> str:
        verification_id, message = split_verification_id(record.getMessage())
        payload: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": message,
        }
        if verification_id:
            payload["verification_id"] = verification_id
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload)


def setup_logging(
    level: str = "INFO",
    log_file: Optional[str] = None,
    use_colors: bool = True,
    json_format: bool = False,
) -> None:
    """
    Configure logging for the engine.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR); unknown names mean INFO
        log_file: Optional file path for log output
        use_colors: Enable colored console output (ignored for JSON)
        json_format: Emit JSON lines instead of the console layout
    """
    engine_logger = logging.getLogger(ROOT_LOGGER)
    engine_logger.setLevel(getattr(logging, level.upper(), logging.INFO))
    engine_logger.handlers.clear()

    console = logging.StreamHandler(sys.stderr)
    if json_format:
        console.setFormatter(JsonFormatter())
    else:
        console.setFormatter(VerificationFormatter(use_colors=use_colors))
    engine_logger.addHandler(console)

    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_path)
        file_handler.setFormatter(
            JsonFormatter() if json_format else VerificationFormatter(use_colors=False)
        )
        engine_logger.addHandler(file_handler)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    engine_logger.debug(f"Logging configured (level={level}, json={json_format})")


def get_logger(name: str) -> logging.Logger:
    """Logger under the engine namespace"""
    return logging.getLogger(f"{ROOT_LOGGER}.{name}")
