"""
Logging Setup and Credential Redaction
======================================

Configures the root logger for the admin console and keeps session tokens
and passwords out of every log line.

Key Features:
-------------
- Redaction: a filter on each handler masks bearer tokens, JWTs and long
  key-like strings; structured values are masked by field name.
- Two Sinks: a detailed file log (rewritten each run) and a terse console.
- Content API Tracing: one line per request and per response, with list
  payloads summarised by item count instead of dumped.

Author: Portfolio Admin Project
"""

import json
import logging
import re
import sys
from pathlib import Path
from typing import Any, Dict, Optional

LOG_DIR = Path(__file__).resolve().parent.parent.parent / "logs"
LOG_FILE_NAME = "portfolio_admin.log"
LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - [%(filename)s:%(lineno)d] - %(message)s"
CONSOLE_FORMAT = "%(levelname)-8s %(message)s"

# Field names whose values never reach a log
SENSITIVE_FIELDS = ("password", "secret", "token", "authorization", "cookie", "signature", "api_key")

SENSITIVE_PATTERNS = [
    (re.compile(r"Bearer\s+[A-Za-z0-9\-._~+/]+=*"), "Bearer ***"),
    (re.compile(r"eyJ[\w\-]+\.[\w\-]+\.[\w\-]+"), "***"),
    (re.compile(r"\b[A-Za-z0-9]{32,}\b"), lambda m: f"***{m.group(0)[-4:]}"),
]

MAX_LOGGED_BODY = 1000


# ============================================================================
# REDACTION
# ============================================================================

def _mask_string(text: str) -> str:
    for pattern, replacement in SENSITIVE_PATTERNS:
        text = pattern.sub(replacement, text)
    return text


def _is_sensitive(key: Any) -> bool:
    key = str(key).lower()
    return any(name in key for name in SENSITIVE_FIELDS)


def mask_sensitive_data(data: Any, mask_value: str = "***") -> Any:
    """
    Return a copy of ``data`` with credentials masked.

    Values under sensitive keys are replaced; tokens keep their last four
    characters so two sessions can still be told apart. Strings anywhere in
    the structure go through the pattern masks.
    """
    if isinstance(data, dict):
        masked = {}
        for key, value in data.items():
            if not _is_sensitive(key):
                masked[key] = mask_sensitive_data(value, mask_value)
            elif "token" in str(key).lower() and isinstance(value, str) and len(value) > 4:
                masked[key] = f"{mask_value}{value[-4:]}"
            else:
                masked[key] = mask_value
        return masked
    if isinstance(data, (list, tuple)):
        return type(data)(mask_sensitive_data(item, mask_value) for item in data)
    if isinstance(data, str):
        return _mask_string(data)
    return data


class SensitiveDataFilter(logging.Filter):
    """Masks credentials in a record's message and arguments before it is emitted."""

    def filter(self, record: logging.LogRecord) -> bool:
        if isinstance(record.msg, str):
            record.msg = _mask_string(record.msg)
        if isinstance(record.args, dict):
            record.args = mask_sensitive_data(record.args)
        elif isinstance(record.args, tuple):
            record.args = tuple(
                mask_sensitive_data(arg) if isinstance(arg, (dict, str)) else arg
                for arg in record.args
            )
        return True


# ============================================================================
# SETUP
# ============================================================================

def setup_logging(
    log_level: int = logging.DEBUG,
    console_level: int = logging.INFO,
    log_dir: Optional[Path] = None,
) -> Path:
    """
    Route all logging to a file under ``log_dir`` and to stderr.

    Args:
        log_level: Level for the file log.
        console_level: Level for the console.
        log_dir: Directory for the log file (defaults to ``LOG_DIR``).

    Returns:
        Path of the log file.
    """
    log_dir = Path(log_dir) if log_dir else LOG_DIR
    log_dir.mkdir(parents=True, exist_ok=True)
    log_file = log_dir / LOG_FILE_NAME

    root = logging.getLogger()
    root.setLevel(logging.DEBUG)
    for handler in list(root.handlers):
        root.removeHandler(handler)
        handler.close()

    file_handler = logging.FileHandler(log_file, mode="w", encoding="utf-8")
    file_handler.setLevel(log_level)
    file_handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(console_level)
    console_handler.setFormatter(logging.Formatter(CONSOLE_FORMAT))

    for handler in (file_handler, console_handler):
        handler.addFilter(SensitiveDataFilter())
        root.addHandler(handler)

    # Connection pool chatter is only useful when debugging transport issues
    logging.getLogger("urllib3").setLevel(logging.WARNING)
    logging.getLogger("PIL").setLevel(logging.INFO)

    logging.info(f"Portfolio admin started, logging to {log_file}")
    return log_file


def shutdown_logging():
    """Flush and close all handlers. Call before exit."""
    logging.info("Shutting down logging")
    logging.shutdown()


# ============================================================================
# STRUCTURED HELPERS
# ============================================================================

def _summarize_body(body: Any) -> str:
    # Listings can hold hundreds of entities; their size is what matters in a log
    if isinstance(body, dict) and isinstance(body.get("data"), list):
        body = dict(body, data=f"<{len(body['data'])} items>")
    text = json.dumps(mask_sensitive_data(body), default=str)
    if len(text) > MAX_LOGGED_BODY:
        text = text[:MAX_LOGGED_BODY] + "... (truncated)"
    return text


def log_config(config_name: str, config_data: Dict[str, Any], logger: Optional[logging.Logger] = None):
    """Log a configuration snapshot with credentials masked."""
    logger = logger or logging.getLogger(__name__)
    logger.info(config_name)
    logger.debug(f"{config_name}: {json.dumps(mask_sensitive_data(config_data), indent=2, default=str)}")


def log_api_request(
    logger: logging.Logger,
    method: str,
    url: str,
    headers: Optional[Dict] = None,
    data: Optional[Any] = None,
    params: Optional[Dict] = None,
):
    """Log an outgoing Content API call. Headers, params and body go to DEBUG."""
    logger.info(f"{method} {url}")
    if headers:
        logger.debug(f"  headers: {mask_sensitive_data(headers)}")
    if params:
        logger.debug(f"  params: {mask_sensitive_data(params)}")
    if data:
        logger.debug(f"  body: {_summarize_body(data)}")


def log_api_response(
    logger: logging.Logger,
    status_code: int,
    body: Optional[Any] = None,
    elapsed: Optional[float] = None,
):
    """Log a Content API response status, its timing and a summary of the body."""
    timing = f" in {elapsed:.3f}s" if elapsed is not None else ""
    level = logging.WARNING if status_code >= 400 else logging.INFO
    logger.log(level, f"-> {status_code}{timing}")
    if body:
        logger.debug(f"  response: {_summarize_body(body)}")
