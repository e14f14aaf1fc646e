"""
Logging configuration for the job tracker API.

Console output for humans, a rotating file for everything, and a separate
rotating file for CRM promotions whose legacy mirror diverged (those are
otherwise only visible in the tracking outcome table).
"""
import logging
import sys
from pathlib import Path
from logging.handlers import RotatingFileHandler

# Logger that reports mirror divergence (WARNING and above)
DIVERGENCE_LOGGER = "app.services.crm_service"

SENSITIVE_KEYS = ("password", "token", "secret", "key", "authorization", "database_url")


def _rotating_handler(path: Path, level: int, formatter: logging.Formatter) -> RotatingFileHandler:
    handler = RotatingFileHandler(
        path,
        maxBytes=10 * 1024 * 1024,  # 10MB
        backupCount=5
    )
    handler.setLevel(level)
    handler.setFormatter(formatter)
    return handler


def setup_logging(log_level: str = "INFO", log_dir: str = "logs"):
    """
    Configure application logging.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_dir: Directory for the rotating log files
    """
    level = getattr(logging, log_level.upper(), logging.INFO)

    # Create logs directory if it doesn't exist
    log_path = Path(log_dir)
    log_path.mkdir(exist_ok=True)

    # Configure root logger
    root = logging.getLogger()
    root.setLevel(level)

    # Remove existing handlers (setup may run again under reload)
    root.handlers.clear()
    logging.getLogger(DIVERGENCE_LOGGER).handlers.clear()

    # Console handler with simple format
    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(level)
    console_handler.setFormatter(logging.Formatter(
        "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S"
    ))

    # File handler keeps function/line for tracing promotion steps
    detailed = logging.Formatter(
        "%(asctime)s - %(name)s - %(levelname)s - %(funcName)s:%(lineno)d - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S"
    )

    root.addHandler(console_handler)
    root.addHandler(_rotating_handler(log_path / "jobtracker.log", level, detailed))

    # Mirror divergence gets its own file; propagation still feeds the main log
    logging.getLogger(DIVERGENCE_LOGGER).addHandler(
        _rotating_handler(log_path / "mirror_divergence.log", logging.WARNING, detailed)
    )

    # Set levels for third-party libraries
    logging.getLogger("uvicorn").setLevel(logging.WARNING)
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)


def _is_sensitive(key) -> bool:
    return isinstance(key, str) and any(sensitive in key.lower() for sensitive in SENSITIVE_KEYS)


def sanitize_log_data(data):
    """
    Redact sensitive values before logging a request payload.

    Nested dicts and lists (e.g. inline job_data) are walked; the input is
    not modified.

    Args:
        data: Payload to sanitize

    Returns:
        Copy of the payload with secrets replaced
    """
    if isinstance(data, dict):
        return {
            key: "***REDACTED***" if _is_sensitive(key) else sanitize_log_data(value)
            for key, value in data.items()
        }
    if isinstance(data, list):
        return [sanitize_log_data(item) for item in data]
    return data
