"""
Simple logging configuration.
"""
import logging
import logging.handlers
from enum import Enum
from pathlib import Path


class LogCategory(str, Enum):
    """Enumeration for standardized log categories."""
    APP = "app"
    SERVICES = "app.services"
    RETRY = "app.retry"
    ERRORS = "app.errors"
    DB = "app.db"
    SECURITY = "app.security"


DEFAULT_LOG_LEVEL = logging.INFO

MASK = '***MASKED***'

# Fields that should be masked in logs
SENSITIVE_FIELDS = {
    'password',
    'token',
    'authorization',
    'secret',
    'api_key',
    'encryption_key',
    'cookie',
    'sid',
    'credential',
}


def _normalize_key(key) -> str:
    """Lowercase and drop separators so X-Api-Key, api_key and apiKey compare equal."""
    return str(key).lower().replace('-', '').replace('_', '')


_NORMALIZED_SENSITIVE_FIELDS = {_normalize_key(field) for field in SENSITIVE_FIELDS}


def _sanitize_data(data):
    """
    Sanitize data to mask sensitive fields.

    Recursively processes dictionaries, lists, and strings to mask sensitive information.
    For URLs, attempts to mask credentials in connection strings.
    """
    if data is None:
        return data

    if isinstance(data, dict):
        sanitized = {}
        for key, value in data.items():
            key_normalized = _normalize_key(key)
            if any(sensitive in key_normalized for sensitive in _NORMALIZED_SENSITIVE_FIELDS):
                sanitized[key] = MASK
            else:
                sanitized[key] = _sanitize_data(value)
        return sanitized

    if isinstance(data, (list, tuple)):
        return [_sanitize_data(item) for item in data]

    if isinstance(data, str):
        if '@' in data and '://' in data:
            try:
                scheme_part, rest = data.split('://', 1)
                if '@' in rest:
                    user_pass, host_part = rest.rsplit('@', 1)
                    if ':' in user_pass:
                        user, _ = user_pass.split(':', 1)
                        return f"{scheme_part}://{user}:***@{host_part}"
                    return f"{scheme_part}://{user_pass}@{host_part}"
            except (ValueError, IndexError):
                pass

        # Very long opaque strings are most likely tokens
        if len(data) > 64 and all(c.isalnum() or c in '-_=+/' for c in data):
            return MASK

        return data

    return data


def _resolve_log_level(level_value, default=DEFAULT_LOG_LEVEL):
    """Resolve string/integer log level inputs to a logging level."""
    if isinstance(level_value, str):
        candidate = level_value.strip()
        if not candidate:
            return default, True
        if candidate.isdigit():
            level_value = int(candidate)
        else:
            candidate = candidate.upper()
            try:
                return logging._checkLevel(candidate), False
            except (ValueError, TypeError):
                return default, True
    try:
        return logging._checkLevel(level_value), False
    except (ValueError, TypeError):
        return default, True


def _get_settings():
    """Lazy import to avoid circular dependency with config module."""
    from mediahub.core.config import settings  # local import to break circular dependency
    return settings


def setup_logging():
    """Setup logging configuration."""
    settings = _get_settings()

    root_logger = logging.getLogger()
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)
        handler.close()

    resolved_level, used_default_level = _resolve_log_level(settings.log_level)

    formatter = logging.Formatter(
        "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S"
    )

    console_handler = logging.StreamHandler()
    console_handler.setFormatter(formatter)
    console_handler.setLevel(resolved_level)
    root_logger.addHandler(console_handler)

    log_file = None
    if settings.log_to_file:
        log_dir = Path(settings.log_dir)
        log_dir.mkdir(parents=True, exist_ok=True)
        log_file = log_dir / "mediahub.log"
        file_handler = logging.handlers.RotatingFileHandler(
            log_file,
            maxBytes=10 * 1024 * 1024,  # 10MB
            backupCount=5,
            encoding='utf-8'
        )
        file_handler.setFormatter(formatter)
        file_handler.setLevel(resolved_level)
        root_logger.addHandler(file_handler)

    root_logger.setLevel(resolved_level)

    logging.getLogger(LogCategory.APP).setLevel(resolved_level)
    logging.getLogger(LogCategory.DB).setLevel(logging.INFO)
    logging.getLogger(LogCategory.SECURITY).setLevel(logging.INFO)

    # Reduce noise from third-party libraries
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)

    logger = logging.getLogger(__name__)
    if used_default_level:
        logger.warning(
            "Invalid log level '%s' in configuration, falling back to INFO",
            settings.log_level
        )
    logger.info(
        "Logging configured - Level: %s",
        logging.getLevelName(resolved_level)
    )
    if log_file:
        logger.info(f"File logging: {log_file}")


def _log_with_context(logger: logging.Logger, level: int, message: str, request_id: str = None, exc_info: bool = False, **kwargs):
    """Internal helper to format logs with an optional request ID and extra context.

    Args:
        logger: Logger instance to use
        level: Logging level
        message: Log message
        request_id: Optional request ID for context
        exc_info: Whether to include exception traceback
        **kwargs: Additional context to append to message (e.g., service, user_id)
                   Sensitive fields will be automatically masked
    """
    log_message = f"[{request_id}] {message}" if request_id else message

    if kwargs:
        sanitized_kwargs = _sanitize_data(kwargs)
        extra_context = ", ".join(f"{k}={v}" for k, v in sanitized_kwargs.items())
        log_message = f"{log_message} ({extra_context})"

    logger.log(level, log_message, exc_info=exc_info)


def log_info(message: str, request_id: str = None, category: LogCategory = LogCategory.APP, **kwargs):
    """Log info messages with request ID."""
    _log_with_context(logging.getLogger(category), logging.INFO, message, request_id, **kwargs)


def log_debug(message: str, request_id: str = None, category: LogCategory = LogCategory.APP, **kwargs):
    """Log debug messages with request ID."""
    _log_with_context(logging.getLogger(category), logging.DEBUG, message, request_id, **kwargs)


def log_warning(message: str, request_id: str = None, category: LogCategory = LogCategory.APP, **kwargs):
    """Log warning messages with request ID."""
    _log_with_context(logging.getLogger(category), logging.WARNING, message, request_id, **kwargs)


def log_error(error: Exception | str, request_id: str = None, user_id: str = None, **kwargs):
    """Log errors with request ID.

    Args:
        error: Exception object or error message string
        request_id: Optional request ID for context
        user_id: Optional user ID for context
        **kwargs: Additional context (e.g., service, action)
    """
    logger = logging.getLogger(LogCategory.ERRORS)
    user_info = f" (user: {user_id})" if user_id else ""
    message = f"Error: {str(error)}{user_info}"
    # exc_info should only be True if we have an actual Exception
    exc_info = isinstance(error, Exception)
    _log_with_context(logger, logging.ERROR, message, request_id, exc_info=exc_info, **kwargs)
