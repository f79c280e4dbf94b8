"""
Error taxonomy for service integrations.

Every failure a capability can hit ends up in one of three tiers:
- Configuration errors (not configured, disabled, missing credential):
  never retried, surfaced verbatim
- Transient errors (network failures, 429/502/503/504): retried by the
  retry policy, surfaced once retries are exhausted
- Permanent errors (other 4xx, business-rule rejections): surfaced
  immediately with the richest message the response body yields

format_tool_error() is the single place where any of these becomes the
user-facing ``{"error": "..."}`` shape.
"""
import functools
from typing import Any, Awaitable, Callable, Dict, List, Optional

from mediahub.core.logging_config import LogCategory, log_error, log_warning


class ServiceClientError(Exception):
    """
    Raised when a call to an integrated service fails.

    Attributes:
        service: Display name of the service (e.g. "Radarr")
        status_code: HTTP status of the failed response, if any
    """

    def __init__(self, message: str, service: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.service = service
        self.status_code = status_code

    @classmethod
    def api_error(cls, service: str, status_code: int, message: str) -> "ServiceClientError":
        return cls(message, service, status_code)

    @property
    def is_auth_error(self) -> bool:
        return self.status_code in (401, 403)

    @property
    def is_not_found(self) -> bool:
        return self.status_code == 404

    @property
    def is_bad_request(self) -> bool:
        return self.status_code == 400


class ServiceConfigurationError(ServiceClientError):
    """
    Raised when a service cannot be called because of the user's setup.

    Never carries a status code and is never retried.
    """

    def __init__(self, message: str, service: str):
        super().__init__(message, service, status_code=None)

    @classmethod
    def not_configured(cls, service: str) -> "ServiceConfigurationError":
        return cls(f"{service} is not configured. Please configure {service} in settings.", service)

    @classmethod
    def disabled(cls, service: str) -> "ServiceConfigurationError":
        return cls(f"{service} is disabled. Please enable it in settings.", service)

    @classmethod
    def missing_api_key(cls, service: str) -> "ServiceConfigurationError":
        return cls(
            f"{service} API key is not configured. Please add your API key in settings.",
            service,
        )

    @classmethod
    def invalid_credentials_format(cls, service: str) -> "ServiceConfigurationError":
        return cls(
            f"Invalid {service} credentials format. Expected 'username:password'.",
            service,
        )


class ServiceLockoutError(ServiceClientError):
    """
    Raised when a form-login service refuses logins after too many failures.

    Retrying would only extend the ban, so this is never retried.
    """

    def __init__(self, message: str, service: str):
        super().__init__(message, service, status_code=403)


# ================================================================================
# ERROR BODY PARSERS
# ================================================================================
# Each parser takes a decoded JSON body and returns a message or None.
# They are tried in order; the first non-None result wins.

MESSAGE_FIELDS = ("message", "Message", "errorMessage", "error")


def parse_validation_errors(body: Any) -> Optional[str]:
    """Parse ``[{"propertyName": ..., "errorMessage": ...}]`` validation arrays."""
    if not isinstance(body, list) or not body:
        return None
    messages = []
    for item in body:
        if not isinstance(item, dict) or not item.get("errorMessage"):
            continue
        property_name = item.get("propertyName")
        error_message = item["errorMessage"]
        messages.append(f"{property_name}: {error_message}" if property_name else str(error_message))
    return "; ".join(messages) if messages else None


def parse_message_field(body: Any) -> Optional[str]:
    """Parse objects carrying a flat ``message``/``Message``/``errorMessage``/``error`` string."""
    if not isinstance(body, dict):
        return None
    for field in MESSAGE_FIELDS:
        value = body.get(field)
        if isinstance(value, str):
            return value
    return None


def parse_nested_errors(body: Any) -> Optional[str]:
    """Parse ``{"errors": {"field": ["message", ...]}}`` objects."""
    if not isinstance(body, dict) or not isinstance(body.get("errors"), dict):
        return None
    messages = []
    for field, field_messages in body["errors"].items():
        if isinstance(field_messages, str):
            field_messages = [field_messages]
        if not isinstance(field_messages, list):
            continue
        messages.extend(f"{field}: {message}" for message in field_messages)
    return "; ".join(messages) if messages else None


ERROR_BODY_PARSERS: List[Callable[[Any], Optional[str]]] = [
    parse_validation_errors,
    parse_message_field,
    parse_nested_errors,
]


def parse_error_body(body: Any) -> Optional[str]:
    """Return the first message any parser extracts from an error body."""
    for parser in ERROR_BODY_PARSERS:
        message = parser(body)
        if message:
            return message
    return None


# ================================================================================
# USER-FACING FORMATTING
# ================================================================================

def format_tool_error(error: BaseException, service_name: str, operation_name: str) -> Dict[str, str]:
    """
    Map any error into a stable, user-safe ``{"error": str}`` response.

    Args:
        error: The caught exception
        service_name: Display name of the service (used for non-service errors)
        operation_name: What the capability was doing, e.g. "search movies"
    """
    if isinstance(error, ServiceClientError):
        return {"error": _format_service_client_error(error, operation_name)}

    message = str(error) or "Unknown error occurred"
    return {"error": f"{service_name}: Failed to {operation_name}: {message}"}


def _format_service_client_error(error: ServiceClientError, operation_name: str) -> str:
    if error.is_auth_error:
        return (
            f"{error.service} authentication failed: {error.message}. "
            "Please check your API key in settings."
        )
    if error.is_not_found:
        return (
            f"{error.service} endpoint not found: {error.message}. "
            f"Please verify your {error.service} URL in settings."
        )
    if error.is_bad_request:
        return f"{error.service} validation error: {error.message}"
    # Configuration errors carry no status code and pass through verbatim
    if error.status_code is None:
        return error.message
    return f"Failed to {operation_name}: {error.message}"


def is_error_response(result: Any) -> bool:
    """Check whether a capability result is an ``{"error": str}`` response."""
    return isinstance(result, dict) and isinstance(result.get("error"), str)


def with_tool_error_handling(service_name: str, operation_name: str):
    """
    Decorator that turns raised errors into format_tool_error() responses.

    Example:
        @with_tool_error_handling("Radarr", "search movies")
        async def search_movies(client, user_id, query):
            ...
    """

    def decorator(func: Callable[..., Awaitable[Any]]):
        @functools.wraps(func)
        async def wrapper(*args, **kwargs):
            try:
                return await func(*args, **kwargs)
            except ServiceClientError as e:
                log_warning(
                    f"Failed to {operation_name}",
                    category=LogCategory.SERVICES,
                    service=service_name,
                    status_code=e.status_code,
                    error=e.message,
                )
                return format_tool_error(e, service_name, operation_name)
            except Exception as e:
                # Network failures after retries, or a bug in the handler
                log_error(e, service=service_name, operation=operation_name)
                return format_tool_error(e, service_name, operation_name)

        return wrapper

    return decorator
