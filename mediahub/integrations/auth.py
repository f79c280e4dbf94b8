"""
Authentication strategies for integrated services.

Each service authenticates with exactly one of four shapes:
- ApiKeyHeaderAuth: API key in a custom header (Radarr, Sonarr, Jellyseerr)
- BearerTokenAuth: Authorization header rendered from a template (Jellyfin)
- FormLoginAuth: form login + session cookie (qBittorrent)
- NoAuth: nothing

Strategies are immutable values fixed per service at startup. apply_auth()
is pure: it never performs I/O and never mutates its inputs. Form-login
services get their Cookie header from the service client, which owns the
login round-trip and the session cache.
"""
from dataclasses import dataclass
from typing import Dict, Mapping, Tuple, Union

from mediahub.integrations.schemas import ServiceConfiguration

API_KEY_PLACEHOLDER = "{api_key}"


@dataclass(frozen=True)
class ApiKeyHeaderAuth:
    """Send the API key verbatim in ``header_name``."""
    header_name: str = "X-Api-Key"


@dataclass(frozen=True)
class BearerTokenAuth:
    """Send ``Authorization`` rendered from ``template`` (``{api_key}`` is substituted)."""
    template: str = "Bearer " + API_KEY_PLACEHOLDER


@dataclass(frozen=True)
class FormLoginAuth:
    """
    Form login returning a session cookie.

    Fields:
        login_path: Path (relative to the base URL) accepting the form POST
        cookie_name: Name of the session cookie in Set-Cookie
        success_body: Response text that signals a successful login
        session_rejected_statuses: Statuses meaning the session cookie is no
            longer valid; the client logs in again once on any of them
    """
    login_path: str = "/api/v2/auth/login"
    cookie_name: str = "SID"
    success_body: str = "Ok."
    session_rejected_statuses: Tuple[int, ...] = (401, 403)


@dataclass(frozen=True)
class NoAuth:
    """No authentication."""


AuthStrategy = Union[ApiKeyHeaderAuth, BearerTokenAuth, FormLoginAuth, NoAuth]


def apply_auth(
    strategy: AuthStrategy,
    headers: Mapping[str, str],
    config: ServiceConfiguration,
) -> Dict[str, str]:
    """
    Return a copy of ``headers`` with the strategy's credentials applied.

    Raises:
        TypeError: If ``strategy`` is not one of the known strategy types
    """
    result = dict(headers)
    if isinstance(strategy, ApiKeyHeaderAuth):
        result[strategy.header_name] = config.api_key
    elif isinstance(strategy, BearerTokenAuth):
        result["Authorization"] = strategy.template.replace(API_KEY_PLACEHOLDER, config.api_key)
    elif isinstance(strategy, (FormLoginAuth, NoAuth)):
        pass
    else:
        raise TypeError(f"Unsupported auth strategy: {strategy!r}")
    return result
