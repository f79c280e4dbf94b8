"""
Resilient HTTP client shared by every integrated service.

A ServiceClient is built once per service with its auth strategy and API
prefix. Each request():
    1. Re-reads the user's configuration from the store (no caching of
       decrypted credentials beyond the call)
    2. Fails fast with a ServiceConfigurationError when the service is
       missing, disabled, or lacks a credential
    3. Builds ``base_url + api_version + endpoint`` and applies auth
    4. Sends the request under the retry policy
    5. Translates non-2xx responses into ServiceClientError using the
       error-body parsers
    6. Returns ``{}`` for 204/empty bodies, parsed JSON otherwise

Form-login services additionally log in through the session cache and, on a
401 with a cached session, drop the session, log in again and resend once.
That single resend happens immediately, outside the retry policy's backoff.
"""
import re
from inspect import isawaitable
from typing import Any, Dict, Mapping, Optional, Tuple

import httpx

from mediahub.core.http_client import get_http_client
from mediahub.core.logging_config import LogCategory, log_debug, log_info, log_warning
from mediahub.core.retry import RetryPolicy, with_retry
from mediahub.integrations.auth import AuthStrategy, FormLoginAuth, NoAuth, apply_auth
from mediahub.integrations.errors import (
    ServiceClientError,
    ServiceConfigurationError,
    ServiceLockoutError,
    parse_error_body,
)
from mediahub.integrations.schemas import ServiceConfiguration
from mediahub.integrations.session_cache import SessionCache, get_session_cache

JSON_CONTENT_TYPE = "application/json"
FORM_CONTENT_TYPE = "application/x-www-form-urlencoded"


class ServiceClient:
    """
    Per-service HTTP client with auth, retry and uniform error translation.

    Args:
        service_name: Registry identifier (e.g. "radarr")
        display_name: Name used in error messages (e.g. "Radarr")
        api_version: Prefix inserted between base URL and endpoint (e.g. "/api/v3")
        auth_strategy: How credentials are attached
        require_api_key: Fail with a configuration error when the key is blank
        config_store: Object exposing ``get(user_id, service_name)``; sync or async.
            Defaults to the process-wide store
        session_cache: Cache for form-login sessions (defaults to the process-wide cache)
        http_client: httpx.AsyncClient to use (defaults to the shared client)
        retry_policy: Retry configuration (defaults to settings)

    Example:
        client = ServiceClient(
            service_name="radarr",
            display_name="Radarr",
            api_version="/api/v3",
            auth_strategy=ApiKeyHeaderAuth("X-Api-Key"),
        )
        movies = await client.get(user_id, "/movie/lookup", params={"term": "Alien"})
    """

    def __init__(
        self,
        service_name: str,
        display_name: str,
        api_version: str = "",
        auth_strategy: AuthStrategy = NoAuth(),
        require_api_key: bool = True,
        config_store=None,
        session_cache: Optional[SessionCache] = None,
        http_client: Optional[httpx.AsyncClient] = None,
        retry_policy: Optional[RetryPolicy] = None,
    ):
        self.service_name = service_name
        self.display_name = display_name
        self.api_version = api_version
        self.auth_strategy = auth_strategy
        self.require_api_key = require_api_key
        self._config_store = config_store
        self._session_cache = session_cache
        self._http_client = http_client
        self._retry_policy = retry_policy

    def __repr__(self) -> str:
        return f"ServiceClient(service_name={self.service_name!r}, api_version={self.api_version!r})"

    # ------------------------------------------------------------------
    # Collaborators
    # ------------------------------------------------------------------

    @property
    def config_store(self):
        if self._config_store is None:
            from mediahub.integrations.store import get_config_store
            return get_config_store()
        return self._config_store

    @property
    def session_cache(self) -> SessionCache:
        return self._session_cache if self._session_cache is not None else get_session_cache()

    @property
    def retry_policy(self) -> RetryPolicy:
        return self._retry_policy if self._retry_policy is not None else RetryPolicy.from_settings()

    async def get_http(self) -> httpx.AsyncClient:
        return self._http_client if self._http_client is not None else await get_http_client()

    # ------------------------------------------------------------------
    # Configuration
    # ------------------------------------------------------------------

    async def get_config(self, user_id: str) -> Optional[ServiceConfiguration]:
        """Fetch this service's configuration for a user from the store."""
        result = self.config_store.get(user_id, self.service_name)
        if isawaitable(result):
            result = await result
        return result

    async def require_config(self, user_id: str) -> ServiceConfiguration:
        """
        Fetch the configuration and validate it is usable.

        Raises:
            ServiceConfigurationError: If absent, disabled, or missing its API key
        """
        config = await self.get_config(user_id)
        if config is None:
            raise ServiceConfigurationError.not_configured(self.display_name)
        if not config.is_enabled:
            raise ServiceConfigurationError.disabled(self.display_name)
        # Form-login services may authenticate with username/password alone
        uses_api_key = not isinstance(self.auth_strategy, FormLoginAuth)
        if self.require_api_key and uses_api_key and not (config.api_key or "").strip():
            raise ServiceConfigurationError.missing_api_key(self.display_name)
        return config

    def build_url(self, config: ServiceConfiguration, endpoint: str) -> str:
        base_url = config.base_url.rstrip('/')
        return f"{base_url}{self.api_version}{endpoint}"

    # ------------------------------------------------------------------
    # Requests
    # ------------------------------------------------------------------

    async def request(
        self,
        user_id: str,
        endpoint: str,
        method: str = "GET",
        params: Optional[Mapping[str, Any]] = None,
        json: Any = None,
        data: Optional[Mapping[str, Any]] = None,
        headers: Optional[Mapping[str, str]] = None,
    ) -> Any:
        """
        Make an authenticated request to the service.

        Returns:
            Parsed JSON body, ``{}`` for empty responses, or the raw text for
            non-JSON bodies

        Raises:
            ServiceConfigurationError: Setup problem, never retried
            ServiceClientError: Non-2xx response (after retries for transient statuses)
            httpx.TransportError: Network failure after retries are exhausted
        """
        config = await self.require_config(user_id)
        url = self.build_url(config, endpoint)

        request_headers = {} if data is not None else {"Content-Type": JSON_CONTENT_TYPE}
        request_headers.update(headers or {})
        request_headers = apply_auth(self.auth_strategy, request_headers, config)

        http = await self.get_http()

        if isinstance(self.auth_strategy, FormLoginAuth):
            response = await self._send_with_session(
                http, config, method, url, params, json, data, request_headers
            )
        else:
            response = await with_retry(
                lambda: self._send(http, method, url, params, json, data, request_headers),
                self.retry_policy,
            )

        return self._parse_body(response)

    async def get(self, user_id: str, endpoint: str, params: Optional[Mapping[str, Any]] = None) -> Any:
        return await self.request(user_id, endpoint, params=params)

    async def post(self, user_id: str, endpoint: str, json: Any = None,
                   params: Optional[Mapping[str, Any]] = None) -> Any:
        return await self.request(user_id, endpoint, method="POST", json=json, params=params)

    async def put(self, user_id: str, endpoint: str, json: Any = None,
                  params: Optional[Mapping[str, Any]] = None) -> Any:
        return await self.request(user_id, endpoint, method="PUT", json=json, params=params)

    async def delete(self, user_id: str, endpoint: str, params: Optional[Mapping[str, Any]] = None) -> Any:
        return await self.request(user_id, endpoint, method="DELETE", params=params)

    async def post_form(self, user_id: str, endpoint: str, data: Mapping[str, Any]) -> Any:
        """POST an ``application/x-www-form-urlencoded`` body."""
        return await self.request(
            user_id,
            endpoint,
            method="POST",
            data=data,
            headers={"Content-Type": FORM_CONTENT_TYPE},
        )

    async def _send(
        self,
        http: httpx.AsyncClient,
        method: str,
        url: str,
        params: Optional[Mapping[str, Any]],
        json: Any,
        data: Optional[Mapping[str, Any]],
        headers: Dict[str, str],
    ) -> httpx.Response:
        """Send one physical request, raising ServiceClientError for non-2xx."""
        response = await http.request(method, url, params=params, json=json, data=data, headers=headers)
        log_debug(
            f"{method} {url} -> {response.status_code}",
            category=LogCategory.SERVICES,
            service=self.service_name,
        )
        if not response.is_success:
            raise ServiceClientError.api_error(
                self.display_name, response.status_code, self._error_message(response)
            )
        return response

    # ------------------------------------------------------------------
    # Form-login sessions
    # ------------------------------------------------------------------

    async def _send_with_session(
        self,
        http: httpx.AsyncClient,
        config: ServiceConfiguration,
        method: str,
        url: str,
        params: Optional[Mapping[str, Any]],
        json: Any,
        data: Optional[Mapping[str, Any]],
        headers: Dict[str, str],
    ) -> httpx.Response:
        strategy: FormLoginAuth = self.auth_strategy
        base_url = config.base_url.rstrip('/')
        credentials = self._login_credentials(config)

        async def send(sid: str) -> httpx.Response:
            session_headers = {"Cookie": f"{strategy.cookie_name}={sid}", **headers}
            return await with_retry(
                lambda: self._send(http, method, url, params, json, data, session_headers),
                self.retry_policy,
            )

        sid = await self.get_session_id(http, base_url, credentials)
        try:
            return await send(sid)
        except ServiceClientError as e:
            if e.status_code not in strategy.session_rejected_statuses:
                raise
            log_info(
                "Session rejected, logging in again",
                category=LogCategory.SERVICES,
                service=self.service_name,
            )
            self.session_cache.invalidate(base_url)
            sid = await self.get_session_id(http, base_url, credentials)
            return await send(sid)

    def _login_credentials(self, config: ServiceConfiguration) -> Tuple[str, str]:
        credentials = config.login_credentials()
        if credentials is None:
            raise ServiceConfigurationError.invalid_credentials_format(self.display_name)
        return credentials

    async def get_session_id(
        self,
        http: httpx.AsyncClient,
        base_url: str,
        credentials: Tuple[str, str],
    ) -> str:
        """Return a cached session for base_url, logging in when there is none."""
        cached = self.session_cache.get(base_url)
        if cached:
            return cached

        username, password = credentials
        sid = await self.login(http, base_url, username, password)
        self.session_cache.set(base_url, sid)
        return sid

    async def login(self, http: httpx.AsyncClient, base_url: str, username: str, password: str) -> str:
        """
        Submit the login form and extract the session token.

        Raises:
            ServiceLockoutError: The service banned further login attempts (403)
            ServiceClientError: Wrong credentials (401) or no usable session cookie
        """
        strategy: FormLoginAuth = self.auth_strategy
        login_url = f"{base_url.rstrip('/')}{strategy.login_path}"

        response = await with_retry(
            lambda: http.post(
                login_url,
                data={"username": username, "password": password},
                headers={"Content-Type": FORM_CONTENT_TYPE},
            ),
            self.retry_policy,
        )

        if response.status_code == 403:
            log_warning(
                "Login refused: too many failed attempts",
                category=LogCategory.SECURITY,
                service=self.service_name,
            )
            raise ServiceLockoutError(
                f"{self.display_name} IP banned due to too many failed login attempts. "
                f"Please wait or restart {self.display_name}.",
                self.display_name,
            )

        if response.text.strip() != strategy.success_body:
            raise ServiceClientError.api_error(
                self.display_name,
                401,
                f"{self.display_name} authentication failed. Please check your username and password.",
            )

        sid = self._extract_session_id(response, strategy.cookie_name)
        if sid is None:
            raise ServiceClientError(
                f"{self.display_name} did not return a session cookie.",
                self.display_name,
            )

        log_debug("Logged in", category=LogCategory.SERVICES, service=self.service_name)
        return sid

    @staticmethod
    def _extract_session_id(response: httpx.Response, cookie_name: str) -> Optional[str]:
        pattern = re.compile(rf"(?:^|[;,\s]){re.escape(cookie_name)}=([^;,\s]+)")
        for header in response.headers.get_list("set-cookie"):
            match = pattern.search(header)
            if match:
                return match.group(1)
        return None

    # ------------------------------------------------------------------
    # Response handling
    # ------------------------------------------------------------------

    def _error_message(self, response: httpx.Response) -> str:
        default_message = (
            f"{self.display_name} API error: {response.status_code} {response.reason_phrase}".rstrip()
        )
        try:
            body = response.json()
        except ValueError:
            text = response.text.strip()
            if text and isinstance(self.auth_strategy, FormLoginAuth):
                return text
            return default_message
        return parse_error_body(body) or default_message

    @staticmethod
    def _parse_body(response: httpx.Response) -> Any:
        if response.status_code == 204 or not response.content:
            return {}
        try:
            return response.json()
        except ValueError:
            text = response.text
            if text.strip() in ("", "Ok."):
                return {}
            return text
