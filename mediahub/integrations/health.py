"""
Health probes for integrated services.

A probe answers "is this service reachable with these credentials?" with a
bool. Probes make a single attempt (no retry policy) and never raise: any
failure is logged and reported as unhealthy.
"""
from mediahub.core.logging_config import LogCategory, log_debug
from mediahub.integrations.auth import FormLoginAuth, apply_auth
from mediahub.integrations.base import HealthCheck
from mediahub.integrations.client import FORM_CONTENT_TYPE, ServiceClient
from mediahub.integrations.schemas import ServiceConfiguration


def status_endpoint_probe(path: str) -> HealthCheck:
    """
    Build a probe that GETs ``base_url + path`` with the client's auth applied.

    Any 2xx response counts as healthy.
    """

    async def probe(config: ServiceConfiguration, client: ServiceClient) -> bool:
        url = f"{config.base_url.rstrip('/')}{path}"
        try:
            headers = apply_auth(client.auth_strategy, {}, config)
            http = await client.get_http()
            response = await http.get(url, headers=headers)
        except Exception as e:
            log_debug(
                "Health probe failed",
                category=LogCategory.SERVICES,
                service=client.service_name,
                error=f"{type(e).__name__}: {e}",
            )
            return False
        return response.is_success

    return probe


async def form_login_probe(config: ServiceConfiguration, client: ServiceClient) -> bool:
    """Submit the login form once; healthy when the service answers the success body."""
    strategy = client.auth_strategy
    if not isinstance(strategy, FormLoginAuth):
        return False

    credentials = config.login_credentials()
    if credentials is None:
        return False
    username, password = credentials

    try:
        http = await client.get_http()
        response = await http.post(
            f"{config.base_url.rstrip('/')}{strategy.login_path}",
            data={"username": username, "password": password},
            headers={"Content-Type": FORM_CONTENT_TYPE},
        )
    except Exception as e:
        log_debug(
            "Health probe failed",
            category=LogCategory.SERVICES,
            service=client.service_name,
            error=f"{type(e).__name__}: {e}",
        )
        return False
    return response.text.strip() == strategy.success_body
