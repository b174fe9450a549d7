"""Auth resolver - builds outbound credentials for a monitor's probe.

One strategy per auth variant (none, basic, token, login). Unknown variants
fall back to the unauthenticated strategy with a warning.
"""
import base64
import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional

import httpx
from pydantic import ValidationError as PydanticValidationError

from ..config import settings
from ..exceptions import AuthError, ConfigError
from ..schemas.monitor import AuthConfig
from .validator import get_nested_value

logger = logging.getLogger(__name__)


@dataclass
class Credentials:
    """Headers and cookie to attach to the probe request."""
    headers: Dict[str, str] = field(default_factory=dict)
    cookie: str = ""


class AuthStrategy:
    """Resolves credentials for one auth variant."""

    name = "none"

    async def resolve(self, config: AuthConfig, client: httpx.AsyncClient) -> Credentials:
        return Credentials()


class NoAuth(AuthStrategy):
    """Unauthenticated probe."""


class BasicAuth(AuthStrategy):
    """HTTP Basic authentication from a stored username and password."""

    name = "basic"

    async def resolve(self, config: AuthConfig, client: httpx.AsyncClient) -> Credentials:
        if not config.username or not config.password:
            raise ConfigError("Basic auth requires username and password")

        token = base64.b64encode(f"{config.username}:{config.password}".encode()).decode()
        return Credentials(headers={"Authorization": f"Basic {token}"})


async def _post_credentials(
    client: httpx.AsyncClient,
    url: str,
    config: AuthConfig,
    follow_redirects: bool,
) -> httpx.Response:
    """POST username/password to a token or login endpoint."""
    try:
        response = await client.post(
            url,
            json={"username": config.username, "password": config.password},
            timeout=settings.auth_request_timeout_seconds,
            follow_redirects=follow_redirects,
        )
    except httpx.HTTPError as e:
        raise AuthError(f"Auth request to {url} failed: {type(e).__name__}: {e}") from e

    if response.status_code >= 400:
        raise AuthError(
            f"Auth request to {url} returned HTTP {response.status_code} {response.reason_phrase}",
            response=response,
        )
    return response


def _extract_token(response: httpx.Response, path: str) -> Optional[str]:
    try:
        body = response.json()
    except ValueError:
        return None
    token = get_nested_value(body, path)
    if token is None or token == "":
        return None
    return str(token)


class TokenAuth(AuthStrategy):
    """Fetch a token from an endpoint and send it in a header."""

    name = "token"

    async def resolve(self, config: AuthConfig, client: httpx.AsyncClient) -> Credentials:
        if not config.token_url:
            raise ConfigError("Token auth requires tokenUrl")

        token_field = config.token_field or "token"
        response = await _post_credentials(client, config.token_url, config, follow_redirects=True)

        token = _extract_token(response, token_field)
        if token is None:
            raise AuthError(f"Token not found in response at field: {token_field}", response=response)

        value = f"{config.header_prefix} {token}" if config.header_prefix else token
        return Credentials(headers={config.header_name or "Authorization": value})


def _cookie_pair(set_cookie: str) -> str:
    return set_cookie.split(";", 1)[0].strip()


def pick_session_cookie(set_cookies: List[str], cookie_name: str) -> Optional[str]:
    """Prefer the cookie with the configured name, else the first one."""
    pairs = [_cookie_pair(c) for c in set_cookies if _cookie_pair(c)]
    if not pairs:
        return None
    for pair in pairs:
        if pair.split("=", 1)[0].strip() == cookie_name:
            return pair
    return pairs[0]


class LoginAuth(AuthStrategy):
    """Log in and reuse either a bearer token from the body or the session cookie."""

    name = "login"

    async def resolve(self, config: AuthConfig, client: httpx.AsyncClient) -> Credentials:
        if not config.login_url:
            raise ConfigError("Login auth requires loginUrl")

        # Redirects are not followed: the session cookie is set on the 3xx itself
        response = await _post_credentials(client, config.login_url, config, follow_redirects=False)

        if config.token_field:
            token = _extract_token(response, config.token_field)
            if token is None:
                raise AuthError(f"Token not found in login response at field: {config.token_field}", response=response)
            return Credentials(headers={"Authorization": f"Bearer {token}"})

        cookie = pick_session_cookie(response.headers.get_list("set-cookie"), config.cookie_name)
        if cookie:
            return Credentials(cookie=cookie)

        raise AuthError("No authentication token or cookie found in login response", response=response)


AUTH_STRATEGIES: Dict[str, AuthStrategy] = {
    strategy.name: strategy
    for strategy in (NoAuth(), BasicAuth(), TokenAuth(), LoginAuth())
}


def get_strategy(auth_type: Optional[str]) -> AuthStrategy:
    """Look up the strategy for an auth variant, defaulting to no auth."""
    strategy = AUTH_STRATEGIES.get(auth_type or "none")
    if strategy is None:
        logger.warning(f"Unknown auth type: {auth_type}, probing unauthenticated")
        return AUTH_STRATEGIES["none"]
    return strategy


async def resolve_auth(monitor, client: httpx.AsyncClient) -> Credentials:
    """Resolve credentials for a monitor.

    Raises:
        ConfigError: required auth fields are missing or malformed
        AuthError: the secondary auth request failed or yielded no credential
    """
    strategy = get_strategy(monitor.auth_type)
    try:
        config = AuthConfig.model_validate(monitor.auth_config or {})
    except PydanticValidationError as e:
        raise ConfigError(f"Invalid auth configuration: {e.error_count()} error(s)") from e

    try:
        return await strategy.resolve(config, client)
    except (ConfigError, AuthError) as e:
        logger.error(f"Authentication failed for monitor {monitor.name}: {e.message}")
        raise
