import asyncio
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, Optional

import aiohttp

from newshub.config import CONFIG, Config
from newshub.logging_config import create_logger


DEFAULT_TOKEN_TTL = 7200


class BitableError(Exception):
    pass


class TokenNotConfiguredError(BitableError):
    pass


class TokenRefreshError(BitableError):
    pass


class TokenState(Enum):
    UNINITIALIZED = "uninitialized"
    CONFIGURED = "configured"
    VALID = "valid"
    REFRESHING = "refreshing"


@dataclass(frozen=True)
class AccessToken:
    value: str
    expires_at: float  # Same clock as TokenManager.clock


class TokenManager:
    """
    Owns the tenant access token for the bitable API.

    A token is refreshed ahead of expiry by safety_margin seconds. Concurrent callers share
    a single in-flight refresh. A failed refresh propagates to every waiter and keeps the
    previous token.
    """

    def __init__(
        self,
        auth_url: Optional[str] = None,
        safety_margin: Optional[float] = None,
        session: Optional[aiohttp.ClientSession] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.auth_url = auth_url or CONFIG.FEISHU_AUTH_URL
        self.safety_margin = CONFIG.TOKEN_SAFETY_MARGIN if safety_margin is None else safety_margin
        self.clock = clock
        self.logger = create_logger("TokenManager")

        self._session = session
        self._app_id: Optional[str] = None
        self._app_secret: Optional[str] = None
        self._token: Optional[AccessToken] = None
        self._refresh_task: Optional["asyncio.Task[str]"] = None

    @classmethod
    def from_config(cls, config: Config = CONFIG, session: Optional[aiohttp.ClientSession] = None) -> "TokenManager":
        manager = cls(auth_url=config.FEISHU_AUTH_URL, safety_margin=config.TOKEN_SAFETY_MARGIN, session=session)
        manager.configure(config.FEISHU_APP_ID, config.FEISHU_APP_SECRET)
        return manager

    def configure(self, app_id: Optional[str], app_secret: Optional[str]) -> bool:
        """Set app credentials. Returns False (feature disabled) when either is missing."""
        if not app_id or not app_secret:
            self.logger.info("FEISHU_APP_ID or FEISHU_APP_SECRET not configured, bitable source disabled")
            return False

        self._app_id = app_id
        self._app_secret = app_secret
        return True

    @property
    def is_configured(self) -> bool:
        return self._app_id is not None and self._app_secret is not None

    @property
    def is_refreshing(self) -> bool:
        return self._refresh_task is not None and not self._refresh_task.done()

    @property
    def state(self) -> TokenState:
        if not self.is_configured:
            return TokenState.UNINITIALIZED
        if self.is_refreshing:
            return TokenState.REFRESHING
        if self._has_valid_token():
            return TokenState.VALID
        return TokenState.CONFIGURED

    def _has_valid_token(self) -> bool:
        return self._token is not None and self.clock() < self._token.expires_at - self.safety_margin

    async def get_token(self) -> str:
        """Return a valid token, refreshing it if missing or close to expiry."""
        if not self.is_configured:
            raise TokenNotConfiguredError("Bitable app credentials are not configured")

        if self._token is not None and self._has_valid_token():
            return self._token.value

        return await self._join_refresh()

    async def force_refresh(self) -> str:
        """Drop the current token and fetch a new one."""
        if not self.is_configured:
            raise TokenNotConfiguredError("Bitable app credentials are not configured")

        self._token = None
        return await self._join_refresh()

    def status(self) -> Dict[str, Any]:
        expires_in = max(0.0, self._token.expires_at - self.clock()) if self._token else 0.0
        return {
            "state": self.state.value,
            "has_token": self._token is not None,
            "expires_in": round(expires_in),
            "is_expired": self._token is None or expires_in <= 0,
        }

    async def _join_refresh(self) -> str:
        if self._refresh_task is None or self._refresh_task.done():
            self._refresh_task = asyncio.ensure_future(self._refresh_token())
            self._refresh_task.add_done_callback(self._on_refresh_done)

        # Shielded so one cancelled waiter does not cancel the refresh for the others
        return await asyncio.shield(self._refresh_task)

    def _on_refresh_done(self, task: "asyncio.Task[str]") -> None:
        if not task.cancelled():
            # Mark the exception retrieved; waiters already received it
            task.exception()
        if self._refresh_task is task:
            self._refresh_task = None

    async def _refresh_token(self) -> str:
        self.logger.info("Refreshing bitable tenant access token...")

        try:
            if self._session is not None:
                data = await self._request_token(self._session)
            else:
                async with aiohttp.ClientSession() as session:
                    data = await self._request_token(session)

            if data.get("code") != 0:
                raise TokenRefreshError(f"Bitable auth error (code {data.get('code')}): {data.get('msg')}")

            value = data.get("tenant_access_token")
            if not value:
                raise TokenRefreshError("Auth response did not contain tenant_access_token")

            ttl = float(data.get("expire") or DEFAULT_TOKEN_TTL)
        except TokenRefreshError as e:
            self.logger.error(f"Failed to refresh token: {e}")
            raise
        except (aiohttp.ClientError, asyncio.TimeoutError, TypeError, ValueError) as e:
            self.logger.error(f"Failed to refresh token: {e}")
            raise TokenRefreshError(f"Token request failed: {e}") from e

        self._token = AccessToken(value=value, expires_at=self.clock() + ttl)

        self.logger.info(f"Token refreshed, valid for {ttl}s")
        return value

    async def _request_token(self, session: aiohttp.ClientSession) -> Dict[str, Any]:
        async with session.post(
            self.auth_url,
            json={"app_id": self._app_id, "app_secret": self._app_secret},
            headers={"Content-Type": "application/json"},
        ) as response:
            if response.status != 200:
                raise TokenRefreshError(f"HTTP {response.status}: {response.reason}")
            payload = await response.json()

        if not isinstance(payload, dict):
            raise TokenRefreshError(f"Unexpected auth response: {type(payload)}")
        return payload
