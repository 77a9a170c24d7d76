"""
SolutionClient SDK - Authentication manager.

Obtains a bearer credential from the realm's OpenID Connect token endpoint and
keeps it fresh for the lifetime of the session:

  - ``authenticate()`` performs the initial password grant.
  - ``start_auto_refresh()`` arms a timer that fires after ``refresh_ratio`` of
    the token lifetime has elapsed.
  - A refresh obtains a new credential (refresh_token grant, falling back to a
    password grant when the refresh token is rejected), publishes a
    ``TokenRotated`` event to every registered listener and only then makes
    the new credential current and releases the refresh barrier.
  - Failed refresh attempts are retried with exponential backoff; once the
    retry budget is exhausted the manager enters ``AuthState.FAILED`` and
    every ``wait_for_refresh()`` raises ``AuthenticationError`` immediately.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Optional, Protocol

import httpx

from .config import ClientConfig
from .exceptions import AuthenticationError
from .models import AuthState, Credential, TokenRotated, utcnow

logger = logging.getLogger("solutionclient.auth")


class RotationListener(Protocol):
    """Receives ``TokenRotated`` events. A raised exception fails the refresh attempt."""

    async def on_token_rotated(self, event: TokenRotated) -> None: ...


class AuthenticationManager:
    """Owns the current credential and the refresh loop."""

    def __init__(self, config: ClientConfig) -> None:
        self._config = config
        self._credential: Optional[Credential] = None
        self._state = AuthState.UNAUTHENTICATED
        self._listeners: list[RotationListener] = []
        self._sequence = 0

        self._idle = asyncio.Event()
        self._idle.set()
        self._refresh_task: Optional[asyncio.Task[None]] = None
        self._timer: Optional[asyncio.Task[None]] = None
        self._auto_refresh = False
        self._failure: Optional[AuthenticationError] = None
        self._disposed = False

    # ==================== Properties ====================

    @property
    def state(self) -> AuthState:
        return self._state

    @property
    def requires_auth(self) -> bool:
        """False for deployments with no credentials configured."""
        return self._config.has_credentials

    @property
    def refresh_in_progress(self) -> bool:
        return not self._idle.is_set()

    @property
    def auto_refresh_enabled(self) -> bool:
        return self._auto_refresh

    @property
    def credential(self) -> Optional[Credential]:
        return self._credential

    def get_bearer_token(self) -> Optional[str]:
        """Return the current token without waiting for an in-flight refresh."""
        return self._credential.token if self._credential else None

    # ==================== Listeners ====================

    def add_listener(self, listener: RotationListener) -> None:
        if listener not in self._listeners:
            self._listeners.append(listener)

    def remove_listener(self, listener: RotationListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    # ==================== Authentication ====================

    async def authenticate(self) -> None:
        """
        Obtain the initial credential with a password grant.

        Deployments without configured credentials skip the exchange and run
        without a bearer token.

        Raises:
            AuthenticationError: If the token endpoint rejects the exchange,
                cannot be reached, or times out.
        """
        if self._disposed:
            raise AuthenticationError("Authentication manager has been disposed")

        self._state = AuthState.AUTHENTICATING
        if not self.requires_auth:
            self._state = AuthState.AUTHENTICATED
            logger.info("No credentials configured; connecting without a bearer token")
            return

        try:
            data = await self._password_grant()
            self._credential = Credential.from_token_response(data)
        except AuthenticationError as e:
            self._fail(e)
            raise

        self._failure = None
        self._state = AuthState.AUTHENTICATED
        logger.info(
            "Authenticated against realm '%s' as '%s'; token expires at %s",
            self._config.realm,
            self._config.username,
            self._credential.expires_at.isoformat(),
        )

    async def wait_for_refresh(self) -> None:
        """
        Refresh barrier.

        Returns immediately when no refresh is running, otherwise suspends
        until the running refresh settles.

        Raises:
            AuthenticationError: If the manager is (or ends up) in the failed state.
        """
        self._raise_if_failed()
        if not self._idle.is_set():
            await self._idle.wait()
            self._raise_if_failed()

    async def refresh(self) -> None:
        """
        Rotate the credential now.

        Concurrent callers share a single refresh.

        Raises:
            AuthenticationError: If every refresh attempt fails.
        """
        self._raise_if_failed()
        if self._credential is None:
            raise AuthenticationError("No credential to refresh; call authenticate() first")
        task = self._refresh_task
        if task is None or task.done():
            task = self._begin_refresh()
        await asyncio.shield(task)
        self._raise_if_failed()

    # ==================== Auto refresh ====================

    def start_auto_refresh(self) -> None:
        """Arm the refresh timer for the current credential."""
        if not self.requires_auth or self._credential is None or self._disposed:
            return
        self._auto_refresh = True
        self._schedule_next()

    def stop_auto_refresh(self) -> None:
        """Cancel the refresh timer. A refresh already running is left to finish."""
        self._auto_refresh = False
        self._cancel_timer()

    def dispose(self) -> None:
        """Stop refreshing and forget the credential. Safe to call repeatedly."""
        if self._disposed:
            return
        self._disposed = True
        self.stop_auto_refresh()
        self._listeners.clear()
        self._credential = None
        if self._state is not AuthState.FAILED:
            self._state = AuthState.UNAUTHENTICATED
        logger.debug("Authentication manager disposed")

    # ==================== Internals ====================

    def _raise_if_failed(self) -> None:
        if self._state is AuthState.FAILED:
            raise self._failure or AuthenticationError("Authentication failed")

    def _fail(self, error: AuthenticationError) -> None:
        self._state = AuthState.FAILED
        self._failure = error
        self._auto_refresh = False
        self._cancel_timer()

    def _cancel_timer(self) -> None:
        timer = self._timer
        self._timer = None
        if timer is not None and not timer.done() and timer is not asyncio.current_task():
            timer.cancel()

    def _schedule_next(self) -> None:
        self._cancel_timer()
        if not self._auto_refresh or self._credential is None:
            return

        credential = self._credential
        if credential.lifetime.total_seconds() <= 0:
            logger.warning("Token has no usable lifetime; automatic refresh disabled")
            return

        refresh_at = credential.refresh_at(self._config.refresh_ratio)
        delay = max(0.0, (refresh_at - utcnow()).total_seconds())
        logger.debug("Next token refresh in %.1fs", delay)
        self._timer = asyncio.get_running_loop().create_task(self._fire_after(delay))

    async def _fire_after(self, delay: float) -> None:
        await asyncio.sleep(delay)
        if self.refresh_in_progress:
            logger.debug("Refresh timer fired while a refresh is running; skipping")
            return
        if self._state is AuthState.FAILED or self._disposed:
            return
        self._begin_refresh()

    def _begin_refresh(self) -> asyncio.Task[None]:
        # Close the barrier before the task exists: requests arriving from here
        # on wait for the rotation to settle.
        self._idle.clear()
        self._state = AuthState.REFRESHING
        self._refresh_task = asyncio.get_running_loop().create_task(self._run_refresh())
        return self._refresh_task

    async def _run_refresh(self) -> None:
        attempts = self._config.max_refresh_attempts
        last_error: Optional[BaseException] = None
        try:
            for attempt in range(1, attempts + 1):
                if self._disposed:
                    return
                previous = self._credential
                try:
                    data = await self._refresh_grant(previous)
                    credential = Credential.from_token_response(data, previous=previous)
                    await self._publish(credential)
                except Exception as e:
                    last_error = e
                    if attempt < attempts:
                        delay = self._backoff(attempt)
                        logger.warning(
                            "Token refresh attempt %d/%d failed: %s; retrying in %.1fs",
                            attempt,
                            attempts,
                            e,
                            delay,
                        )
                        await asyncio.sleep(delay)
                    continue

                if self._disposed:
                    logger.debug("Manager disposed during refresh; dropping new credential")
                    return
                self._credential = credential
                self._state = AuthState.AUTHENTICATED
                logger.info(
                    "Token refreshed (rotation #%d); expires at %s",
                    self._sequence,
                    credential.expires_at.isoformat(),
                )
                self._schedule_next()
                return

            error = AuthenticationError(
                f"Token refresh failed after {attempts} attempts: {last_error}",
                status_code=getattr(last_error, "status_code", None),
            )
            error.__cause__ = last_error
            logger.error("%s", error.message)
            self._fail(error)
        finally:
            self._idle.set()

    def _backoff(self, attempt: int) -> float:
        delay = self._config.refresh_backoff * (2 ** (attempt - 1))
        return min(delay, self._config.refresh_backoff_max)

    async def _publish(self, credential: Credential) -> None:
        event = TokenRotated(
            token=credential.token,
            sequence=self._sequence + 1,
            expires_at=credential.expires_at,
        )
        for listener in list(self._listeners):
            await listener.on_token_rotated(event)
        self._sequence = event.sequence

    async def _password_grant(self) -> dict[str, Any]:
        return await self._request_token(
            {
                "grant_type": "password",
                "client_id": self._config.oauth_client_id,
                "username": self._config.username,
                "password": self._config.password,
            }
        )

    async def _refresh_grant(self, previous: Optional[Credential]) -> dict[str, Any]:
        if previous is None or not previous.refresh_token:
            return await self._password_grant()

        try:
            return await self._request_token(
                {
                    "grant_type": "refresh_token",
                    "client_id": self._config.oauth_client_id,
                    "refresh_token": previous.refresh_token,
                }
            )
        except AuthenticationError as e:
            # Keycloak answers an expired refresh token with 400 invalid_grant.
            if e.status_code not in (400, 401):
                raise
            logger.warning("Refresh token rejected (%s); reauthenticating", e.status_code)
            return await self._password_grant()

    async def _request_token(self, form: dict[str, str]) -> dict[str, Any]:
        token_url = self._config.token_url
        timeout = self._config.token_timeout
        try:
            async with httpx.AsyncClient(
                timeout=timeout,
                verify=not self._config.insecure,
            ) as client:
                response = await client.post(
                    token_url,
                    data=form,
                    headers={"Accept": "application/json"},
                )
        except httpx.TimeoutException as e:
            raise AuthenticationError(
                f"Token request timed out after {timeout}s"
            ) from e
        except httpx.HTTPError as e:
            raise AuthenticationError(f"Token request failed: {e}") from e

        if not response.is_success:
            raise AuthenticationError(
                f"Token request failed: {response.status_code} {response.text[:200]}",
                status_code=response.status_code,
            )

        try:
            data = response.json()
        except ValueError as e:
            raise AuthenticationError(
                "Token endpoint returned a non-JSON response",
                status_code=response.status_code,
            ) from e

        if not isinstance(data, dict) or not data.get("access_token"):
            raise AuthenticationError(
                "Token endpoint response has no access_token",
                status_code=response.status_code,
            )
        return data
