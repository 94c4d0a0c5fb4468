"""Credential ownership and single-flight refresh coordination."""

import asyncio
import json
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from enum import Enum
from pathlib import Path
from typing import Any, Awaitable, Callable, Dict, Optional, Protocol, Union

from .exceptions import APIAuthenticationError, APIError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Credential:
    """Opaque bearer token plus optional expiry hint and refresh token."""

    token: str
    expires_at: Optional[datetime] = None
    refresh_token: Optional[str] = None

    def __post_init__(self):
        # Naive expiry hints are read as UTC
        if self.expires_at is not None:
            if self.expires_at.tzinfo is None:
                expires_at = self.expires_at.replace(tzinfo=timezone.utc)
            else:
                expires_at = self.expires_at.astimezone(timezone.utc)
            object.__setattr__(self, "expires_at", expires_at)

    @property
    def authorization(self) -> str:
        return f"Bearer {self.token}"

    def is_expired(self, leeway: float = 0.0, now: Optional[datetime] = None) -> bool:
        if self.expires_at is None:
            return False
        now = now or datetime.now(timezone.utc)
        return now + timedelta(seconds=leeway) >= self.expires_at

    def to_dict(self) -> Dict[str, Any]:
        return {
            "token": self.token,
            "expires_at": self.expires_at.isoformat() if self.expires_at else None,
            "refresh_token": self.refresh_token,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Credential":
        expires_at = data.get("expires_at")
        return cls(
            token=data["token"],
            expires_at=datetime.fromisoformat(expires_at) if expires_at else None,
            refresh_token=data.get("refresh_token"),
        )

    def __repr__(self) -> str:
        return f"Credential(token='***', expires_at={self.expires_at!r})"


class CredentialStore(Protocol):
    """Key-value persistence for the current credential."""

    def get(self) -> Optional[Credential]: ...

    def set(self, credential: Credential) -> None: ...

    def clear(self) -> None: ...


class MemoryCredentialStore:
    """Process-local store, useful for tests and short-lived scripts."""

    def __init__(self, credential: Optional[Credential] = None):
        self._credential = credential

    def get(self) -> Optional[Credential]:
        return self._credential

    def set(self, credential: Credential) -> None:
        self._credential = credential

    def clear(self) -> None:
        self._credential = None


class JSONFileCredentialStore:
    """Persist the credential as a small JSON document on disk.

    Reads and writes are blocking. The coordinator runs the refresh-time
    write in a worker thread.
    """

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path).expanduser()

    def get(self) -> Optional[Credential]:
        if not self.path.exists():
            return None
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
            return Credential.from_dict(data)
        except (OSError, ValueError, KeyError, TypeError) as e:
            logger.warning(f"Ignoring unreadable credential file {self.path}: {e}")
            return None

    def set(self, credential: Credential) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(json.dumps(credential.to_dict()), encoding="utf-8")

    def clear(self) -> None:
        self.path.unlink(missing_ok=True)


class AuthState(str, Enum):
    IDLE = "IDLE"
    REFRESHING = "REFRESHING"


Refresher = Callable[[Credential], Awaitable[Credential]]


class AuthCoordinator:
    """Owns the current credential and runs at most one refresh at a time.

    The first request that reports an authentication failure starts the
    refresh; every other request failing while it runs waits on the same
    task. Waiters are resumed in the order they started waiting and are
    shielded from each other: cancelling one waiter does not cancel the
    refresh.
    """

    def __init__(
        self,
        store: Optional[CredentialStore] = None,
        refresher: Optional[Refresher] = None,
        expiry_leeway: float = 0.0,
    ):
        self.store = store if store is not None else MemoryCredentialStore()
        self.refresher = refresher
        self.expiry_leeway = expiry_leeway
        self._credential = self.store.get()
        self._refresh_enabled = self._credential is not None
        self._refresh_task: Optional[asyncio.Task] = None
        # Bumped on explicit set/clear so a stale refresh result is discarded
        self._generation = 0
        self.refresh_count = 0

    @property
    def credential(self) -> Optional[Credential]:
        return self._credential

    @property
    def state(self) -> AuthState:
        if self._refresh_task is not None and not self._refresh_task.done():
            return AuthState.REFRESHING
        return AuthState.IDLE

    @property
    def can_refresh(self) -> bool:
        return self._refresh_enabled and self._credential is not None and self.refresher is not None

    def attach(self, headers: Optional[Dict[str, str]] = None) -> Dict[str, str]:
        """Return a copy of ``headers`` carrying the bearer token, if one is held."""
        attached = dict(headers or {})
        credential = self._credential
        if credential is not None:
            attached["Authorization"] = credential.authorization
        return attached

    def set_credential(self, credential: Credential) -> None:
        """Install a credential from an explicit login and re-enable refresh."""
        self._generation += 1
        self._credential = credential
        self._refresh_enabled = True
        self.store.set(credential)

    def clear_credential(self) -> None:
        self._generation += 1
        self._credential = None
        self.store.clear()
        logger.info("Credential cleared")

    def needs_refresh(self) -> bool:
        credential = self._credential
        return credential is not None and credential.is_expired(self.expiry_leeway)

    async def ensure_fresh(self) -> Optional[Credential]:
        """Refresh ahead of time when the held credential is past its expiry hint."""
        if self.needs_refresh() and self.can_refresh:
            return await self.refresh(self._credential.token)
        return self._credential

    async def refresh(self, failed_token: Optional[str]) -> Credential:
        """
        Obtain a usable credential after ``failed_token`` was rejected.

        Joins the refresh already in flight, if any. When the held credential
        differs from the rejected one (another caller already refreshed, or a
        login happened), it is returned without a new refresh.

        Args:
            failed_token (Optional[str]): Token the rejected request carried

        Returns:
            Credential: Credential to retry with

        Raises:
            APIAuthenticationError: Refresh failed or is not possible
        """
        task = self._refresh_task
        if task is None:
            current = self._credential
            if current is not None and current.token != failed_token:
                return current
            if not self.can_refresh:
                raise APIAuthenticationError(
                    "Authentication required. No credential available to refresh."
                )
            task = self._start_refresh(current)

        try:
            return await asyncio.shield(task)
        except APIAuthenticationError as e:
            raise APIAuthenticationError(e.message, status_code=e.status_code, cause=e) from e

    def _start_refresh(self, credential: Credential) -> asyncio.Task:
        logger.info("Refreshing credential")
        self.refresh_count += 1
        task = asyncio.ensure_future(self._run_refresh(credential))
        # Retrieve the outcome even when every waiter was cancelled
        task.add_done_callback(lambda t: t.cancelled() or t.exception())
        self._refresh_task = task
        return task

    async def _run_refresh(self, credential: Credential) -> Credential:
        try:
            return await self._refresh_and_store(credential)
        finally:
            # Cleared only once the new credential is stored and installed
            self._refresh_task = None

    async def _refresh_and_store(self, credential: Credential) -> Credential:
        generation = self._generation
        try:
            new_credential = await self.refresher(credential)
        except Exception as e:
            logger.warning(f"Credential refresh failed: {e}")
            if self._generation != generation and self._credential is not None:
                # An explicit login happened while refreshing; waiters use it
                return self._credential
            if self._generation == generation:
                self._refresh_enabled = False
                self.clear_credential()
            status_code = e.status_code if isinstance(e, APIError) else None
            raise APIAuthenticationError(
                "Session expired. Please log in again.",
                status_code=status_code,
                cause=e,
            ) from e

        if self._generation != generation and self._credential is not None:
            # An explicit login happened while refreshing; it wins
            return self._credential

        # Store writes may touch disk; keep them off the event loop
        await asyncio.to_thread(self.store.set, new_credential)
        if self._generation != generation and self._credential is not None:
            # Login landed during the write; persist it again over the refresh result
            self.store.set(self._credential)
            return self._credential

        self._generation += 1
        self._credential = new_credential
        logger.info("Credential refreshed")
        return new_credential

    async def aclose(self) -> None:
        task = self._refresh_task
        if task is not None and not task.done():
            task.cancel()
            try:
                await task
            except (asyncio.CancelledError, APIAuthenticationError):
                pass
