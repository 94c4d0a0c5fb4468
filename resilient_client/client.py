"""Resilient REST API client facade."""

import asyncio
import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Awaitable, Callable, Mapping, Optional, Union

import httpx

from .auth import (
    AuthCoordinator,
    Credential,
    CredentialStore,
    JSONFileCredentialStore,
    Refresher,
)
from .classifier import classify_exception, classify_response
from .config import APIConfig, ClientSettings
from .exceptions import APIAuthenticationError, UnknownAPIError
from .executor import RequestDescriptor, RequestExecutor, RequestOptions
from .transform import APIResponse, unwrap_incoming

logger = logging.getLogger(__name__)


class APIClient:
    """Async REST API client with auth refresh, retries and error classification.

    Construct one per application and pass it to the code that needs it.
    Every verb method returns an :class:`APIResponse` or raises an
    :class:`~resilient_client.exceptions.APIError`.
    """

    def __init__(
        self,
        config: Optional[APIConfig] = None,
        credential_store: Optional[CredentialStore] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        refresher: Optional[Refresher] = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        """Initialize API client.

        Args:
            config: API configuration. If None, uses default config.
            credential_store: Where the credential is loaded from and persisted.
            transport: Custom httpx transport, e.g. ``httpx.MockTransport`` in tests.
            refresher: Replaces the built-in ``POST refresh_path`` call.
            sleep: Coroutine used for backoff waits.
        """
        self.config = config or APIConfig()
        self._client = httpx.AsyncClient(
            base_url=self.config.base_url or "",
            headers=self.config.default_headers,
            timeout=self.config.timeout,
            limits=httpx.Limits(
                max_connections=self.config.max_connections,
                max_keepalive_connections=self.config.max_keepalive_connections,
                keepalive_expiry=self.config.keepalive_expiry,
            ),
            follow_redirects=True,
            transport=transport,
        )
        self.auth = AuthCoordinator(
            store=credential_store,
            refresher=refresher or self._refresh_credential,
            expiry_leeway=self.config.expiry_leeway,
        )
        self._executor = RequestExecutor(self._client, self.auth, self.config, sleep=sleep)

    @classmethod
    def from_settings(
        cls,
        settings: Optional[ClientSettings] = None,
        **kwargs
    ) -> "APIClient":
        """Create a client from environment-backed settings."""
        settings = settings or ClientSettings()
        if settings.credential_file is not None and "credential_store" not in kwargs:
            kwargs["credential_store"] = JSONFileCredentialStore(settings.credential_file)
        return cls(APIConfig.from_settings(settings), **kwargs)

    # Credential lifecycle

    @property
    def credential(self) -> Optional[Credential]:
        return self.auth.credential

    def login(self, credential: Union[Credential, str]) -> None:
        """Install a credential obtained from an explicit login."""
        if isinstance(credential, str):
            credential = Credential(token=credential)
        self.auth.set_credential(credential)

    def logout(self) -> None:
        self.auth.clear_credential()

    async def _refresh_credential(self, credential: Credential) -> Credential:
        """Call the refresh endpoint once, without retries or nested refreshes."""
        path = self.config.refresh_path
        context = {"request_method": "POST", "request_url": path}
        body = {"refresh_token": credential.refresh_token} if credential.refresh_token else None

        try:
            response = await self._client.post(
                path,
                json=body,
                headers={"Authorization": credential.authorization},
            )
        except (httpx.HTTPError, OSError) as e:
            raise classify_exception(e, **context) from e
        except Exception as e:
            raise UnknownAPIError(str(e), cause=e, **context) from e

        if not response.is_success:
            raise classify_response(response, **context)

        try:
            payload = response.json()
        except ValueError as e:
            raise APIAuthenticationError(
                "Refresh response was not valid JSON",
                status_code=response.status_code,
                cause=e,
                **context
            ) from e

        return self._parse_credential(unwrap_incoming(payload).data, credential)

    @staticmethod
    def _parse_credential(data: Any, previous: Credential) -> Credential:
        if not isinstance(data, dict):
            raise APIAuthenticationError("Refresh response did not include a token")

        token = data.get("token") or data.get("access_token")
        if not token:
            raise APIAuthenticationError("Refresh response did not include a token")

        expires_at = None
        expires_in = data.get("expires_in") or data.get("expiresIn")
        if expires_in:
            expires_at = datetime.now(timezone.utc) + timedelta(seconds=float(expires_in))

        return Credential(
            token=token,
            expires_at=expires_at,
            refresh_token=data.get("refresh_token") or previous.refresh_token,
        )

    # Requests

    async def request(
        self,
        method: str,
        path: str,
        body: Any = None,
        params: Optional[Mapping[str, Any]] = None,
        **options
    ) -> APIResponse:
        """
        Send a request through the retry and auth pipeline.

        Args:
            method (str): HTTP method
            path (str): Path relative to the base URL
            body (Any): JSON body; ``None`` fields are stripped before sending
            params (Optional[Mapping[str, Any]]): Query parameters
            **options: Per-call overrides, see :class:`RequestOptions`
                (timeout, max_retries, skip_auth, skip_retry, idempotent, headers)

        Returns:
            APIResponse: ``data`` and ``meta`` of the response
        """
        descriptor = RequestDescriptor(
            method=method,
            path=path,
            body=body,
            params=params,
            options=RequestOptions(**options),
        )
        return await self._executor.execute(descriptor)

    async def get(
        self,
        path: str,
        params: Optional[Mapping[str, Any]] = None,
        **options
    ) -> APIResponse:
        """Send GET request."""
        return await self.request("GET", path, params=params, **options)

    async def post(
        self,
        path: str,
        body: Any = None,
        params: Optional[Mapping[str, Any]] = None,
        **options
    ) -> APIResponse:
        """Send POST request. Only retried when ``idempotent=True`` is passed."""
        return await self.request("POST", path, body=body, params=params, **options)

    async def put(
        self,
        path: str,
        body: Any = None,
        params: Optional[Mapping[str, Any]] = None,
        **options
    ) -> APIResponse:
        """Send PUT request."""
        return await self.request("PUT", path, body=body, params=params, **options)

    async def patch(
        self,
        path: str,
        body: Any = None,
        params: Optional[Mapping[str, Any]] = None,
        **options
    ) -> APIResponse:
        """Send PATCH request. Only retried when ``idempotent=True`` is passed."""
        return await self.request("PATCH", path, body=body, params=params, **options)

    async def delete(
        self,
        path: str,
        params: Optional[Mapping[str, Any]] = None,
        **options
    ) -> APIResponse:
        """Send DELETE request."""
        return await self.request("DELETE", path, params=params, **options)

    async def aclose(self):
        """Cancel any in-flight refresh and close the HTTP client."""
        await self.auth.aclose()
        await self._client.aclose()

    async def __aenter__(self):
        """Async context manager entry."""
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Async context manager exit."""
        await self.aclose()
