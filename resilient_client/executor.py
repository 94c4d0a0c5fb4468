"""Request execution pipeline: auth, transform, transport, classify, retry."""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, Mapping, NamedTuple, Optional

import httpx

from .auth import AuthCoordinator
from .classifier import classify_exception, classify_response
from .config import APIConfig
from .exceptions import APIError, ErrorKind, UnknownAPIError
from .retry import AttemptState, RetryPolicy
from .transform import APIResponse, prepare_outgoing, unwrap_incoming

logger = logging.getLogger(__name__)

IDEMPOTENT_METHODS = frozenset({"GET", "HEAD", "OPTIONS", "PUT", "DELETE"})


@dataclass(frozen=True)
class RequestOptions:
    """Per-call overrides merged over the client defaults."""

    timeout: Optional[float] = None
    max_retries: Optional[int] = None
    skip_auth: bool = False
    skip_retry: bool = False
    # None means "infer from the method"; POST and PATCH need an explicit True
    idempotent: Optional[bool] = None
    headers: Optional[Mapping[str, str]] = None


@dataclass(frozen=True)
class RequestDescriptor:
    """Immutable description of one logical call."""

    method: str
    path: str
    body: Any = None
    params: Optional[Mapping[str, Any]] = None
    options: RequestOptions = field(default_factory=RequestOptions)

    def __post_init__(self):
        object.__setattr__(self, "method", self.method.upper())

    @property
    def is_idempotent(self) -> bool:
        if self.options.idempotent is not None:
            return self.options.idempotent
        return self.method in IDEMPOTENT_METHODS


class PreparedRequest(NamedTuple):
    method: str
    path: str
    headers: Dict[str, str]
    body: Any
    params: Optional[Mapping[str, Any]]
    timeout: float
    token: Optional[str]


class RequestExecutor:
    """Runs a :class:`RequestDescriptor` to a result or a classified error.

    Each attempt goes through the fixed stages ``attach_auth``,
    ``transform_out``, ``transport`` (which classifies failures) and
    ``transform_in``. Transient failures are retried with backoff; an
    authentication failure triggers one shared refresh and a single retry.
    """

    def __init__(
        self,
        transport: httpx.AsyncClient,
        auth: AuthCoordinator,
        config: Optional[APIConfig] = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        self._http = transport
        self.auth = auth
        self.config = config or APIConfig()
        self.retry_policy = RetryPolicy(self.config.retry_config)
        self._sleep = sleep

    # Pipeline stages

    def _attach_auth(self, descriptor: RequestDescriptor) -> PreparedRequest:
        options = descriptor.options
        headers = dict(options.headers or {})
        token = None
        if not options.skip_auth:
            credential = self.auth.credential
            if credential is not None:
                token = credential.token
                headers["Authorization"] = credential.authorization

        timeout = options.timeout if options.timeout is not None else self.config.timeout
        return PreparedRequest(
            method=descriptor.method,
            path=descriptor.path,
            headers=headers,
            body=descriptor.body,
            params=descriptor.params,
            timeout=timeout,
            token=token,
        )

    def _transform_out(self, request: PreparedRequest) -> PreparedRequest:
        if request.body is None:
            return request
        return request._replace(body=prepare_outgoing(request.body))

    async def _transport(self, request: PreparedRequest) -> httpx.Response:
        context = {"request_method": request.method, "request_url": request.path}

        if isinstance(request.body, (str, bytes)):
            json_data, content = None, request.body
        else:
            json_data, content = request.body, None

        try:
            response = await self._http.request(
                request.method,
                request.path,
                json=json_data,
                content=content,
                params=request.params,
                headers=request.headers,
                timeout=request.timeout,
            )
        except (httpx.HTTPError, OSError) as e:
            raise classify_exception(e, **context) from e
        except Exception as e:
            # Request never left: unencodable body, invalid URL
            raise UnknownAPIError(str(e), cause=e, **context) from e

        if not response.is_success:
            raise classify_response(response, **context)
        return response

    def _transform_in(self, response: httpx.Response) -> APIResponse:
        if response.status_code == 204 or not response.content:
            return APIResponse(data=None, meta=None)

        content_type = response.headers.get("Content-Type", "")
        if "json" not in content_type:
            try:
                return unwrap_incoming(response.json())
            except ValueError:
                return unwrap_incoming(response.text)

        try:
            raw = response.json()
        except ValueError as e:
            raise UnknownAPIError(
                f"Failed to decode JSON response: {e}",
                status_code=response.status_code,
                cause=e,
                request_method=response.request.method,
                request_url=str(response.request.url),
            ) from e
        return unwrap_incoming(raw)

    async def _attempt(self, request: PreparedRequest) -> APIResponse:
        response = await self._transport(self._transform_out(request))
        return self._transform_in(response)

    # Orchestration

    async def execute(self, descriptor: RequestDescriptor) -> APIResponse:
        """
        Execute one logical call, retrying and refreshing as needed.

        Args:
            descriptor (RequestDescriptor): Call to execute

        Returns:
            APIResponse: Unwrapped ``data`` and ``meta``

        Raises:
            APIError: Classified error once the call cannot succeed
        """
        options = descriptor.options
        state = AttemptState()

        if not options.skip_auth:
            try:
                await self.auth.ensure_fresh()
            except APIError as error:
                self._surface(error, descriptor, state)

        while True:
            request = self._attach_auth(descriptor)
            logger.debug(
                f"{descriptor.method} {descriptor.path} (attempt {state.attempts_made})"
            )
            try:
                return await self._attempt(request)
            except APIError as error:
                if state.auth_retried:
                    self._surface(error, descriptor, state)

                if error.kind is ErrorKind.AUTH:
                    state = await self._refresh_or_surface(error, request, descriptor, state)
                    continue

                if options.skip_retry:
                    self._surface(error, descriptor, state)

                decision = self.retry_policy.decide(
                    error,
                    state,
                    descriptor.is_idempotent,
                    max_attempts=options.max_retries,
                )
                if not decision.retry:
                    self._surface(error, descriptor, state)

                logger.warning(
                    f"{descriptor.method} {descriptor.path} failed with "
                    f"{error.kind.value}, retrying in {decision.delay:.2f}s"
                )
                await self._sleep(decision.delay)
                state = state.next_attempt(decision.delay)

    async def _refresh_or_surface(
        self,
        error: APIError,
        request: PreparedRequest,
        descriptor: RequestDescriptor,
        state: AttemptState,
    ) -> AttemptState:
        if descriptor.options.skip_auth or error.status_code not in self.config.refresh_on_status:
            self._surface(error, descriptor, state)
        if request.token is None and self.auth.credential is None:
            self._surface(error, descriptor, state)

        try:
            await self.auth.refresh(request.token)
        except APIError as refresh_error:
            self._surface(refresh_error, descriptor, state)
        return state.after_refresh()

    def _surface(self, error: APIError, descriptor: RequestDescriptor, state: AttemptState):
        error.context.setdefault("request_method", descriptor.method)
        error.context.setdefault("request_url", descriptor.path)
        error.context["attempts"] = state.attempts_made
        logger.error(f"{descriptor.method} {descriptor.path} failed: {error}")
        raise error
