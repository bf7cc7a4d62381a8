import asyncio
import dataclasses
from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional, Union

import httpx
import structlog

from . import shapes
from .config import Config, RequestDefaults
from .coordinator import CancellationToken, RequestCoordinator
from .errors import RequestCancelled, classify, too_many_redirects
from .log import configure_logging
from .redirects import RedirectFollower

logger = structlog.get_logger(__name__)

OPTION_KEYS = frozenset({
    'method', 'headers', 'body', 'mode', 'credentials', 'redirect', 'referrer_policy',
})


@dataclass
class RequestDescriptor:
    endpoint: str
    method: str = 'POST'
    headers: httpx.Headers = field(default_factory=httpx.Headers)
    body: Optional[Union[bytes, str]] = None
    mode: str = 'cors'
    credentials: str = 'include'
    redirect: str = 'follow'
    referrer_policy: str = 'no-referrer-when-downgrade'
    cancellation_token: Optional[CancellationToken] = None

    @property
    def follow_redirects(self) -> bool:
        return self.redirect == 'follow'

    @property
    def hints(self) -> Dict[str, str]:
        """Fetch-style hints carried on the request for the transport to use or ignore."""
        return {
            'mode': self.mode,
            'credentials': self.credentials,
            'redirect': self.redirect,
            'referrer_policy': self.referrer_policy,
        }

    def with_endpoint(self, endpoint: str) -> 'RequestDescriptor':
        return dataclasses.replace(self, endpoint=endpoint, headers=httpx.Headers(self.headers))


class RequestExecutor:
    def __init__(
        self,
        client: httpx.AsyncClient = None,
        defaults: RequestDefaults = None,
        user_agent: str = 'gotfetch/1.0',
        timeout: float = 30.0,
        max_connections: int = 20,
        max_keepalive_connections: int = 10,
        transport_max_redirects: int = 20,
        transport: httpx.AsyncBaseTransport = None,
    ):
        """Initialize the executor; builds its own httpx client unless one is given."""
        self.defaults = defaults or RequestDefaults()
        self._coordinator = RequestCoordinator()
        self._redirects = RedirectFollower(self.defaults.max_redirects)
        self._owns_client = client is None

        if client is None:
            client = httpx.AsyncClient(
                timeout=httpx.Timeout(timeout),
                max_redirects=transport_max_redirects,
                headers={'User-Agent': user_agent},
                limits=httpx.Limits(
                    max_connections=max_connections,
                    max_keepalive_connections=max_keepalive_connections,
                ),
                transport=transport,
            )
        self._client = client

    async def __aenter__(self) -> 'RequestExecutor':
        return self

    async def __aexit__(self, *exc_info):
        await self.aclose()

    async def aclose(self):
        """Close the underlying client if this executor created it."""
        if self._owns_client:
            await self._client.aclose()
            logger.debug("executor_closed")

    def build_descriptor(
        self,
        endpoint: str,
        options: Mapping[str, Any] = None,
        computed_headers: Mapping[str, str] = None,
    ) -> RequestDescriptor:
        """Layer defaults, then per-call options, then computed headers."""
        options = dict(options or {})
        unknown = set(options) - OPTION_KEYS
        if unknown:
            raise TypeError(f"Unknown request options: {', '.join(sorted(unknown))}")

        headers = httpx.Headers(options.pop('headers', None) or {})
        if computed_headers:
            headers.update(computed_headers)

        settings = {
            'method': self.defaults.method,
            'mode': self.defaults.mode,
            'credentials': self.defaults.credentials,
            'redirect': self.defaults.redirect,
            'referrer_policy': self.defaults.referrer_policy,
        }
        settings.update({k: v for k, v in options.items() if v is not None})
        settings['method'] = str(settings['method']).upper()

        return RequestDescriptor(endpoint=endpoint, headers=headers, **settings)

    async def execute(
        self,
        endpoint: str,
        name: str = None,
        options: Mapping[str, Any] = None,
        only_response: bool = False,
        ignore_abort: bool = False,
        max_redirects: int = None,
        computed_headers: Mapping[str, str] = None,
    ) -> Any:
        """Send a request and return its decoded JSON body (or the response).

        Raises ResponseError for non-2xx outcomes and exhausted redirect
        budgets, RequestCancelled when a same-named request superseded this
        one. Transport errors from httpx propagate unchanged.
        """
        descriptor = self.build_descriptor(endpoint, options, computed_headers)
        budget = self.defaults.max_redirects if max_redirects is None else max_redirects

        token = None
        if name and not ignore_abort:
            token = self._coordinator.acquire(name)
            self._redirects.reset(name)
            descriptor.cancellation_token = token

        # ignore_abort and unnamed calls count hops on a private key
        chain = name if token is not None else object()

        try:
            while True:
                response = await self._guarded(self._send(descriptor), token, name)

                if self._redirects.should_follow(response, descriptor.method):
                    await self._guarded(response.aread(), token, name, response)
                    hop = self._redirects.next_hop(chain, budget)
                    if hop is None:
                        raise too_many_redirects()
                    logger.info("redirect_reissued",
                                name=name,
                                hop=hop,
                                location=str(response.url))
                    descriptor = descriptor.with_endpoint(str(response.url))
                    continue

                if not response.is_success:
                    raise await self._guarded(classify(response), token, name, response)

                return await self._settle(response, token, name, only_response)
        finally:
            if token is None or self._coordinator.release(name, token):
                self._redirects.reset(chain)

    async def gql(self, source: str = None, **kwargs) -> Any:
        return await shapes.gql(self, source, **kwargs)

    async def rest(self, data: Any = None, **kwargs) -> Any:
        return await shapes.rest(self, data, **kwargs)

    async def _send(self, descriptor: RequestDescriptor) -> httpx.Response:
        request = self._client.build_request(
            descriptor.method,
            descriptor.endpoint,
            headers=descriptor.headers,
            content=descriptor.body,
            extensions={'fetch': descriptor.hints},
        )
        return await self._client.send(
            request,
            stream=True,
            follow_redirects=descriptor.follow_redirects,
        )

    async def _settle(self, response, token, name, only_response):
        await self._guarded(response.aread(), token, name, response)
        if only_response:
            return response
        if not response.content:
            return None
        return response.json()

    async def _guarded(self, awaitable, token: Optional[CancellationToken], name, response=None):
        """Await awaitable unless token is cancelled; cancellation always wins.

        A result that arrives after the token fired is discarded, so a
        superseded request never settles successfully.
        """
        if token is None:
            return await awaitable

        if token.cancelled:
            awaitable.close()
            if response is not None:
                await response.aclose()
            raise self._cancelled(name)

        task = asyncio.ensure_future(awaitable)
        waiter = asyncio.ensure_future(token.wait())
        try:
            await asyncio.wait({task, waiter}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            waiter.cancel()
            if not task.done():
                task.cancel()
                await asyncio.gather(task, return_exceptions=True)
                if response is not None:
                    await response.aclose()

        if not token.cancelled:
            return task.result()

        await self._discard(task, response)
        raise self._cancelled(name)

    async def _discard(self, task: asyncio.Future, response: Optional[httpx.Response]):
        """Close whatever a superseded step produced."""
        if not task.cancelled() and task.exception() is None:
            result = task.result()
            if isinstance(result, httpx.Response):
                await result.aclose()
        if response is not None:
            await response.aclose()

    def _cancelled(self, name) -> RequestCancelled:
        logger.info("request_cancelled", name=name)
        return RequestCancelled(name)


async def create_executor(
    config: Config = None,
    transport: httpx.AsyncBaseTransport = None,
    setup_logging: bool = True,
) -> RequestExecutor:
    """Create a RequestExecutor from configuration.

    With setup_logging, the `logging` section's level and renderer are
    applied through configure_logging first.
    """
    config = config or Config()
    if setup_logging:
        configure_logging(config.logging.level, config.logging.renderer)
    return RequestExecutor(
        defaults=config.request,
        transport=transport,
        **config.client.executor_kwargs(),
    )
