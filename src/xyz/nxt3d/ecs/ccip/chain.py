from abc import ABC, abstractmethod
from dataclasses import dataclass
from time import monotonic
from types import TracebackType
from typing import (
    Any,
    Awaitable,
    Callable,
    Generator,
    Sequence,
    Tuple,
)
import logging
from aiohttp import ClientResponse, ClientSession, hdrs
from aiohttp.typedefs import StrOrURL
from multidict import CIMultiDictProxy

from xyz.nxt3d.ecs.app.metrics import MetricsClient

RequestFunc = Callable[..., Awaitable[ClientResponse]]

logger = logging.getLogger(__name__)


@dataclass
class ChainRequest:
    method: str
    url: StrOrURL
    headers: dict[str, Any] | None = None
    trace_request_ctx: dict[str, Any] | None = None
    kwargs: dict[str, Any] | None = None

    @staticmethod
    def from_chain_request(request: "ChainRequest") -> "ChainRequest":
        return ChainRequest(
            method=request.method,
            url=request.url,
            headers=request.headers,
            trace_request_ctx=request.trace_request_ctx,
            kwargs=request.kwargs,
        )


@dataclass
class ChainResponse:
    status: int
    headers: CIMultiDictProxy[str]
    body: str | bytes | dict[str, Any] | list[Any] | None = None

    @staticmethod
    async def from_aiohttp_response(response: ClientResponse) -> "ChainResponse":
        status = response.status
        headers = response.headers

        content_type = response.headers.get(hdrs.CONTENT_TYPE, "")

        # A body that does not decode as its declared type is kept as raw bytes.
        body: str | bytes | dict[str, Any] | list[Any] | None
        try:
            if content_type.startswith("application/json"):
                body = await response.json()
            elif content_type.startswith("text/"):
                body = await response.text()
            else:
                body = await response.read()
        except ValueError:
            body = await response.read()

        return ChainResponse(status=status, headers=headers, body=body)

    def body_message(self) -> str:
        """Best effort human readable error text from the body."""
        if isinstance(self.body, dict):
            message = self.body.get("message", self.body.get("error"))
            if message is not None:
                return str(message)
        elif isinstance(self.body, str) and self.body:
            return self.body
        return f"HTTP {self.status}"


NextChainResponseCallbackType = (
    Tuple[ClientResponse, ChainResponse]
    | Tuple[ClientResponse, ChainResponse, ChainRequest]
)

NextChainCallbackType = Callable[
    [ChainRequest], Awaitable[NextChainResponseCallbackType]
]


class RequestMiddlewareBase(ABC):
    @abstractmethod
    async def handle(
        self, next: NextChainCallbackType, request: ChainRequest
    ) -> NextChainResponseCallbackType:
        pass

    def handle_gen(self, next: NextChainCallbackType) -> NextChainCallbackType:
        async def next_invoke(request: ChainRequest) -> NextChainResponseCallbackType:
            return await self.handle(next, request)

        return next_invoke


class MetricsMiddleware(RequestMiddlewareBase):
    """Times each gateway request and counts responses by status."""

    def __init__(self, metrics_client: MetricsClient) -> None:
        super().__init__()
        self._metrics_client = metrics_client

    async def handle(
        self, next: NextChainCallbackType, request: ChainRequest
    ) -> NextChainResponseCallbackType:
        start_time = monotonic()
        try:
            response = await next(request)
        except Exception as e:
            self._metrics_client.increment(
                "ecs.gateway.request.exception",
                1,
                tag_dict={"exception": type(e).__name__, "method": request.method},
            )
            raise
        finally:
            self._metrics_client.timer(
                "ecs.gateway.request.time",
                monotonic() - start_time,
                tag_dict={"method": request.method},
            )

        self._metrics_client.increment(
            "ecs.gateway.request.count",
            1,
            tag_dict={"status": response[1].status, "method": request.method},
        )
        return response


class RetryServerErrorMiddleware(RequestMiddlewareBase):
    """Asks the chain context to repeat requests answered with a 5xx status."""

    async def handle(
        self, next: NextChainCallbackType, request: ChainRequest
    ) -> NextChainResponseCallbackType:
        response = await next(request)
        client_response, chain_response = response[0], response[1]
        if chain_response.status >= 500:
            logger.debug(f"retrying {request.method} {request.url}: {chain_response.status}")
            return (
                client_response,
                chain_response,
                ChainRequest.from_chain_request(request),
            )
        return response


class EndOfLineChainMiddleware:
    def __init__(
        self,
        request_func: RequestFunc,
        logger: logging.Logger,
        raise_for_status: bool = False,
    ) -> None:
        super().__init__()
        self._request_func = request_func
        self._raise_for_status = raise_for_status
        self._logger = logger

    async def handle(self, request: ChainRequest) -> NextChainResponseCallbackType:

        self._logger.debug(f"Making request: {request.method} {request.url}")

        response: ClientResponse = await self._request_func(
            request.method.lower(),
            request.url,
            headers=request.headers,
            trace_request_ctx={
                **(request.trace_request_ctx or {}),
            },
            **(request.kwargs or {}),
        )

        if self._raise_for_status:
            response.raise_for_status()

        return response, await ChainResponse.from_aiohttp_response(response)


class ChainMiddlewareContext:
    """
    Runs a request through the middleware chain.

    A middleware that returns a third tuple element asks for that request to be
    sent again. After `attempt_max` attempts the last response is returned as is.
    """

    def __init__(
        self,
        chain_callback: NextChainCallbackType,
        chain_request: ChainRequest,
        logger: logging.Logger,
        raise_for_status: bool = False,
        attempt_max: int = 3,
    ) -> None:
        self._chain_callback = chain_callback
        self._chain_request = chain_request
        self._logger = logger
        self._raise_for_status = raise_for_status

        self._chain_response: ChainResponse | None = None
        self.client_response: ClientResponse | None = None

        self._attempt_max = attempt_max

    async def _do_request(self) -> Tuple[ClientResponse, ChainResponse]:
        current_attempt = 0

        chain_request = self._chain_request

        while True:
            current_attempt += 1
            self._logger.debug(f"Attempt {current_attempt} out of {self._attempt_max}")

            response = await self._chain_callback(chain_request)
            client_response = response[0]
            chain_response = response[1]
            new_request = None
            if len(response) == 3:
                new_request = response[2]

            self._chain_response = chain_response
            self.client_response = client_response

            if new_request is None or current_attempt >= self._attempt_max:
                if self._raise_for_status:
                    client_response.raise_for_status()
                return client_response, chain_response

            chain_request = new_request

    def __await__(self) -> Generator[Any, None, Tuple[ClientResponse, ChainResponse]]:
        return self.__aenter__().__await__()

    async def __aenter__(self) -> Tuple[ClientResponse, ChainResponse]:
        return await self._do_request()

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        if self.client_response is not None and not self.client_response.closed:
            self.client_response.close()


class ChainMiddlewareClient:
    def __init__(
        self,
        client_session: ClientSession,
        logger: logging.Logger | None = None,
        middleware: Sequence[RequestMiddlewareBase] | None = None,
        raise_for_status: bool = False,
        attempt_max: int = 3,
    ) -> None:
        self._client = client_session
        self._middleware = middleware
        self._logger = logger or logging.getLogger("ecs_gateway_chain")
        self._raise_for_status = raise_for_status
        self._attempt_max = attempt_max

    def get(self, url: StrOrURL, **kwargs: Any) -> ChainMiddlewareContext:
        return self._make_request(method=hdrs.METH_GET, url=url, **kwargs)

    def post(self, url: StrOrURL, **kwargs: Any) -> ChainMiddlewareContext:
        return self._make_request(method=hdrs.METH_POST, url=url, **kwargs)

    def _make_request(
        self,
        method: str,
        url: StrOrURL,
        **kwargs: Any,
    ) -> ChainMiddlewareContext:
        chain_request = ChainRequest(
            method=method,
            url=url,
            headers=kwargs.pop("headers", {}),
            trace_request_ctx=kwargs.pop("trace_request_ctx", None),
            kwargs=kwargs,
        )

        end_of_line_middleware = EndOfLineChainMiddleware(
            request_func=self._client.request,
            logger=self._logger,
            raise_for_status=False,
        )

        chain_callback: NextChainCallbackType = end_of_line_middleware.handle

        for mw in reversed(self._middleware or []):
            chain_callback = mw.handle_gen(chain_callback)

        return ChainMiddlewareContext(
            chain_callback=chain_callback,
            chain_request=chain_request,
            logger=self._logger,
            raise_for_status=self._raise_for_status,
            attempt_max=self._attempt_max,
        )
