"""httpx transport with bounded retry and exponential backoff."""

import logging
from typing import Optional

import backoff
import httpx

logger = logging.getLogger(__name__)

RETRY_STATUS_CODES = frozenset({429, 500, 502, 503, 504})


class _RetryableResponse(Exception):
    """Carries a retryable response through the backoff decorator."""

    def __init__(self, response: httpx.Response):
        super().__init__(f"retryable status {response.status_code}")
        self.response = response


class RetryTransport(httpx.AsyncBaseTransport):
    """
    Wraps another async transport and retries failed requests.

    Connection errors, timeouts, 429 and 5xx responses are retried up to
    ``retry_count`` times with exponential backoff capped at
    ``retry_wait_max`` seconds. When retries are exhausted the last response
    is returned as-is, or the last transport exception is raised.
    """

    def __init__(
        self,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        retry_count: int = 10,
        retry_wait_max: float = 60.0,
    ):
        self._transport = transport or httpx.AsyncHTTPTransport()
        self._retry_count = max(retry_count, 0)
        self._retry_wait_max = retry_wait_max

    async def handle_async_request(self, request: httpx.Request) -> httpx.Response:
        send = backoff.on_exception(
            backoff.expo,
            (httpx.TransportError, _RetryableResponse),
            max_tries=self._retry_count + 1,
            max_value=self._retry_wait_max,
            jitter=None,
            on_backoff=self._log_backoff,
        )(self._send_once)

        try:
            return await send(request)
        except _RetryableResponse as exc:
            return exc.response

    async def _send_once(self, request: httpx.Request) -> httpx.Response:
        response = await self._transport.handle_async_request(request)
        if response.status_code in RETRY_STATUS_CODES:
            # Buffer the body so the final response stays readable by the client
            await response.aread()
            await response.aclose()
            raise _RetryableResponse(response)
        return response

    @staticmethod
    def _log_backoff(details) -> None:
        request = details["args"][0]
        logger.warning(
            f"Retrying {request.method} {request.url.path} in {details['wait']:.1f}s "
            f"(attempt {details['tries']})"
        )

    async def aclose(self) -> None:
        await self._transport.aclose()
