"""Streaming HTTP transport for model providers with rate limiting and retries."""

import asyncio
import time
from collections.abc import AsyncIterator

import httpx
from limits import RateLimitItem, parse
from limits.storage import MemoryStorage
from limits.strategies import MovingWindowRateLimiter

from rapport.clients.base import ProviderConfig, ProviderRequest
from rapport.errors import ProviderError
from rapport.utils.logging import get_logger

logger = get_logger(__name__)

MAX_RETRY_AFTER_SECONDS = 120


class ProviderRateLimiter:
    """Client-side rate limiter using the limits library."""

    def __init__(self, requests_per_minute: int = 50, tokens_per_minute: int = 200_000):
        """Initialize rate limiter.

        Args:
            requests_per_minute: Maximum requests per minute
            tokens_per_minute: Maximum estimated prompt tokens per minute
        """
        self.storage = MemoryStorage()
        self.limiter = MovingWindowRateLimiter(self.storage)

        self.request_limit = parse(f"{requests_per_minute}/minute")
        self.token_limit = parse(f"{tokens_per_minute}/minute")

    async def check_rate_limit(self, estimated_tokens: int, identifier: str) -> None:
        """Wait until a request of the given size fits within the limits."""
        logger.debug(f"Checking rate limit for {estimated_tokens} tokens, identifier: {identifier}")

        if not self.limiter.hit(self.request_limit, identifier):
            await self._wait_for_window(self.request_limit, identifier, "Request")

        token_identifier = f"{identifier}_tokens"
        if estimated_tokens > 0 and not self.limiter.hit(self.token_limit, token_identifier, cost=estimated_tokens):
            await self._wait_for_window(self.token_limit, token_identifier, "Token")

    async def _wait_for_window(self, limit: RateLimitItem, identifier: str, label: str) -> None:
        window_stats = self.limiter.get_window_stats(limit, identifier)
        wait_time = max(0.0, window_stats.reset_time - time.time())
        if wait_time > 0:
            logger.warning(f"{label} rate limit exceeded, waiting {wait_time:.2f}s")
            await asyncio.sleep(wait_time)


class StreamingTransport:
    """Sends one POST per turn step and streams the response body.

    ``stream`` yields the whole response text received so far each time it
    grows. Failed attempts are retried only while opening the response (429
    and 5xx statuses, connection errors). Once content is flowing a failure
    ends the turn, since a retry would replay text the caller already has.

    Setting the cancellation event stops the stream promptly, including while
    waiting for the next chunk or for a retry, and closes the response.
    """

    def __init__(
        self,
        config: ProviderConfig | None = None,
        client: httpx.AsyncClient | None = None,
        rate_limiter: ProviderRateLimiter | None = None,
    ):
        """Initialize transport.

        Args:
            config: Provider configuration (timeouts, retries, rate limits)
            client: HTTP client to use (defaults to a new AsyncClient)
            rate_limiter: Rate limiter (defaults to one built from config)
        """
        self.config = config or ProviderConfig()
        self.client = client or httpx.AsyncClient(timeout=httpx.Timeout(self.config.timeout, connect=10.0))
        self.rate_limiter = rate_limiter or ProviderRateLimiter(
            self.config.requests_per_minute, self.config.tokens_per_minute
        )

    async def stream(
        self, request: ProviderRequest, cancel: asyncio.Event, estimated_tokens: int = 0
    ) -> AsyncIterator[str]:
        """Stream a provider response as a growing buffer.

        Args:
            request: Request to send
            cancel: Event that aborts the stream when set
            estimated_tokens: Prompt size used for rate limiting

        Yields:
            The complete response text received so far

        Raises:
            ProviderError: On non-success status, network failure or a missing response
        """
        await self.rate_limiter.check_rate_limit(estimated_tokens, request.provider)

        response = await self._open(request, cancel)
        if response is None:
            return

        buffer = ""
        chunks = response.aiter_text()
        try:
            while True:
                chunk = await self._next_chunk(chunks, cancel)
                if chunk is None:
                    break
                if chunk:
                    buffer += chunk
                    yield buffer
        except httpx.HTTPError as e:
            raise ProviderError(
                f"Connection to {request.provider} was interrupted: {e}", provider=request.provider
            ) from e
        finally:
            await response.aclose()

        if cancel.is_set():
            logger.info(f"{request.provider} stream cancelled after {len(buffer)} characters")
        else:
            logger.debug(f"{request.provider} stream completed with {len(buffer)} characters")

    async def aclose(self) -> None:
        """Close the underlying HTTP client."""
        await self.client.aclose()

    async def _open(self, request: ProviderRequest, cancel: asyncio.Event) -> httpx.Response | None:
        """Open the response stream, retrying transient failures."""
        for attempt in range(self.config.max_retries):
            if cancel.is_set():
                return None

            last_attempt = attempt == self.config.max_retries - 1
            logger.debug(f"Opening {request.provider} stream (attempt {attempt + 1}/{self.config.max_retries})")

            try:
                response = await self.client.send(
                    self.client.build_request("POST", request.url, headers=request.headers, json=request.body),
                    stream=True,
                )
            except httpx.HTTPError as e:
                if not last_attempt:
                    logger.warning(f"Could not reach {request.provider}: {e}, retrying")
                    if await _cancelled_during(self.config.retry_delay * (2**attempt), cancel):
                        return None
                    continue
                raise ProviderError(f"Could not reach {request.provider}: {e}", provider=request.provider) from e

            if response.is_success:
                return response

            await response.aread()
            await response.aclose()
            error = ProviderError(
                _error_message(response, request.provider),
                status_code=response.status_code,
                provider=request.provider,
            )

            delay = self._retry_delay(response, attempt)
            if error.retryable and delay is not None and not last_attempt:
                logger.warning(f"{request.provider} returned {response.status_code}, retrying in {delay:.1f}s")
                if await _cancelled_during(delay, cancel):
                    logger.info(f"{request.provider} request cancelled while waiting to retry")
                    return None
                continue

            logger.error(f"{request.provider} request failed with {response.status_code}: {error.message}")
            raise error

        raise ProviderError(
            f"Failed to complete request after {self.config.max_retries} attempts", provider=request.provider
        )

    def _retry_delay(self, response: httpx.Response, attempt: int) -> float | None:
        """Seconds to wait before retrying, or None when retrying is pointless."""
        if response.status_code == 429:
            try:
                retry_after = float(response.headers.get("retry-after", 60))
            except ValueError:
                retry_after = 60.0
            return retry_after if retry_after < MAX_RETRY_AFTER_SECONDS else None
        return self.config.retry_delay * (2**attempt)

    async def _next_chunk(self, chunks: AsyncIterator[str], cancel: asyncio.Event) -> str | None:
        """Next body chunk, or None when the body ends or the turn is cancelled."""
        if cancel.is_set():
            return None

        pull = asyncio.ensure_future(_pull(chunks))
        cancelled = asyncio.ensure_future(cancel.wait())
        try:
            done, _ = await asyncio.wait({pull, cancelled}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            cancelled.cancel()
            if not pull.done():
                pull.cancel()

        return pull.result() if pull in done else None


async def _cancelled_during(delay: float, cancel: asyncio.Event) -> bool:
    """Wait out a retry delay, returning early with True if the turn is cancelled."""
    try:
        await asyncio.wait_for(cancel.wait(), timeout=delay)
    except TimeoutError:
        return False
    return True


async def _pull(chunks: AsyncIterator[str]) -> str | None:
    try:
        return await anext(chunks)
    except StopAsyncIteration:
        return None


def _error_message(response: httpx.Response, provider: str) -> str:
    """Extract the provider's error message from a failed response body."""
    try:
        payload = response.json()
    except ValueError:
        payload = None

    if isinstance(payload, list) and payload:
        payload = payload[0]
    if isinstance(payload, dict):
        error = payload.get("error")
        if isinstance(error, dict) and error.get("message"):
            return str(error["message"])
        if isinstance(error, str):
            return error

    return f"{provider} API error ({response.status_code})"
