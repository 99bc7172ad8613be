"""
Request transports

``DirectTransport`` talks to the WebDAV server itself. ``ProxiedTransport``
hands the request description to a privileged host component over a message
channel (for callers that cannot reach the server directly, e.g. because of
cross-origin restrictions) and retries while the host endpoint is missing.
Both return the same ``TransportResponse``; the strategy is picked once, when
the transport is constructed.
"""

import asyncio
from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable
from typing import Any, Protocol, runtime_checkable

import aiohttp
from pydantic import ValidationError
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception,
    stop_after_attempt,
    wait_incrementing,
)

from webdav_backup.config import get_settings
from webdav_backup.utils.logger import mask_credentials
from webdav_backup.utils.mixins import LoggerMixin
from webdav_backup.webdav.exceptions import (
    ChannelError,
    ChannelUnavailableError,
    TransportError,
    TransportErrorKind,
)
from webdav_backup.webdav.models import TransportResponse

WEBDAV_REQUEST_ACTION = "webdavRequest"


class RequestTransport(ABC):
    """Sends one HTTP-like request and returns the server's answer.

    HTTP error statuses come back as responses with ``ok=False``; only
    delivery failures raise ``TransportError``.
    """

    name: str = "base"

    @abstractmethod
    async def send(
        self,
        url: str,
        method: str,
        headers: dict[str, str],
        body: str | None = None,
    ) -> TransportResponse:
        pass


class DirectTransport(RequestTransport, LoggerMixin):
    """Issues the request over the network with aiohttp"""

    name = "direct"

    def __init__(
        self,
        timeout: float | None = None,
        session: aiohttp.ClientSession | None = None,
    ) -> None:
        self.timeout = timeout or get_settings().request_timeout_seconds
        self._session = session

    async def send(
        self,
        url: str,
        method: str,
        headers: dict[str, str],
        body: str | None = None,
    ) -> TransportResponse:
        timeout = aiohttp.ClientTimeout(total=self.timeout)
        try:
            if self._session is not None:
                return await self._perform(
                    self._session, url, method, headers, body, timeout
                )
            async with aiohttp.ClientSession(timeout=timeout) as session:
                return await self._perform(session, url, method, headers, body, timeout)
        except asyncio.TimeoutError as e:
            raise TransportError(
                TransportErrorKind.TIMEOUT,
                f"Request timed out after {self.timeout:g}s",
            ) from e
        except aiohttp.ClientError as e:
            self.logger.warning(
                "WebDAV request failed",
                method=method,
                url=mask_credentials(url),
                error=str(e),
            )
            raise TransportError(
                TransportErrorKind.NETWORK, f"Network request failed: {e}"
            ) from e

    async def _perform(
        self,
        session: aiohttp.ClientSession,
        url: str,
        method: str,
        headers: dict[str, str],
        body: str | None,
        timeout: aiohttp.ClientTimeout,
    ) -> TransportResponse:
        data = body.encode("utf-8") if body is not None else None
        async with session.request(
            method, url, headers=headers, data=data, timeout=timeout
        ) as response:
            text = await response.text(errors="replace")
            self.logger.debug(
                "WebDAV response",
                method=method,
                url=mask_credentials(url),
                status=response.status,
            )
            return TransportResponse(
                ok=200 <= response.status < 300,
                status=response.status,
                status_text=response.reason or "",
                headers=dict(response.headers),
                text=text,
            )


@runtime_checkable
class ProxyChannel(Protocol):
    """One-shot asynchronous request/response channel to the host component.

    ``send_message`` raises ``ChannelUnavailableError`` when the receiving end
    does not exist and ``ChannelError`` for any other channel failure.
    """

    @property
    def is_valid(self) -> bool: ...

    async def send_message(self, message: dict[str, Any]) -> dict[str, Any] | None: ...


def _is_retryable(error: BaseException) -> bool:
    return isinstance(error, TransportError) and error.retryable


class ProxiedTransport(RequestTransport, LoggerMixin):
    """Forwards requests to the host component and retries while it is away"""

    name = "proxied"

    def __init__(
        self,
        channel: ProxyChannel,
        timeout: float | None = None,
        max_attempts: int | None = None,
        backoff_seconds: float | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        settings = get_settings()
        self.channel = channel
        self.timeout = timeout or settings.request_timeout_seconds
        self.max_attempts = max_attempts or settings.proxy_max_attempts
        self.backoff_seconds = (
            settings.proxy_backoff_seconds if backoff_seconds is None else backoff_seconds
        )
        self._sleep = sleep

    async def send(
        self,
        url: str,
        method: str,
        headers: dict[str, str],
        body: str | None = None,
    ) -> TransportResponse:
        # Linear back-off: attempt N is followed by an N x backoff wait.
        retrying = AsyncRetrying(
            stop=stop_after_attempt(self.max_attempts),
            wait=wait_incrementing(
                start=self.backoff_seconds, increment=self.backoff_seconds
            ),
            retry=retry_if_exception(_is_retryable),
            before_sleep=self._log_retry,
            sleep=self._sleep,
            reraise=True,
        )
        return await retrying(self._send_once, url, method, headers, body)

    def _log_retry(self, retry_state: RetryCallState) -> None:
        error = retry_state.outcome.exception() if retry_state.outcome else None
        self.logger.warning(
            "Proxied WebDAV request failed, retrying",
            attempt=retry_state.attempt_number,
            max_attempts=self.max_attempts,
            error=str(error),
        )

    async def _send_once(
        self,
        url: str,
        method: str,
        headers: dict[str, str],
        body: str | None,
    ) -> TransportResponse:
        if not self.channel.is_valid:
            raise TransportError(
                TransportErrorKind.INVALIDATED,
                "Host context is no longer valid; it may be reloading",
            )

        message = {
            "action": WEBDAV_REQUEST_ACTION,
            "url": url,
            "options": {"method": method, "headers": headers, "body": body},
        }

        try:
            reply = await asyncio.wait_for(
                self.channel.send_message(message), timeout=self.timeout
            )
        except asyncio.TimeoutError as e:
            raise TransportError(
                TransportErrorKind.TIMEOUT,
                f"Request timed out after {self.timeout:g}s",
            ) from e
        except ChannelUnavailableError as e:
            raise TransportError(
                TransportErrorKind.UNAVAILABLE,
                "Host component is temporarily unavailable, retry later",
            ) from e
        except ChannelError as e:
            raise TransportError(
                TransportErrorKind.CHANNEL,
                str(e) or "Communication with the host component failed",
            ) from e

        if not reply:
            raise TransportError(
                TransportErrorKind.NO_RESPONSE, "No response from the host component"
            )
        if not reply.get("success"):
            raise TransportError(
                TransportErrorKind.REJECTED, reply.get("message") or "Request failed"
            )

        try:
            return TransportResponse.model_validate(reply.get("data") or {})
        except ValidationError as e:
            raise TransportError(
                TransportErrorKind.MALFORMED,
                f"Malformed response from the host component: {e.error_count()} errors",
            ) from e


def create_transport(channel: ProxyChannel | None = None) -> RequestTransport:
    """Proxied when a host channel is supplied, direct otherwise"""
    if channel is not None:
        return ProxiedTransport(channel)
    return DirectTransport()
