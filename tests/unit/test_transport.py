"""Tests for request transports"""

import asyncio
from typing import Any
from unittest.mock import MagicMock

import aiohttp
import pytest
from aiohttp import test_utils, web

from webdav_backup.webdav.exceptions import (
    ChannelError,
    ChannelUnavailableError,
    TransportError,
    TransportErrorKind,
)
from webdav_backup.webdav.models import WebDAVConfig
from webdav_backup.webdav.protocol import build_headers
from webdav_backup.webdav.transport import (
    WEBDAV_REQUEST_ACTION,
    DirectTransport,
    ProxiedTransport,
    create_transport,
)


class ScriptedChannel:
    """Channel replaying a list of replies; exceptions in the list are raised."""

    def __init__(self, *replies: Any, valid: bool = True) -> None:
        self.replies = list(replies)
        self.messages: list[dict[str, Any]] = []
        self.is_valid = valid

    async def send_message(self, message: dict[str, Any]) -> dict[str, Any] | None:
        self.messages.append(message)
        reply = self.replies.pop(0)
        if isinstance(reply, BaseException):
            raise reply
        return reply


class HangingChannel:
    is_valid = True

    async def send_message(self, message: dict[str, Any]) -> dict[str, Any] | None:
        await asyncio.sleep(3600)
        return None


def http_reply(status: int, text: str = "", status_text: str = "") -> dict[str, Any]:
    return {
        "success": True,
        "data": {
            "ok": 200 <= status < 300,
            "status": status,
            "statusText": status_text,
            "headers": {"content-type": "text/plain"},
            "text": text,
        },
    }


def make_proxied(channel: Any, **kwargs: Any) -> tuple[ProxiedTransport, list[float]]:
    sleeps: list[float] = []

    async def fake_sleep(seconds: float) -> None:
        sleeps.append(seconds)

    return ProxiedTransport(channel, sleep=fake_sleep, **kwargs), sleeps


class TestProxiedTransport:
    @pytest.mark.asyncio
    async def test_successful_round_trip(self) -> None:
        channel = ScriptedChannel(http_reply(207, "<xml/>", "Multi-Status"))
        transport, sleeps = make_proxied(channel)

        response = await transport.send(
            "https://dav.example.com/bk/", "PROPFIND", {"Depth": "0"}, "<propfind/>"
        )

        assert response.ok is True
        assert response.status == 207
        assert response.status_text == "Multi-Status"
        assert response.text == "<xml/>"
        assert channel.messages == [
            {
                "action": WEBDAV_REQUEST_ACTION,
                "url": "https://dav.example.com/bk/",
                "options": {
                    "method": "PROPFIND",
                    "headers": {"Depth": "0"},
                    "body": "<propfind/>",
                },
            }
        ]
        assert sleeps == []

    @pytest.mark.asyncio
    async def test_unavailable_endpoint_is_retried_three_times_in_total(self) -> None:
        channel = ScriptedChannel(
            ChannelUnavailableError("Receiving end does not exist."),
            ChannelUnavailableError("Receiving end does not exist."),
            ChannelUnavailableError("Receiving end does not exist."),
        )
        transport, sleeps = make_proxied(channel)

        with pytest.raises(TransportError) as exc_info:
            await transport.send("https://h/", "GET", {})

        assert exc_info.value.kind == TransportErrorKind.UNAVAILABLE
        assert "temporarily unavailable" in exc_info.value.message
        assert len(channel.messages) == 3
        # linear back-off: 1 s after the first attempt, 2 s after the second
        assert sleeps == [1.0, 2.0]

    @pytest.mark.asyncio
    async def test_recovers_when_endpoint_comes_back(self) -> None:
        channel = ScriptedChannel(
            ChannelUnavailableError("Receiving end does not exist."),
            http_reply(200, "ok"),
        )
        transport, sleeps = make_proxied(channel)

        response = await transport.send("https://h/file", "GET", {})

        assert response.text == "ok"
        assert len(channel.messages) == 2
        assert sleeps == [1.0]

    @pytest.mark.asyncio
    async def test_http_error_status_is_not_retried(self) -> None:
        channel = ScriptedChannel(http_reply(500, status_text="Internal Server Error"))
        transport, sleeps = make_proxied(channel)

        response = await transport.send("https://h/", "PUT", {}, "{}")

        assert response.ok is False
        assert response.status == 500
        assert len(channel.messages) == 1
        assert sleeps == []

    @pytest.mark.asyncio
    async def test_other_channel_failures_are_not_retried(self) -> None:
        channel = ScriptedChannel(ChannelError("message port closed"))
        transport, sleeps = make_proxied(channel)

        with pytest.raises(TransportError) as exc_info:
            await transport.send("https://h/", "GET", {})

        assert exc_info.value.kind == TransportErrorKind.CHANNEL
        assert exc_info.value.message == "message port closed"
        assert len(channel.messages) == 1
        assert sleeps == []

    @pytest.mark.asyncio
    async def test_invalid_channel_fails_without_sending(self) -> None:
        channel = ScriptedChannel(valid=False)
        transport, _ = make_proxied(channel)

        with pytest.raises(TransportError) as exc_info:
            await transport.send("https://h/", "GET", {})

        assert exc_info.value.kind == TransportErrorKind.INVALIDATED
        assert channel.messages == []

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        ("reply", "kind"),
        [
            (None, TransportErrorKind.NO_RESPONSE),
            ({}, TransportErrorKind.NO_RESPONSE),
            ({"success": False, "message": "DNS lookup failed"}, TransportErrorKind.REJECTED),
            ({"success": True, "data": {"status": "nope"}}, TransportErrorKind.MALFORMED),
        ],
    )
    async def test_bad_replies(self, reply: Any, kind: TransportErrorKind) -> None:
        transport, _ = make_proxied(ScriptedChannel(reply))

        with pytest.raises(TransportError) as exc_info:
            await transport.send("https://h/", "GET", {})

        assert exc_info.value.kind == kind

    @pytest.mark.asyncio
    async def test_rejected_reply_carries_host_message(self) -> None:
        transport, _ = make_proxied(
            ScriptedChannel({"success": False, "message": "DNS lookup failed"})
        )

        with pytest.raises(TransportError, match="DNS lookup failed"):
            await transport.send("https://h/", "GET", {})

    @pytest.mark.asyncio
    async def test_silent_host_times_out(self) -> None:
        transport, _ = make_proxied(HangingChannel(), timeout=0.01)

        with pytest.raises(TransportError) as exc_info:
            await transport.send("https://h/", "GET", {})

        assert exc_info.value.kind == TransportErrorKind.TIMEOUT


class TestDirectTransport:
    @pytest.mark.asyncio
    async def test_sends_custom_methods_and_reads_response(self) -> None:
        seen: dict[str, Any] = {}

        async def handler(request: web.Request) -> web.Response:
            seen["method"] = request.method
            seen["depth"] = request.headers.get("Depth")
            seen["body"] = await request.text()
            return web.Response(status=207, text="<multistatus/>")

        app = web.Application()
        app.router.add_route("*", "/bk/", handler)

        async with test_utils.TestServer(app) as server:
            transport = DirectTransport(timeout=5)
            response = await transport.send(
                str(server.make_url("/bk/")), "PROPFIND", {"Depth": "1"}, "<propfind/>"
            )

        assert seen == {"method": "PROPFIND", "depth": "1", "body": "<propfind/>"}
        assert response.ok is True
        assert response.status == 207
        assert response.text == "<multistatus/>"

    @pytest.mark.asyncio
    async def test_http_errors_are_responses(self) -> None:
        async def handler(request: web.Request) -> web.Response:
            return web.Response(status=423, reason="Locked")

        app = web.Application()
        app.router.add_route("*", "/{tail:.*}", handler)

        async with test_utils.TestServer(app) as server:
            response = await DirectTransport(timeout=5).send(
                str(server.make_url("/bk/x.json")), "PUT", {}, "{}"
            )

        assert response.ok is False
        assert response.status == 423
        assert response.status_text == "Locked"

    @pytest.mark.asyncio
    async def test_connection_failure_raises_network_error(self) -> None:
        session = MagicMock()
        session.request.side_effect = aiohttp.ClientConnectionError("refused")
        transport = DirectTransport(timeout=5, session=session)

        with pytest.raises(TransportError) as exc_info:
            await transport.send("https://dav.example.com/", "GET", {})

        assert exc_info.value.kind == TransportErrorKind.NETWORK
        assert "refused" in exc_info.value.message

    @pytest.mark.asyncio
    async def test_timeout_raises_timeout_error(self) -> None:
        session = MagicMock()
        session.request.side_effect = asyncio.TimeoutError()
        transport = DirectTransport(timeout=5, session=session)

        with pytest.raises(TransportError) as exc_info:
            await transport.send("https://dav.example.com/", "GET", {})

        assert exc_info.value.kind == TransportErrorKind.TIMEOUT


def test_create_transport_selects_strategy() -> None:
    assert isinstance(create_transport(), DirectTransport)
    proxied = create_transport(ScriptedChannel())
    assert isinstance(proxied, ProxiedTransport)
    assert proxied.max_attempts == 3
    assert proxied.timeout == 30


def test_build_headers() -> None:
    config = WebDAVConfig(username="u", password="p")

    headers = build_headers(config, "application/xml", depth=0)

    assert headers["Authorization"] == "Basic dTpw"
    assert headers["Accept"] == "*/*"
    assert headers["Content-Type"] == "application/xml"
    assert headers["Depth"] == "0"
    assert headers["User-Agent"].startswith("webdav-backup/")
    assert "Content-Type" not in build_headers(config)
