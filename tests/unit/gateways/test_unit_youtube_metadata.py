# tests/unit/gateways/test_unit_youtube_metadata.py — v1
"""Tests for gateways/youtube_metadata.py over httpx.MockTransport."""

from __future__ import annotations

import httpx
import pytest

from vidbrief.core.errors import ErrorKind
from vidbrief.core.outcomes import Failure, Ok
from vidbrief.gateways.youtube_metadata import YouTubeMetadataGateway

ITEM = {
    "id": "vid123",
    "snippet": {
        "title": "Caching in practice",
        "channelTitle": "Systems Channel",
        "thumbnails": {
            "default": {"url": "https://img.test/default.jpg"},
            "high": {"url": "https://img.test/high.jpg"},
        },
    },
    "contentDetails": {"duration": "PT12M5S"},
}


def _gateway(handler) -> YouTubeMetadataGateway:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return YouTubeMetadataGateway(api_key="yt-key", base_url="https://yt.test/v3/", client=client)


class TestFetch:
    @pytest.mark.asyncio
    async def test_success(self):
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={"items": [ITEM]})

        outcome = await _gateway(handler).fetch("vid123")

        assert isinstance(outcome, Ok)
        meta = outcome.value
        assert meta.title == "Caching in practice"
        assert meta.channel_name == "Systems Channel"
        assert meta.duration_seconds == 725.0
        assert meta.thumbnail_url == "https://img.test/high.jpg"
        assert seen[0].url.path == "/v3/videos"
        assert seen[0].url.params["id"] == "vid123"
        assert seen[0].url.params["key"] == "yt-key"
        assert seen[0].url.params["part"] == "snippet,contentDetails"

    @pytest.mark.asyncio
    async def test_empty_items_not_found(self):
        outcome = await _gateway(lambda r: httpx.Response(200, json={"items": []})).fetch("nope")
        assert outcome == Failure(ErrorKind.NOT_FOUND, "video nope not found")

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status,kind", [
        (404, ErrorKind.NOT_FOUND),
        (429, ErrorKind.TRANSIENT),
        (500, ErrorKind.TRANSIENT),
        (503, ErrorKind.TRANSIENT),
        (403, ErrorKind.FATAL),
    ])
    async def test_status_mapping(self, status, kind):
        outcome = await _gateway(lambda r: httpx.Response(status, text="err")).fetch("vid")
        assert isinstance(outcome, Failure)
        assert outcome.kind is kind

    @pytest.mark.asyncio
    async def test_network_error_transient(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused", request=request)

        outcome = await _gateway(handler).fetch("vid")
        assert isinstance(outcome, Failure)
        assert outcome.kind is ErrorKind.TRANSIENT

    @pytest.mark.asyncio
    async def test_body_not_json(self):
        outcome = await _gateway(lambda r: httpx.Response(200, text="<html>")).fetch("vid")
        assert outcome.kind is ErrorKind.TRANSIENT
