# src/gateways/youtube_metadata.py — v1
"""YouTube Data API v3 metadata adapter implementing BaseMetadataGateway.

Uses httpx.AsyncClient against ``videos?part=snippet,contentDetails``.
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from vidbrief.core.errors import ErrorKind
from vidbrief.core.outcomes import Failure, Ok, Outcome
from vidbrief.gateways.base import BaseMetadataGateway
from vidbrief.gateways.models import VideoMetadata

logger = logging.getLogger(__name__)

_THUMBNAIL_PREFERENCE = ("maxres", "standard", "high", "medium", "default")


class YouTubeMetadataGateway(BaseMetadataGateway):
    """Fetch title/channel/duration/thumbnail for a YouTube video."""

    def __init__(
        self,
        api_key: str,
        base_url: str = "https://www.googleapis.com/youtube/v3",
        timeout_s: float = 10.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._api_key = api_key
        self._base_url = base_url.rstrip("/")
        self._timeout_s = timeout_s
        self._client = client

    async def fetch(self, video_id: str) -> Outcome[VideoMetadata]:
        params = {
            "id": video_id,
            "part": "snippet,contentDetails",
            "key": self._api_key,
        }
        try:
            if self._client is not None:
                resp = await self._client.get(f"{self._base_url}/videos", params=params)
            else:
                async with httpx.AsyncClient(timeout=self._timeout_s) as client:
                    resp = await client.get(f"{self._base_url}/videos", params=params)
        except httpx.HTTPError as exc:
            return Failure(ErrorKind.TRANSIENT, f"metadata request failed: {exc}")

        if resp.status_code == 404:
            return Failure(ErrorKind.NOT_FOUND, f"video {video_id} not found")
        if resp.status_code == 429 or resp.status_code >= 500:
            return Failure(ErrorKind.TRANSIENT, f"metadata HTTP {resp.status_code}")
        if resp.status_code >= 400:
            return Failure(ErrorKind.FATAL, f"metadata HTTP {resp.status_code}: {resp.text[:200]}")

        try:
            body = resp.json()
        except ValueError as exc:
            return Failure(ErrorKind.TRANSIENT, f"metadata body not JSON: {exc}")

        items = body.get("items") or []
        if not items:
            return Failure(ErrorKind.NOT_FOUND, f"video {video_id} not found")
        return Ok(_parse_item(video_id, items[0]))


def _parse_item(video_id: str, item: dict[str, Any]) -> VideoMetadata:
    snippet = item.get("snippet") or {}
    details = item.get("contentDetails") or {}
    thumbnails = snippet.get("thumbnails") or {}
    thumbnail_url = ""
    for size in _THUMBNAIL_PREFERENCE:
        if size in thumbnails and thumbnails[size].get("url"):
            thumbnail_url = thumbnails[size]["url"]
            break
    return VideoMetadata(
        video_id=video_id,
        title=snippet.get("title", ""),
        channel_name=snippet.get("channelTitle", ""),
        duration_iso8601=details.get("duration", ""),
        thumbnail_url=thumbnail_url,
    )
