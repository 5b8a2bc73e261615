# src/gateways/gemini_media.py — v1
"""Gemini File API adapter implementing BaseMediaGateway.

Uses the google-generativeai SDK (upload_file / get_file / delete_file).
The SDK calls are blocking, so each runs in a worker thread.
"""

from __future__ import annotations

import asyncio
import logging
import mimetypes
from pathlib import Path
from typing import Any

from vidbrief.core.errors import ErrorKind
from vidbrief.core.outcomes import Failure, Ok, Outcome
from vidbrief.gateways.base import BaseMediaGateway
from vidbrief.gateways.google_errors import classify_google_error
from vidbrief.gateways.models import MediaHandle, ProcessingStatus

logger = logging.getLogger(__name__)

_STATE_MAP = {
    "PROCESSING": ProcessingStatus.PENDING,
    "STATE_UNSPECIFIED": ProcessingStatus.PENDING,
    "ACTIVE": ProcessingStatus.ACTIVE,
    "FAILED": ProcessingStatus.FAILED,
}


class GeminiMediaGateway(BaseMediaGateway):
    """Upload local media files to the Gemini File API.

    Args:
        api_key: Google AI API key.
        media_root: Directory holding downloaded media as <video_id>.<ext>.
        extension: Media file extension.
    """

    def __init__(self, api_key: str, media_root: Path, extension: str = "mp4") -> None:
        self._api_key = api_key
        self._media_root = Path(media_root).expanduser()
        self._extension = extension.lstrip(".")
        self._configured = False

    def media_path(self, video_id: str) -> Path:
        return self._media_root / f"{video_id}.{self._extension}"

    def _genai(self) -> Any:
        import google.generativeai as genai

        if not self._configured:
            genai.configure(api_key=self._api_key)
            self._configured = True
        return genai

    async def upload(self, video_id: str) -> Outcome[MediaHandle]:
        path = self.media_path(video_id)
        if not path.is_file():
            return Failure(ErrorKind.NOT_FOUND, f"no media file at {path}")
        mime_type = mimetypes.guess_type(path.name)[0] or "video/mp4"
        genai = self._genai()
        try:
            file = await asyncio.to_thread(
                genai.upload_file, path=str(path), mime_type=mime_type, display_name=video_id
            )
        except Exception as exc:  # noqa: BLE001
            kind = classify_google_error(exc)
            return Failure(kind, f"upload rejected: {exc}")
        return Ok(
            MediaHandle(
                name=file.name,
                uri=getattr(file, "uri", ""),
                mime_type=getattr(file, "mime_type", mime_type),
                size_bytes=getattr(file, "size_bytes", None),
            )
        )

    async def poll_status(self, handle: MediaHandle) -> Outcome[ProcessingStatus]:
        genai = self._genai()
        try:
            file = await asyncio.to_thread(genai.get_file, handle.name)
        except Exception as exc:  # noqa: BLE001
            return Failure(classify_google_error(exc), f"status lookup failed: {exc}")
        state = getattr(getattr(file, "state", None), "name", "PROCESSING")
        return Ok(_STATE_MAP.get(state, ProcessingStatus.PENDING))

    async def delete(self, handle: MediaHandle) -> Outcome[None]:
        genai = self._genai()
        try:
            await asyncio.to_thread(genai.delete_file, handle.name)
        except Exception as exc:  # noqa: BLE001
            kind = classify_google_error(exc)
            if kind is ErrorKind.NOT_FOUND:
                # Already gone; nothing left to clean up.
                return Ok(None)
            return Failure(kind, f"delete failed: {exc}")
        return Ok(None)
