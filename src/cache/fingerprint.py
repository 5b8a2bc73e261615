# src/cache/fingerprint.py — v2
"""Deterministic request fingerprinting.

A fingerprint is SHA-256 over a canonical, versioned encoding of the
normalized (video_id, language, kind) triple. The Result Cache and the
single-flight registry both key on it, so equal logical requests must
always hash identically.
"""

from __future__ import annotations

import hashlib
from collections.abc import Iterable

from vidbrief.config.languages import normalize_language
from vidbrief.core.errors import InvalidInputError
from vidbrief.core.models import Fingerprint, RequestKind

# Bump when the canonical encoding changes; old keys then never collide.
FINGERPRINT_VERSION = "v1"

_SEPARATOR = "\x1f"


def build_fingerprint(
    video_id: str,
    language: str,
    kind: RequestKind | str,
    supported_languages: Iterable[str],
) -> Fingerprint:
    """Build the fingerprint for one logical request.

    Args:
        video_id: Provider video identifier (already extracted from any URL).
        language: Target language code, any case, '-' or '_' separated.
        kind: "summary" or "quiz".
        supported_languages: Normalized language codes accepted.

    Returns:
        Immutable Fingerprint.

    Raises:
        InvalidInputError: Empty video id, unsupported language, or unknown kind.
    """
    vid = (video_id or "").strip()
    if not vid:
        raise InvalidInputError("video id must not be empty")
    if any(ch.isspace() for ch in vid):
        raise InvalidInputError(f"video id contains whitespace: {vid!r}")

    lang = normalize_language(language or "")
    if lang not in set(supported_languages):
        raise InvalidInputError(f"unsupported language: {language!r}")

    try:
        request_kind = RequestKind(kind)
    except ValueError as exc:
        raise InvalidInputError(f"unknown request kind: {kind!r}") from exc

    return Fingerprint(
        video_id=vid,
        language=lang,
        kind=request_kind,
        key=_digest(vid, lang, request_kind),
    )


def _digest(video_id: str, language: str, kind: RequestKind) -> str:
    """SHA-256 over the length-unambiguous canonical encoding."""
    canonical = _SEPARATOR.join((FINGERPRINT_VERSION, video_id, language, kind.value))
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()
