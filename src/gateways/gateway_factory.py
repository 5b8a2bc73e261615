# src/gateways/gateway_factory.py — v1
"""Factory wiring concrete gateway adapters from Settings."""

from __future__ import annotations

from vidbrief.config.settings import Settings
from vidbrief.gateways.base import Gateways


class MissingCredentialsError(ValueError):
    """Raised when a gateway adapter is requested without its API key."""


def create_gateways(settings: Settings) -> Gateways:
    """Instantiate the YouTube metadata and Gemini media/generation adapters.

    Raises:
        MissingCredentialsError: If YOUTUBE_API_KEY or GOOGLE_API_KEY is unset.
    """
    missing = [
        name
        for name, value in (
            ("YOUTUBE_API_KEY", settings.youtube_api_key),
            ("GOOGLE_API_KEY", settings.google_api_key),
        )
        if not value
    ]
    if missing:
        raise MissingCredentialsError(f"{', '.join(missing)} must be set")

    from vidbrief.gateways.gemini_generation import GeminiGenerationGateway
    from vidbrief.gateways.gemini_media import GeminiMediaGateway
    from vidbrief.gateways.youtube_metadata import YouTubeMetadataGateway

    return Gateways(
        metadata=YouTubeMetadataGateway(
            api_key=settings.youtube_api_key,
            base_url=settings.youtube_api_base_url,
            timeout_s=settings.http_timeout_s,
        ),
        media=GeminiMediaGateway(
            api_key=settings.google_api_key,
            media_root=settings.media_root,
            extension=settings.media_extension,
        ),
        generation=GeminiGenerationGateway(
            api_key=settings.google_api_key,
            model=settings.generation_model,
            temperature=settings.generation_temperature,
        ),
    )
