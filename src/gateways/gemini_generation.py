# src/gateways/gemini_generation.py — v1
"""Google Gemini generation adapter implementing BaseGenerationGateway.

Uses google-generativeai's GenerativeModel.generate_content_async with a
JSON response schema when structured output is requested.
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Any

from vidbrief.core.errors import ErrorKind
from vidbrief.core.outcomes import Failure, Ok, Outcome
from vidbrief.gateways.base import BaseGenerationGateway
from vidbrief.gateways.google_errors import classify_google_error
from vidbrief.gateways.models import GenerationRequest

logger = logging.getLogger(__name__)

_SYSTEM_PROMPT = (
    "You analyse videos for learners. Follow the requested output schema exactly "
    "and respond only with valid JSON."
)


class GeminiGenerationGateway(BaseGenerationGateway):
    """Gemini adapter for summary and quiz generation."""

    def __init__(
        self,
        api_key: str,
        model: str = "gemini-1.5-flash",
        temperature: float = 0.2,
        max_output_tokens: int = 4096,
    ) -> None:
        self._api_key = api_key
        self._model = model
        self._temperature = temperature
        self._max_output_tokens = max_output_tokens
        self._configured = False

    @property
    def provider_name(self) -> str:
        return "google"

    def _genai(self) -> Any:
        import google.generativeai as genai

        if not self._configured:
            genai.configure(api_key=self._api_key)
            self._configured = True
        return genai

    async def generate(self, request: GenerationRequest) -> Outcome[str]:
        genai = self._genai()
        model = genai.GenerativeModel(self._model, system_instruction=_SYSTEM_PROMPT)

        gen_config: dict[str, Any] = {
            "max_output_tokens": self._max_output_tokens,
            "temperature": self._temperature,
        }
        if request.structured_output:
            gen_config["response_mime_type"] = "application/json"
            if request.response_schema is not None:
                gen_config["response_schema"] = request.response_schema

        t0 = time.monotonic()
        try:
            file_ref = await asyncio.to_thread(genai.get_file, request.handle.name)
            resp = await model.generate_content_async(
                [file_ref, request.prompt], generation_config=gen_config,
            )
        except Exception as exc:  # noqa: BLE001
            return Failure(classify_google_error(exc), f"generation failed: {exc}")
        latency = int((time.monotonic() - t0) * 1000)

        feedback = getattr(resp, "prompt_feedback", None)
        block_reason = getattr(feedback, "block_reason", None)
        if block_reason:
            return Failure(ErrorKind.CONTENT_BLOCKED, f"prompt blocked: {block_reason}")

        try:
            text = resp.text
        except ValueError as exc:
            # The SDK raises ValueError when the candidate was stopped for safety.
            return Failure(ErrorKind.CONTENT_BLOCKED, f"no text returned: {exc}")

        logger.debug("Gemini %s responded in %dms (%d chars)", self._model, latency, len(text or ""))
        return Ok(text or "")
