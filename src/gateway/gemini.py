"""Model Gateway: the four Gemini request kinds, one credential per call.

Each operation builds a ``genai.Client`` for the credential it was handed, makes
exactly one call, and either returns raw output or raises ``GatewayError`` tagged
with a ``FailureSignal``. Nothing here validates recipe shape or retries; the
Failover Orchestrator decides what a failure means.

SDK errors are translated here so that no caller has to read error prose:
- 429 -> RATE_LIMITED (QUOTA_EXCEEDED when the message mentions quota)
- 503/504 -> SERVICE_UNAVAILABLE, transport errors too
- 401/403, or 400 rejecting the API key -> UNAUTHORIZED
- 404 -> NOT_FOUND
- other 4xx -> BAD_REQUEST, other 5xx -> UNKNOWN
- blocked prompt / candidate stopped for safety -> SAFETY_BLOCKED
"""

import asyncio
from typing import Any, Optional

import httpx
from google import genai
from google.genai import errors, types

from src.models.errors import FailureSignal, GatewayError, NoImageProduced
from src.pipeline.credentials import Credential
from src.prompts.prompts import INGREDIENT_RECOGNITION_PROMPT
from src.utils.config import Config, config as default_config
from src.utils.logger import logger


# Finish reasons that mean the model refused on content grounds
_SAFETY_FINISH_REASONS = {"SAFETY", "PROHIBITED_CONTENT", "BLOCKLIST", "SPII", "IMAGE_SAFETY"}


def translate_api_error(error: errors.APIError) -> GatewayError:
    """Map an SDK APIError onto a classified GatewayError."""
    code = error.code or 0
    status = (error.status or "").upper()
    message = error.message or str(error)
    lowered = message.lower()

    if code == 429 or status == "RESOURCE_EXHAUSTED":
        signal = FailureSignal.QUOTA_EXCEEDED if "quota" in lowered else FailureSignal.RATE_LIMITED
    elif code in (503, 504) or status in ("UNAVAILABLE", "DEADLINE_EXCEEDED"):
        signal = FailureSignal.SERVICE_UNAVAILABLE
    elif code in (401, 403) or status in ("UNAUTHENTICATED", "PERMISSION_DENIED"):
        signal = FailureSignal.UNAUTHORIZED
    elif code == 400 and ("api key" in lowered or "api_key_invalid" in lowered):
        signal = FailureSignal.UNAUTHORIZED
    elif code == 404 or status == "NOT_FOUND":
        signal = FailureSignal.NOT_FOUND
    elif 400 <= code < 500:
        signal = FailureSignal.BAD_REQUEST
    else:
        signal = FailureSignal.UNKNOWN

    return GatewayError(signal, message, status_code=code or None)


def _safety_block_reason(response: types.GenerateContentResponse) -> Optional[str]:
    """Return why the response was blocked on content grounds, if it was."""
    feedback = response.prompt_feedback
    if feedback is not None and feedback.block_reason:
        return f"Prompt blocked: {getattr(feedback.block_reason, 'name', feedback.block_reason)}"

    for candidate in response.candidates or []:
        reason = getattr(candidate.finish_reason, "name", candidate.finish_reason)
        if reason in _SAFETY_FINISH_REASONS:
            return f"Response stopped: {reason}"
    return None


def first_image_part(response: types.GenerateContentResponse) -> Optional[bytes]:
    """First inline image payload across all candidates, in order."""
    for candidate in response.candidates or []:
        content = candidate.content
        for part in (content.parts if content else None) or []:
            if part.inline_data is not None and part.inline_data.data:
                return part.inline_data.data
    return None


class ModelGateway:
    """Issues recipe, recognition, filter and image requests against Gemini."""

    def __init__(self, cfg: Optional[Config] = None) -> None:
        self.config = cfg or default_config

    async def _generate(
        self,
        credential: Credential,
        model: str,
        contents: Any,
        generation_config: Optional[types.GenerateContentConfig] = None,
    ) -> types.GenerateContentResponse:
        """Single generate_content call with SDK errors translated."""
        logger.debug(f"Calling {model} with credential {credential.position} ({credential.masked})")
        try:
            # Client is scoped to this call so it never outlives its credential
            client = genai.Client(api_key=credential.secret)
            response = await asyncio.to_thread(
                client.models.generate_content,
                model=model,
                contents=contents,
                config=generation_config,
            )
        except errors.APIError as e:
            raise translate_api_error(e) from e
        except httpx.TransportError as e:
            raise GatewayError(FailureSignal.SERVICE_UNAVAILABLE, f"Transport failure: {e}") from e

        blocked = _safety_block_reason(response)
        if blocked:
            raise GatewayError(FailureSignal.SAFETY_BLOCKED, blocked)
        return response

    async def generate_recipe_text(self, credential: Credential, prompt: str, schema: types.Schema) -> str:
        """Request one structured recipe completion. Returns the raw, unvalidated text."""
        thinking = (
            types.ThinkingConfig(thinking_budget=self.config.THINKING_BUDGET)
            if self.config.THINKING_BUDGET
            else None
        )
        generation_config = types.GenerateContentConfig(
            response_mime_type="application/json",
            response_schema=schema,
            thinking_config=thinking,
            temperature=self.config.TEMPERATURE,
        )
        response = await self._generate(credential, self.config.RECIPE_MODEL, prompt, generation_config)

        text = response.text
        if not text or not text.strip():
            raise GatewayError(FailureSignal.EMPTY_RESPONSE, "Recipe model returned an empty response.")
        return text

    async def recognize_ingredients(self, credential: Credential, image_bytes: bytes, mime_type: str) -> str:
        """Identify visible food items. Returns comma-delimited free text."""
        contents = [
            INGREDIENT_RECOGNITION_PROMPT,
            types.Part.from_bytes(data=image_bytes, mime_type=mime_type),
        ]
        response = await self._generate(credential, self.config.VISION_MODEL, contents)

        text = response.text
        if not text or not text.strip():
            raise GatewayError(FailureSignal.EMPTY_RESPONSE, "Vision model returned an empty response.")
        return text

    async def parse_filters(self, credential: Credential, prompt: str, schema: types.Schema) -> str:
        """Request structured preferences for a free-text query. Returns raw JSON text."""
        generation_config = types.GenerateContentConfig(
            response_mime_type="application/json",
            response_schema=schema,
        )
        response = await self._generate(credential, self.config.FILTER_MODEL, prompt, generation_config)

        text = response.text
        if not text or not text.strip():
            raise GatewayError(FailureSignal.EMPTY_RESPONSE, "Filter model returned an empty response.")
        return text

    async def synthesize_image(self, credential: Credential, prompt: str) -> bytes:
        """Request one image for ``prompt``.

        Raises:
            NoImageProduced: The response carried no image-bearing part.
            GatewayError: The call itself failed.
        """
        generation_config = types.GenerateContentConfig(
            image_config=types.ImageConfig(aspect_ratio=self.config.IMAGE_ASPECT_RATIO),
        )
        response = await self._generate(credential, self.config.IMAGE_MODEL, prompt, generation_config)

        image = first_image_part(response)
        if image is None:
            raise NoImageProduced()
        return image
