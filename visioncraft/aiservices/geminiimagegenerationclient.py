from __future__ import annotations

import base64
import logging
from typing import Any, Optional

from google import genai
from google.genai import errors as genai_errors

from ..errors import NoImageGeneratedError, ServiceCallError
from ..utils import to_data_url
from .imagegenerationclient import ImageGenerationClient
from .payload import GenerationPayload

logger = logging.getLogger(__name__)


class GeminiImageGenerationClient(ImageGenerationClient):
    """
    Calls ``models.generate_content`` on a Gemini image model.

    The API key is passed in explicitly; ``client`` may be given instead to
    reuse an existing ``genai.Client`` (or a test double exposing
    ``models.generate_content``).
    """

    def __init__(self, api_key: Optional[str] = None, client: Any = None) -> None:
        if client is None:
            if not api_key:
                raise ValueError("An API key is required to create a Gemini client.")
            client = genai.Client(api_key=api_key)
        self._client = client

    def generate(self, payload: GenerationPayload) -> str:
        logger.info("Calling generate_content with model: %s", payload.model)
        try:
            response = self._client.models.generate_content(
                model=payload.model,
                contents=payload.contents,
                config=payload.config,
            )
        except genai_errors.APIError as exc:
            error = ServiceCallError.from_exception(exc)
            logger.debug("generate_content failed: %r", error)
            raise error from exc

        return self._extract_image(response)

    @staticmethod
    def _extract_image(response: Any) -> str:
        candidates = getattr(response, "candidates", None) or []
        if not candidates:
            raise NoImageGeneratedError()

        content = getattr(candidates[0], "content", None)
        for part in getattr(content, "parts", None) or []:
            inline = getattr(part, "inline_data", None)
            if inline is None or not inline.data:
                continue
            data = inline.data
            # The SDK hands back raw bytes, older payloads may already be base64 text.
            if isinstance(data, str):
                data = base64.b64decode(data)
            return to_data_url(data, inline.mime_type or "image/png")

        raise NoImageGeneratedError()
