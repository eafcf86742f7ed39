"""Domain logic for turning a Visioncraft request into a generated advertisement."""

from __future__ import annotations

import logging
import time
from functools import lru_cache
from typing import Callable, Optional

from .aiservices.geminiimagegenerationclient import GeminiImageGenerationClient
from .aiservices.imagegenerationclient import ImageGenerationClient
from .aiservices.payload import build_generation_payload
from .config import Settings, get_settings
from .errors import AdvertisementGenerationError, describe_failure, failure_kind
from .retry import retry_operation
from .schemas import GenerationRequest

logger = logging.getLogger(__name__)

ClientFactory = Callable[[str], ImageGenerationClient]


def _gemini_client_factory(api_key: str) -> ImageGenerationClient:
    return GeminiImageGenerationClient(api_key=api_key)


class VisioncraftService:
    """High-level orchestrator for advertisement generation."""

    def __init__(
        self,
        settings: Settings | None = None,
        client_factory: Optional[ClientFactory] = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.settings = settings or get_settings()
        self._client_factory = client_factory or _gemini_client_factory
        self._sleep = sleep

    def generate_advertisement(self, api_key: str, request: GenerationRequest) -> str:
        """Generate an advertisement and return it as a data URL.

        Args:
            api_key: Credential handed to the image client for this call.
            request: The collected form inputs.

        Raises:
            AdvertisementGenerationError: with the user-facing message for any failure.
        """
        payload = build_generation_payload(request, self.settings)
        logger.info(
            "Generating advertisement (mode: %s, model: %s, aspect ratio: %s, logo: %s)",
            "Pro (Billable)" if request.use_pro_model else "Standard (Free Tier)",
            payload.model,
            request.aspect_ratio.value,
            request.logo_image is not None,
        )

        try:
            client = self._client_factory(api_key)
            return retry_operation(
                lambda: client.generate(payload),
                max_retries=self.settings.max_retries,
                base_delay=self.settings.retry_base_delay,
                sleep=self._sleep,
            )
        except Exception as exc:
            message = describe_failure(exc, request.tier)
            logger.error("Gemini API error (%s): %r", type(exc).__name__, exc)
            raise AdvertisementGenerationError(message, kind=failure_kind(exc)) from exc


@lru_cache
def get_visioncraft_service() -> VisioncraftService:
    return VisioncraftService(get_settings())
