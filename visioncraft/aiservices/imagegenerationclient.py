from __future__ import annotations

from abc import ABC, abstractmethod

from .payload import GenerationPayload


class ImageGenerationClient(ABC):
    """Abstract interface for an image generation client.

    Implementations send a single assembled payload and must raise
    :class:`visioncraft.errors.ServiceCallError` for failed service calls
    so the retry loop can tell transient failures from fatal ones.
    """

    @abstractmethod
    def generate(self, payload: GenerationPayload) -> str:
        """Send one request and return the generated image as a data URL."""
