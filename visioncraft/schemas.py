"""Pydantic models shared by the FastAPI endpoints and the generation client."""

from __future__ import annotations

import base64
import binascii
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from .utils import clean_base64


class AspectRatio(str, Enum):
    SQUARE = "1:1"
    STORY = "9:16"
    WIDESCREEN = "16:9"
    PORTRAIT = "3:4"
    LANDSCAPE = "4:3"

    @property
    def label(self) -> str:
        return _ASPECT_RATIO_LABELS[self]


_ASPECT_RATIO_LABELS = {
    AspectRatio.SQUARE: "Instagram Post (1:1)",
    AspectRatio.STORY: "Instagram Story (9:16)",
    AspectRatio.WIDESCREEN: "Facebook Post (16:9)",
    AspectRatio.PORTRAIT: "Portrait (3:4)",
    AspectRatio.LANDSCAPE: "Landscape (4:3)",
}


class ModelTier(str, Enum):
    STANDARD = "standard"
    PRO = "pro"

    @property
    def label(self) -> str:
        return "Pro" if self is ModelTier.PRO else "Standard"


class UploadedImage(BaseModel):
    """An image captured from a local file selection."""

    model_config = ConfigDict(frozen=True)

    data: str = Field(..., description="Image bytes as base64 text, optionally a full data URL")
    mime_type: str = Field(..., description="MIME type of the image, e.g. image/png")

    @field_validator("mime_type")
    @classmethod
    def _require_image_mime(cls, value: str) -> str:
        value = value.strip().lower()
        if not value.startswith("image/"):
            raise ValueError(f"unsupported MIME type '{value}', expected an image")
        return value

    @field_validator("data")
    @classmethod
    def _require_content(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("image data must not be empty")
        return value

    @classmethod
    def from_bytes(cls, data: bytes, mime_type: str) -> "UploadedImage":
        return cls(data=base64.b64encode(data).decode("ascii"), mime_type=mime_type)

    @classmethod
    def from_data_url(cls, data_url: str) -> "UploadedImage":
        header, sep, _ = data_url.partition(",")
        if not sep or not header.startswith("data:"):
            raise ValueError("expected a data URL of the form data:<mime>;base64,<data>")
        mime_type = header[len("data:"):].split(";")[0]
        return cls(data=data_url, mime_type=mime_type)

    def to_bytes(self) -> bytes:
        try:
            return base64.b64decode(clean_base64(self.data), validate=True)
        except binascii.Error as exc:
            raise ValueError(f"image data is not valid base64: {exc}") from exc


class GenerationRequest(BaseModel):
    model_config = ConfigDict(frozen=True)

    description: str = Field(..., description="Free text brief for the creative")
    product_image: UploadedImage
    logo_image: Optional[UploadedImage] = None
    aspect_ratio: AspectRatio = AspectRatio.SQUARE
    tier: ModelTier = ModelTier.STANDARD

    @field_validator("description")
    @classmethod
    def _require_description(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("description must not be empty")
        return value

    @property
    def use_pro_model(self) -> bool:
        return self.tier is ModelTier.PRO


class GenerationResult(BaseModel):
    image_url: str = Field(default="", description="Generated image as a data URL")
    loading: bool = False
    error: Optional[str] = None

    @model_validator(mode="after")
    def _single_outcome(self) -> "GenerationResult":
        flags = [bool(self.image_url), self.loading, self.error is not None]
        if sum(flags) > 1:
            raise ValueError("a result can hold at most one of image, loading and error")
        return self

    @property
    def is_idle(self) -> bool:
        return not (self.image_url or self.loading or self.error is not None)


class GenerateResponse(BaseModel):
    image: str = Field(..., description="Generated advertisement as a data URL")


class CredentialRequest(BaseModel):
    api_key: str = Field(..., description="Gemini API key to use for this session")


class SessionResponse(BaseModel):
    state: str
    has_credential: bool
    result: GenerationResult


class AspectRatioOption(BaseModel):
    id: AspectRatio
    label: str


class AspectRatioListResponse(BaseModel):
    aspect_ratios: List[AspectRatioOption]


class ShareResponse(BaseModel):
    title: str
    caption: str
    filename: str
    image: str = Field(..., description="Generated advertisement as a data URL")
