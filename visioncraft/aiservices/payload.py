"""Assembly of the multi-part ``generate_content`` request for an advertisement."""

from __future__ import annotations

from dataclasses import dataclass
from typing import List

from google.genai import types

from ..config import Settings
from ..prompts import get_advertisement_prompt
from ..schemas import GenerationRequest, ModelTier, UploadedImage
from ..utils import clean_base64

PRODUCT_IMAGE_LABEL = "Product Image"
LOGO_IMAGE_LABEL = "Brand Logo"

# Product photos trip the default filters too often, so only high confidence hits are blocked.
PERMISSIVE_HARM_CATEGORIES = (
    types.HarmCategory.HARM_CATEGORY_HARASSMENT,
    types.HarmCategory.HARM_CATEGORY_HATE_SPEECH,
    types.HarmCategory.HARM_CATEGORY_SEXUALLY_EXPLICIT,
    types.HarmCategory.HARM_CATEGORY_DANGEROUS_CONTENT,
)

__all__ = ["GenerationPayload", "build_generation_payload", "clean_base64", "select_model"]


@dataclass(frozen=True)
class GenerationPayload:
    model: str
    contents: List[types.Part]
    config: types.GenerateContentConfig


def select_model(tier: ModelTier, settings: Settings) -> str:
    if tier is ModelTier.PRO:
        return settings.pro_model_id
    return settings.standard_model_id


def _image_part(image: UploadedImage) -> types.Part:
    return types.Part.from_bytes(data=image.to_bytes(), mime_type=image.mime_type)


def build_generation_payload(request: GenerationRequest, settings: Settings) -> GenerationPayload:
    parts: List[types.Part] = [
        _image_part(request.product_image),
        types.Part.from_text(text=PRODUCT_IMAGE_LABEL),
    ]

    logo = request.logo_image
    has_logo = logo is not None
    if logo is not None:
        parts.append(_image_part(logo))
        parts.append(types.Part.from_text(text=LOGO_IMAGE_LABEL))

    parts.append(types.Part.from_text(text=get_advertisement_prompt(request.description, has_logo)))

    image_config_kwargs = {"aspect_ratio": request.aspect_ratio.value}
    if request.use_pro_model:
        image_config_kwargs["image_size"] = settings.pro_image_size

    config = types.GenerateContentConfig(
        image_config=types.ImageConfig(**image_config_kwargs),
        safety_settings=[
            types.SafetySetting(category=category, threshold=types.HarmBlockThreshold.BLOCK_ONLY_HIGH)
            for category in PERMISSIVE_HARM_CATEGORIES
        ],
    )

    return GenerationPayload(
        model=select_model(request.tier, settings),
        contents=parts,
        config=config,
    )
