"""FastAPI entry point exposing the Visioncraft REST API."""

from __future__ import annotations

import logging
from typing import Optional

from fastapi import Depends, FastAPI, File, Form, HTTPException, UploadFile, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import Response
from pydantic import ValidationError
from starlette.concurrency import run_in_threadpool

from .config import get_settings
from .errors import AdvertisementGenerationError
from .schemas import (
    AspectRatio,
    AspectRatioListResponse,
    AspectRatioOption,
    CredentialRequest,
    GenerateResponse,
    GenerationRequest,
    GenerationResult,
    ModelTier,
    SessionResponse,
    ShareResponse,
    UploadedImage,
)
from .service import VisioncraftService, get_visioncraft_service
from .session import (
    INTERRUPTED_MESSAGE,
    MISSING_CREDENTIAL_MESSAGE,
    InvalidTransitionError,
    Session,
    SessionState,
    get_session,
)
from .utils import build_share_caption, decode_data_url, image_filename

logger = logging.getLogger(__name__)

DOWNLOAD_FILENAME_STEM = "visioncraft-output"
SHARE_FILENAME_STEM = "visioncraft-instagram-post"
SHARE_TITLE = "Visioncraft Ad"


async def _read_upload(upload: UploadFile, field: str) -> UploadedImage:
    data = await upload.read()
    if not data:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=f"{field} must not be empty",
        )
    try:
        return UploadedImage.from_bytes(data, upload.content_type or "")
    except ValidationError as exc:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=f"{field} must be an image file",
        ) from exc


def _session_response(session: Session) -> SessionResponse:
    return SessionResponse(
        state=session.state.value,
        has_credential=session.has_credential,
        result=session.result,
    )


def _require_result_image(session: Session) -> str:
    image_url = session.result.image_url
    if not image_url:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="No generated advertisement available",
        )
    return image_url


app = FastAPI(title="Visioncraft Backend", version="1.0.0")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/health", summary="Health Check Endpoint")
async def healthcheck():
    settings = get_settings()
    return {
        "status": "ok",
        "standardModel": settings.standard_model_id,
        "proModel": settings.pro_model_id,
    }


@app.get("/aspect-ratios",
         response_model=AspectRatioListResponse,
         summary="List the selectable output aspect ratios")
async def aspect_ratios():
    return AspectRatioListResponse(
        aspect_ratios=[AspectRatioOption(id=ratio, label=ratio.label) for ratio in AspectRatio]
    )


@app.get("/session",
         response_model=SessionResponse,
         summary="Report the credential and generation state")
async def session_state(session: Session = Depends(get_session)):
    return _session_response(session)


@app.post("/session/credential",
          response_model=SessionResponse,
          summary="Connect an API key for this session")
async def connect_credential(
    payload: CredentialRequest,
    session: Session = Depends(get_session),
):
    api_key = payload.api_key.strip()
    if not api_key:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail="API key must not be empty",
        )
    try:
        session.connect(api_key)
    except InvalidTransitionError as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc
    return _session_response(session)


@app.post("/generate",
          response_model=GenerateResponse,
          summary="Generate an advertisement from a product photo")
async def generate(
    description: str = Form(...),
    aspect_ratio: AspectRatio = Form(AspectRatio.SQUARE),
    tier: ModelTier = Form(ModelTier.STANDARD),
    product_image: UploadFile = File(...),
    logo_image: Optional[UploadFile] = File(None),
    service: VisioncraftService = Depends(get_visioncraft_service),
    session: Session = Depends(get_session),
):
    if not description.strip():
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail="Description must not be empty",
        )

    product = await _read_upload(product_image, "product_image")
    logo = None
    # Browsers submit an empty part without a filename when no logo was picked.
    if logo_image is not None and logo_image.filename:
        logo = await _read_upload(logo_image, "logo_image")
    request = GenerationRequest(
        description=description,
        product_image=product,
        logo_image=logo,
        aspect_ratio=aspect_ratio,
        tier=tier,
    )

    if session.state is SessionState.UNAUTHENTICATED:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=MISSING_CREDENTIAL_MESSAGE,
        )
    try:
        api_key = session.begin_generation(description)
    except InvalidTransitionError as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc

    try:
        image_url = await run_in_threadpool(service.generate_advertisement, api_key, request)
    except AdvertisementGenerationError as exc:
        logger.exception("Generation failed")
        if session.fail(exc.message, exc.kind):
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail=session.result.error,
            ) from exc
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail=exc.message,
        ) from exc
    except Exception as exc:  # pragma: no cover - unexpected failure
        logger.exception("Unexpected failure during generation")
        session.fail("Something went wrong during generation.")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Something went wrong during generation.",
        ) from exc
    else:
        session.complete(image_url)
    finally:
        # Cancellation skips the handlers above and would leave the session busy.
        session.abandon_generation(INTERRUPTED_MESSAGE)

    return GenerateResponse(image=image_url)


@app.get("/result",
         response_model=GenerationResult,
         summary="Get the current generation result")
async def result(session: Session = Depends(get_session)):
    return session.result


@app.post("/reset",
          response_model=SessionResponse,
          summary="Clear the current design")
async def reset(session: Session = Depends(get_session)):
    try:
        session.reset()
    except InvalidTransitionError as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc
    return _session_response(session)


@app.get("/result/download", summary="Download the generated advertisement")
async def download(session: Session = Depends(get_session)):
    image_bytes, mime_type = decode_data_url(_require_result_image(session))
    filename = image_filename(DOWNLOAD_FILENAME_STEM, mime_type)
    return Response(
        content=image_bytes,
        media_type=mime_type,
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@app.get("/result/share",
         response_model=ShareResponse,
         summary="Get the share kit (caption, file name, image) for the advertisement")
async def share(session: Session = Depends(get_session)):
    image_url = _require_result_image(session)
    _, mime_type = decode_data_url(image_url)
    return ShareResponse(
        title=SHARE_TITLE,
        caption=build_share_caption(session.description),
        filename=image_filename(SHARE_FILENAME_STEM, mime_type),
        image=image_url,
    )


__all__ = ["app"]


if __name__ == "__main__":  # pragma: no cover - convenience entry point
    import uvicorn

    logging.basicConfig(level=get_settings().log_level.upper())
    uvicorn.run("visioncraft.main:app", host="0.0.0.0", port=8000, reload=True)
