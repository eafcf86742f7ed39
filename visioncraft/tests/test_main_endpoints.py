"""Tests covering the FastAPI routes defined in :mod:`visioncraft.main`."""

from __future__ import annotations

import asyncio
import io
import sys
from pathlib import Path

import pytest
from fastapi import UploadFile
from fastapi.testclient import TestClient
from starlette.datastructures import Headers

sys.path.insert(0, str(Path(__file__).resolve().parents[2]))
from visioncraft.errors import PRO_BILLING_MESSAGE, AdvertisementGenerationError, ServiceErrorKind
from visioncraft.main import app, generate
from visioncraft.schemas import AspectRatio, ModelTier
from visioncraft.service import get_visioncraft_service
from visioncraft.session import (
    INTERRUPTED_MESSAGE,
    MISSING_CREDENTIAL_MESSAGE,
    REAUTHENTICATE_MESSAGE,
    Session,
    SessionState,
    get_session,
)
from visioncraft.utils import SHARE_CAPTION_PREFIX

PNG_BYTES = b"png-bytes"
PNG_DATA_URL = "data:image/png;base64,cG5nLWJ5dGVz"


class StubService:
    """Test double emulating :class:`visioncraft.service.VisioncraftService`."""

    def __init__(self) -> None:
        self.image_response = PNG_DATA_URL
        self.calls: list[tuple] = []
        self.exception: Exception | None = None

    def generate_advertisement(self, api_key, request):
        self.calls.append((api_key, request))
        if self.exception is not None:
            raise self.exception
        return self.image_response


@pytest.fixture
def session() -> Session:
    session = Session()
    session.check_credential("test-key")
    return session


@pytest.fixture
def client(session):
    """Yield a :class:`TestClient` backed by stubbed dependencies."""

    stub = StubService()
    app.dependency_overrides[get_visioncraft_service] = lambda: stub
    app.dependency_overrides[get_session] = lambda: session

    with TestClient(app) as test_client:
        test_client.app.state.stub_service = stub
        test_client.app.state.session = session
        yield test_client

    app.dependency_overrides.clear()
    for attr in ("stub_service", "session"):
        if hasattr(app.state, attr):
            delattr(app.state, attr)


def get_stub(client: TestClient) -> StubService:
    return client.app.state.stub_service  # type: ignore[return-value]


def get_test_session(client: TestClient) -> Session:
    return client.app.state.session  # type: ignore[return-value]


def _generate(client: TestClient, *, description: str = "golden hour beach shot", logo: bool = False, **fields):
    data = {"description": description, **fields}
    files = {"product_image": ("product.png", PNG_BYTES, "image/png")}
    if logo:
        files["logo_image"] = ("logo.png", b"logo-bytes", "image/png")
    return client.post("/generate", data=data, files=files)


def test_healthcheck_reports_model_ids(client: TestClient) -> None:
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json() == {
        "status": "ok",
        "standardModel": "gemini-2.5-flash-image",
        "proModel": "gemini-3-pro-image-preview",
    }


def test_aspect_ratios_lists_every_option(client: TestClient) -> None:
    response = client.get("/aspect-ratios")

    assert response.status_code == 200
    options = response.json()["aspect_ratios"]
    assert [option["id"] for option in options] == ["1:1", "9:16", "16:9", "3:4", "4:3"]
    assert options[0]["label"] == "Instagram Post (1:1)"


def test_session_reports_ready_state(client: TestClient) -> None:
    response = client.get("/session")

    assert response.status_code == 200
    assert response.json() == {
        "state": "idle",
        "has_credential": True,
        "result": {"image_url": "", "loading": False, "error": None},
    }


def test_generate_standard_request_without_logo(client: TestClient) -> None:
    stub = get_stub(client)

    response = _generate(client)

    assert response.status_code == 200
    assert response.json() == {"image": PNG_DATA_URL}

    (api_key, request), = stub.calls
    assert api_key == "test-key"
    assert request.description == "golden hour beach shot"
    assert request.tier is ModelTier.STANDARD
    assert request.aspect_ratio is AspectRatio.SQUARE
    assert request.logo_image is None
    assert request.product_image.to_bytes() == PNG_BYTES
    assert request.product_image.mime_type == "image/png"

    assert get_test_session(client).state.value == "succeeded"


def test_generate_pro_request_with_logo(client: TestClient) -> None:
    stub = get_stub(client)

    response = _generate(client, logo=True, tier="pro", aspect_ratio="16:9")

    assert response.status_code == 200
    (_, request), = stub.calls
    assert request.tier is ModelTier.PRO
    assert request.aspect_ratio is AspectRatio.WIDESCREEN
    assert request.logo_image is not None
    assert request.logo_image.to_bytes() == b"logo-bytes"


def test_generate_requires_a_description(client: TestClient) -> None:
    response = _generate(client, description="   ")

    assert response.status_code == 422
    assert response.json()["detail"] == "Description must not be empty"
    assert get_stub(client).calls == []


def test_generate_requires_a_product_image(client: TestClient) -> None:
    response = client.post("/generate", data={"description": "brief"})

    assert response.status_code == 422
    assert any(err["loc"][-1] == "product_image" for err in response.json()["detail"])


def test_generate_rejects_non_image_uploads(client: TestClient) -> None:
    response = client.post(
        "/generate",
        data={"description": "brief"},
        files={"product_image": ("notes.txt", b"hello", "text/plain")},
    )

    assert response.status_code == 422
    assert response.json()["detail"] == "product_image must be an image file"


def test_generate_rejects_unknown_aspect_ratio(client: TestClient) -> None:
    response = _generate(client, aspect_ratio="2:1")

    assert response.status_code == 422
    assert get_stub(client).calls == []


def test_pro_permission_denied_reports_billing_without_logging_out(client: TestClient) -> None:
    stub = get_stub(client)
    stub.exception = AdvertisementGenerationError(PRO_BILLING_MESSAGE, ServiceErrorKind.PERMISSION_DENIED)

    response = _generate(client, tier="pro")

    assert response.status_code == 502
    assert response.json() == {"detail": PRO_BILLING_MESSAGE}

    state = client.get("/session").json()
    assert state["state"] == "failed"
    assert state["has_credential"] is True
    assert state["result"] == {"image_url": "", "loading": False, "error": PRO_BILLING_MESSAGE}


def test_invalid_credential_forces_reauthentication(client: TestClient) -> None:
    stub = get_stub(client)
    stub.exception = AdvertisementGenerationError(
        "API key not valid. Please pass a valid API key.",
        ServiceErrorKind.INVALID_CREDENTIAL,
    )

    response = _generate(client)

    assert response.status_code == 401
    assert response.json() == {"detail": REAUTHENTICATE_MESSAGE}

    state = client.get("/session").json()
    assert state["state"] == "unauthenticated"
    assert state["has_credential"] is False


def test_generate_without_credential_is_unauthorized(client: TestClient) -> None:
    session = Session()
    session.check_credential("")
    app.dependency_overrides[get_session] = lambda: session

    response = _generate(client)

    assert response.status_code == 401
    assert response.json() == {"detail": MISSING_CREDENTIAL_MESSAGE}
    assert get_stub(client).calls == []


def test_generate_while_another_request_runs_conflicts(client: TestClient) -> None:
    get_test_session(client).begin_generation("first brief")

    response = _generate(client)

    assert response.status_code == 409
    assert get_stub(client).calls == []


def test_connecting_a_credential_makes_the_session_ready(client: TestClient) -> None:
    session = Session()
    session.check_credential("")
    app.dependency_overrides[get_session] = lambda: session

    response = client.post("/session/credential", json={"api_key": "fresh-key"})

    assert response.status_code == 200
    assert response.json()["state"] == "idle"
    assert response.json()["has_credential"] is True
    assert session.credential == "fresh-key"


def test_connecting_an_empty_credential_is_rejected(client: TestClient) -> None:
    response = client.post("/session/credential", json={"api_key": "  "})

    assert response.status_code == 422
    assert response.json()["detail"] == "API key must not be empty"


def test_result_and_reset_flow(client: TestClient) -> None:
    _generate(client)

    result = client.get("/result")
    assert result.status_code == 200
    assert result.json() == {"image_url": PNG_DATA_URL, "loading": False, "error": None}

    reset = client.post("/reset")
    assert reset.status_code == 200
    assert reset.json()["state"] == "idle"
    assert client.get("/result").json() == {"image_url": "", "loading": False, "error": None}


def test_reset_is_refused_while_generating(client: TestClient) -> None:
    get_test_session(client).begin_generation("brief")

    response = client.post("/reset")

    assert response.status_code == 409


def test_download_returns_the_image_as_attachment(client: TestClient) -> None:
    _generate(client)

    response = client.get("/result/download")

    assert response.status_code == 200
    assert response.content == PNG_BYTES
    assert response.headers["content-type"] == "image/png"
    assert response.headers["content-disposition"] == 'attachment; filename="visioncraft-output.png"'


def test_download_without_result_is_not_found(client: TestClient) -> None:
    response = client.get("/result/download")

    assert response.status_code == 404
    assert response.json() == {"detail": "No generated advertisement available"}


def test_share_kit_prefills_the_caption(client: TestClient) -> None:
    description = "A cold brew can on a sunlit marble counter with fresh lemons and mint leaves"
    _generate(client, description=description)

    response = client.get("/result/share")

    assert response.status_code == 200
    assert response.json() == {
        "title": "Visioncraft Ad",
        "caption": SHARE_CAPTION_PREFIX + description[:50] + "...",
        "filename": "visioncraft-instagram-post.png",
        "image": PNG_DATA_URL,
    }


def test_share_without_result_is_not_found(client: TestClient) -> None:
    response = client.get("/result/share")

    assert response.status_code == 404


def test_download_names_the_file_after_the_returned_mime_type(client: TestClient) -> None:
    get_stub(client).image_response = "data:image/jpeg;base64,anBnLWJ5dGVz"
    _generate(client)

    response = client.get("/result/download")

    assert response.status_code == 200
    assert response.content == b"jpg-bytes"
    assert response.headers["content-type"] == "image/jpeg"
    assert response.headers["content-disposition"] == 'attachment; filename="visioncraft-output.jpg"'


def test_share_kit_file_name_follows_the_mime_type(client: TestClient) -> None:
    get_stub(client).image_response = "data:image/webp;base64,anBnLWJ5dGVz"
    _generate(client)

    response = client.get("/result/share")

    assert response.json()["filename"] == "visioncraft-instagram-post.webp"


class GenerationInterrupted(BaseException):
    """Stands in for cancellation, which bypasses ``except Exception``."""


def test_interrupted_generation_does_not_leave_the_session_busy(session: Session) -> None:
    stub = StubService()
    stub.exception = GenerationInterrupted()
    product = UploadFile(
        file=io.BytesIO(PNG_BYTES),
        filename="product.png",
        headers=Headers({"content-type": "image/png"}),
    )

    with pytest.raises(GenerationInterrupted):
        asyncio.run(
            generate(
                description="golden hour beach shot",
                aspect_ratio=AspectRatio.SQUARE,
                tier=ModelTier.STANDARD,
                product_image=product,
                logo_image=None,
                service=stub,
                session=session,
            )
        )

    assert session.state is SessionState.FAILED
    assert session.result.error == INTERRUPTED_MESSAGE
    session.begin_generation("second try")
    assert session.state is SessionState.GENERATING
