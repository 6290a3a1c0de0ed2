import io

import pytest
from PIL import Image

from backend.credentials import CredentialStore
from backend.model import EncodedImage
from backend.state import WorkflowStore, set_source


@pytest.fixture
def make_png():
    """Factory for in-memory PNG bytes."""

    def _make(size=(64, 48), color=(200, 30, 30), mode="RGB") -> bytes:
        buf = io.BytesIO()
        Image.new(mode, size, color).save(buf, format="PNG")
        return buf.getvalue()

    return _make


@pytest.fixture
def sketch(make_png) -> EncodedImage:
    return EncodedImage(data=make_png(), mime_type="image/png")


@pytest.fixture
def store(sketch) -> WorkflowStore:
    store = WorkflowStore()
    store.dispatch(set_source, sketch)
    return store


@pytest.fixture
def credentials() -> CredentialStore:
    return CredentialStore(api_key="test-key")
