"""Shared test fixtures and configuration for animation engine tests."""
import io

import pytest
from PIL import Image

from animation_engine.pipeline.types import (
    GenerationRun,
    ParticipantAnswer,
    ParticipantData,
)

# Configure pytest-asyncio
pytest_plugins = ('pytest_asyncio',)


def make_png(size=(64, 48), color=(200, 120, 40)) -> bytes:
    """Encode a flat-colour PNG in memory."""
    buffer = io.BytesIO()
    Image.new("RGB", size, color=color).save(buffer, format="PNG")
    return buffer.getvalue()


@pytest.fixture
def png_factory():
    """Build PNGs of a given size and colour."""
    return make_png


@pytest.fixture
def png_bytes():
    """A small landscape PNG."""
    return make_png()


@pytest.fixture
def participant_data():
    """A participant with two quiz answers."""
    return ParticipantData(
        nom="Dupont",
        prenom="Jean",
        email="jean.dupont@example.com",
        answers=[
            ParticipantAnswer(element_id="q1", type="choice", value="Plage"),
            ParticipantAnswer(element_id="q2", type="choice", value="Soleil"),
        ],
    )


@pytest.fixture
def generation_run(participant_data):
    """A pending run without a selfie."""
    return GenerationRun(id="gen-123", animation_id="anim-1", participant_data=participant_data)
