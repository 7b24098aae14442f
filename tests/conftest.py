"""Shared pytest fixtures and helpers.

Every test runs in-process: images are generated with Pillow, the detection
service is replaced by mocks or ``httpx.MockTransport``, and no network or
LLM calls are made.
"""

import asyncio
import io
import uuid

import pytest
from PIL import Image

from redactly.models.entities import DetectionResult, Entity, EntityKind, SIGNATURE_LABEL
from redactly.models.geometry import BoundingBox


def run(coro):
    """Run a coroutine to completion on a fresh event loop."""
    return asyncio.run(coro)


def make_image(width=200, height=100, color=(255, 255, 255), fmt="PNG", mode="RGB") -> bytes:
    image = Image.new(mode, (width, height), color)
    buffer = io.BytesIO()
    image.save(buffer, format=fmt)
    return buffer.getvalue()


def make_gradient(width=200, height=200, fmt="PNG") -> bytes:
    """An image where almost every pixel differs from its neighbours."""
    image = Image.new("RGB", (width, height))
    image.putdata([(x % 256, y % 256, (x * 7 + y * 13) % 256) for y in range(height) for x in range(width)])
    buffer = io.BytesIO()
    image.save(buffer, format=fmt)
    return buffer.getvalue()


def decode(content: bytes) -> Image.Image:
    image = Image.open(io.BytesIO(content))
    image.load()
    return image


def make_entity(x1, y1, x2, y2, kind=EntityKind.PII, subtype="NAME", text="John Doe") -> Entity:
    if kind is EntityKind.SIGNATURE:
        subtype, text = "SIGNATURE", SIGNATURE_LABEL
    return Entity(
        id=str(uuid.uuid4()),
        kind=kind,
        subtype=subtype,
        text=text,
        box=BoundingBox(x1, y1, x2, y2),
        confidence=0.9,
    )


def make_result(*entities, ocr_text="John Doe\n") -> DetectionResult:
    return DetectionResult(entities=tuple(entities), ocr_text=ocr_text, raw_response="{}")


@pytest.fixture
def png_bytes() -> bytes:
    return make_image()


@pytest.fixture
def gradient_png() -> bytes:
    return make_gradient()


@pytest.fixture
def name_entity() -> Entity:
    return make_entity(10, 10, 60, 30)


@pytest.fixture
def signature_entity() -> Entity:
    return make_entity(100, 50, 180, 90, kind=EntityKind.SIGNATURE)
