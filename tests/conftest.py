"""Shared test fixtures for compregistry tests."""

import pytest

from compregistry.dispatch import Portal
from compregistry.lazy import LazyComponent
from compregistry.ledger import ReadinessLedger
from compregistry.registry import CompositionRecord, CompositionRegistry


def scene(**props):
    """Minimal view component: echoes its props."""
    return {"scene": props}


def make_record(**overrides) -> CompositionRecord:
    """Return a valid 1080p/30fps record, with fields overridden."""
    fields = {
        "id": "intro",
        "width": 1920,
        "height": 1080,
        "fps": 30,
        "duration_in_frames": 90,
        "component": LazyComponent.eager(scene),
    }
    fields.update(overrides)
    return CompositionRecord(**fields)


@pytest.fixture
def registry():
    return CompositionRegistry()


@pytest.fixture
def ledger():
    return ReadinessLedger()


@pytest.fixture
def portal():
    return Portal()
