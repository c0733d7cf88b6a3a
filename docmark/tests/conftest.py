"""
Test fixtures and utilities for docmark tests.

Provides reusable fixtures for images, sessions and the text-entry
collaborator.
"""

import numpy as np
import pytest

CANCEL = object()


class ScriptedTextProvider:
    """
    Text-entry collaborator for tests.

    Records every request and answers it immediately with the next queued
    answer; requests stay pending once the queue is empty.
    """

    def __init__(self, answers=None):
        self.answers = list(answers or [])
        self.requests = []

    def __call__(self, request):
        self.requests.append(request)
        if self.answers:
            answer = self.answers.pop(0)
            if answer is CANCEL:
                request.cancel()
            else:
                request.respond(answer)


@pytest.fixture
def test_image():
    """Create an 800x600 BGR test image with a gradient."""
    x = np.linspace(0, 255, 800, dtype=np.uint8)
    image = np.zeros((600, 800, 3), dtype=np.uint8)
    image[:, :, 0] = x[None, :]
    image[:, :, 1] = 128
    image[:, :, 2] = 255 - x[None, :]
    return image


@pytest.fixture
def small_image():
    """Create a small black test image."""
    return np.zeros((100, 120, 3), dtype=np.uint8)


@pytest.fixture
def text_provider():
    return ScriptedTextProvider()


@pytest.fixture
def session(text_provider):
    """Create an AnnotationSession wired to the scripted text provider."""
    from docmark.core.annotation import AnnotationSession

    return AnnotationSession(text_provider=text_provider)


@pytest.fixture
def loaded_session(session, test_image):
    session.load_image(test_image, "screenshot.png")
    return session


def assert_only_moved(before, after, moved_id):
    """Assert that only ``moved_id`` differs, and only in position."""
    assert len(before) == len(after)
    for old, new in zip(before, after):
        assert old.id == new.id
        if old.id == moved_id:
            assert old.moved_to(new.x, new.y) == new
        else:
            assert old == new
