"""Pytest configuration for tests.

No sys.path hacks - tests import from the installed retain package.
"""

import json

import pytest


@pytest.fixture
def contact_payload() -> bytes:
    """The page payload used across retention tests."""
    return b'{"title":"Contact Us","slug":"contact","icon":"email"}'


@pytest.fixture
def nested_payload() -> bytes:
    """A payload whose unknown fields hold nested objects and arrays."""
    return json.dumps(
        {
            "title": "Docs",
            "slug": "docs",
            "menu": {"order": 3, "parents": ["home", {"id": 7, "tags": []}]},
            "weights": [1, 2.5, None, True],
            "meta": {"deep": {"deeper": {"x": None}}},
        }
    ).encode("utf-8")
