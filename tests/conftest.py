"""Shared fakes: an in-memory indicator source keyed by request path."""

from __future__ import annotations

from typing import Any

import pytest

from tariff_impact.http import NetworkError


class FakeSource:
    """
    Answers ``fetch`` from a dict of path -> payload.

    A payload that is an exception instance is raised instead; unknown paths
    raise :class:`NetworkError` like an unreachable upstream would.
    """

    def __init__(self, responses: dict[str, Any] | None = None):
        self.responses = dict(responses or {})
        self.calls: list[str] = []

    async def fetch(self, path: str, params: dict[str, Any] | None = None) -> Any:
        self.calls.append(path)
        if path not in self.responses:
            raise NetworkError(f"no route for {path}")
        payload = self.responses[path]
        if isinstance(payload, Exception):
            raise payload
        return payload


@pytest.fixture
def failing_source() -> FakeSource:
    return FakeSource()
