"""Shared fixtures."""

from __future__ import annotations

import asyncio

import pytest

from kabala.ai import GenerativeBackend


class FakeBackend(GenerativeBackend):
    """Backend that replays a canned response or raises a canned error."""

    def __init__(self, response="", error=None, configured=True, delay=0.0):
        self.response = response
        self.error = error
        self.configured = configured
        self.delay = delay
        self.calls = []

    @property
    def is_configured(self) -> bool:
        return self.configured

    async def generate(self, parts, max_output_tokens):
        self.calls.append((parts, max_output_tokens))
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return self.response


@pytest.fixture
def make_backend():
    return FakeBackend


@pytest.fixture
def db_path(tmp_path):
    return str(tmp_path / "kabala.db")
