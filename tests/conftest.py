"""Pytest configuration and shared fixtures."""

from __future__ import annotations

import asyncio

import pytest

from panel_bridge import BridgeConfig, LoopbackChannel, RequestOrchestrator


async def drain(iterations: int = 5) -> None:
    """Let call_soon callbacks (loopback deliveries) run."""
    for _ in range(iterations):
        await asyncio.sleep(0)


@pytest.fixture
def channel() -> LoopbackChannel:
    """Loopback channel whose host records but never answers."""
    return LoopbackChannel()


@pytest.fixture
def config() -> BridgeConfig:
    """Short timeouts so timeout paths run in milliseconds."""
    return BridgeConfig(default_timeout=0.05, timeouts={})


@pytest.fixture
def orchestrator(channel: LoopbackChannel, config: BridgeConfig) -> RequestOrchestrator:
    return RequestOrchestrator(channel, config)
