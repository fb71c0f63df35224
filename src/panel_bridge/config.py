"""Messaging core configuration.

Values are fixed when the orchestrator is constructed; they are not
runtime-mutable protocol state.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field

from .protocol.messages import MessageType

logger = logging.getLogger(__name__)

ENV_PREFIX = "PANEL_BRIDGE_"

# Per-kind call timeouts in seconds. Fast metadata reads are short,
# slow or destructive operations get up to a minute.
DEFAULT_TIMEOUTS: dict[MessageType, float] = {
    MessageType.LOAD_CONFIG: 5.0,
    MessageType.SAVE_CONFIG: 10.0,
    MessageType.TEST_CONNECTION: 30.0,
    MessageType.LOAD_PULL_REQUESTS: 30.0,
    MessageType.LOAD_PR_DETAILS: 15.0,
    MessageType.START_AI_ANALYSIS: 60.0,
    MessageType.LOAD_REPOSITORIES: 15.0,
    MessageType.LOAD_PROJECTS: 15.0,
    MessageType.LOAD_AVAILABLE_MODELS: 10.0,
}


@dataclass
class BridgeConfig:
    """Configuration for a RequestOrchestrator."""

    # How long a sent correlation ID is treated as "ours" on the way back in
    echo_ttl: float = 60.0

    # Calls
    default_timeout: float = 10.0
    default_retries: int = 2
    retry_delay: float = 0.0  # fixed pause before each re-send, no backoff

    timeouts: dict[MessageType, float] = field(default_factory=lambda: dict(DEFAULT_TIMEOUTS))

    def __post_init__(self) -> None:
        if self.echo_ttl <= 0:
            raise ValueError("echo_ttl must be positive")
        if self.default_timeout <= 0:
            raise ValueError("default_timeout must be positive")
        if self.default_retries < 0:
            raise ValueError("default_retries cannot be negative")
        if self.retry_delay < 0:
            raise ValueError("retry_delay cannot be negative")

    def timeout_for(self, message_type: MessageType | str) -> float:
        """Get the call timeout for a message kind."""
        try:
            return self.timeouts.get(MessageType(message_type), self.default_timeout)
        except ValueError:
            return self.default_timeout

    @classmethod
    def from_env(cls, environ: dict[str, str] | None = None) -> BridgeConfig:
        """Build a config, overriding defaults from PANEL_BRIDGE_* variables."""
        env = os.environ if environ is None else environ
        kwargs: dict[str, float | int] = {}

        for name, cast in (
            ("echo_ttl", float),
            ("default_timeout", float),
            ("default_retries", int),
            ("retry_delay", float),
        ):
            raw = env.get(f"{ENV_PREFIX}{name.upper()}")
            if raw is None:
                continue
            try:
                kwargs[name] = cast(raw)
            except ValueError:
                logger.warning(f"Ignoring invalid {ENV_PREFIX}{name.upper()}={raw!r}")

        return cls(**kwargs)  # type: ignore[arg-type]
