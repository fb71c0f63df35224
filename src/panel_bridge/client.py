"""Typed convenience API used by UI features.

Thin wrapper over RequestOrchestrator: one method per host operation, so
features never build envelopes or pick timeouts themselves.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

from .bus import EnvelopeHandler
from .observable import Observable
from .orchestrator import RequestOrchestrator
from .protocol.messages import MessageType


class PanelClient:
    """Host operations available to the panel."""

    def __init__(self, orchestrator: RequestOrchestrator) -> None:
        self._orchestrator = orchestrator

    @property
    def orchestrator(self) -> RequestOrchestrator:
        return self._orchestrator

    @property
    def last_error(self) -> Observable[str | None]:
        return self._orchestrator.last_error

    @property
    def is_loading(self) -> Observable[bool]:
        return self._orchestrator.is_loading

    @property
    def retry_count(self) -> Observable[int]:
        return self._orchestrator.retry_count

    def on(self, message_type: MessageType | str, handler: EnvelopeHandler) -> Callable[[], None]:
        """Subscribe to host events of one type."""
        return self._orchestrator.subscribe(message_type, handler)

    # Configuration

    async def load_configuration(self) -> Any:
        return await self._orchestrator.call(MessageType.LOAD_CONFIG)

    async def save_configuration(self, config: dict[str, Any]) -> Any:
        return await self._orchestrator.call(MessageType.SAVE_CONFIG, {"config": config})

    async def test_connection(self, config: dict[str, Any]) -> Any:
        return await self._orchestrator.call(MessageType.TEST_CONNECTION, {"config": config})

    # Pull requests

    async def load_pull_requests(self) -> Any:
        return await self._orchestrator.call(MessageType.LOAD_PULL_REQUESTS)

    async def select_pull_request(self, pr_id: int) -> Any:
        return await self._orchestrator.call(MessageType.SELECT_PULL_REQUEST, {"prId": pr_id})

    async def load_pr_details(self, pr_id: int) -> Any:
        return await self._orchestrator.call(MessageType.LOAD_PR_DETAILS, {"prId": pr_id})

    async def load_repositories(self) -> Any:
        return await self._orchestrator.call(MessageType.LOAD_REPOSITORIES)

    async def load_projects(self) -> Any:
        return await self._orchestrator.call(MessageType.LOAD_PROJECTS)

    # AI analysis

    def start_ai_analysis(self, pr_id: int) -> str | None:
        return self._orchestrator.notify(MessageType.START_AI_ANALYSIS, {"prId": pr_id})

    def cancel_ai_analysis(self, pr_id: int) -> str | None:
        return self._orchestrator.notify(MessageType.AI_ANALYSIS_CANCEL, {"prId": pr_id})

    # Comments

    def approve_comment(self, comment_id: str) -> str | None:
        return self._orchestrator.notify(MessageType.APPROVE_COMMENT, {"commentId": comment_id})

    def dismiss_comment(self, comment_id: str) -> str | None:
        return self._orchestrator.notify(MessageType.DISMISS_COMMENT, {"commentId": comment_id})

    def modify_comment(self, comment_id: str, content: str) -> str | None:
        return self._orchestrator.notify(
            MessageType.MODIFY_COMMENT, {"commentId": comment_id, "content": content}
        )

    def export_comments(self) -> str | None:
        return self._orchestrator.notify(MessageType.EXPORT_COMMENTS)

    # UI state

    def update_view(self, view: str) -> str | None:
        return self._orchestrator.notify(MessageType.UPDATE_VIEW, {"view": view})

    # Settings

    async def open_settings(self) -> Any:
        return await self._orchestrator.call(MessageType.OPEN_SETTINGS)

    def close_settings(self) -> str | None:
        return self._orchestrator.notify(MessageType.CLOSE_SETTINGS)

    async def validate_setting(self, key: str, value: Any) -> Any:
        return await self._orchestrator.call(
            MessageType.VALIDATE_SETTING, {"key": key, "value": value}
        )

    async def save_settings(self, settings: dict[str, Any]) -> Any:
        return await self._orchestrator.call(MessageType.SAVE_SETTINGS, {"settings": settings})

    def reset_settings(self) -> str | None:
        return self._orchestrator.notify(MessageType.RESET_SETTINGS)

    def export_settings(self) -> str | None:
        return self._orchestrator.notify(MessageType.EXPORT_SETTINGS)

    def import_settings(self, settings: dict[str, Any]) -> str | None:
        return self._orchestrator.notify(MessageType.IMPORT_SETTINGS, {"settings": settings})

    async def load_available_models(self) -> Any:
        return await self._orchestrator.call(MessageType.LOAD_AVAILABLE_MODELS)

    # Notifications

    def show_error(self, message: str, details: str | None = None) -> str | None:
        payload: dict[str, Any] = {"message": message}
        if details:
            payload["details"] = details
        return self._orchestrator.notify(MessageType.SHOW_ERROR, payload)

    def show_success(self, message: str) -> str | None:
        return self._orchestrator.notify(MessageType.SHOW_SUCCESS, {"message": message})

    def show_warning(self, message: str) -> str | None:
        return self._orchestrator.notify(MessageType.SHOW_WARNING, {"message": message})

    def show_info(self, message: str) -> str | None:
        return self._orchestrator.notify(MessageType.SHOW_INFO, {"message": message})

    def clear_error(self) -> None:
        self._orchestrator.clear_error()
