"""Message kinds exchanged between the panel and its host.

The set is closed: both ends ship the same list. Each kind that carries
a structured payload registers a pydantic model in ``PAYLOAD_MODELS`` so
outbound payloads are checked before they reach the wire.
"""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from ..errors import UnknownMessageTypeError

# Bump when a message kind is added, removed or changes its payload shape.
PROTOCOL_VERSION = "1"


class MessageType(str, Enum):
    """All message kinds known to panel and host."""

    # Configuration
    LOAD_CONFIG = "loadConfig"
    SAVE_CONFIG = "saveConfig"
    TEST_CONNECTION = "testConnection"

    # Pull requests
    LOAD_PULL_REQUESTS = "loadPullRequests"
    SELECT_PULL_REQUEST = "selectPullRequest"
    LOAD_PR_DETAILS = "loadPRDetails"
    SEARCH_PULL_REQUESTS = "searchPullRequests"
    FILTER_PULL_REQUESTS = "filterPullRequests"
    REFRESH_PULL_REQUESTS = "refreshPullRequests"

    # AI analysis
    START_AI_ANALYSIS = "startAIAnalysis"
    AI_ANALYSIS_PROGRESS = "aiAnalysisProgress"
    AI_ANALYSIS_COMPLETE = "aiAnalysisComplete"
    AI_ANALYSIS_CANCEL = "aiAnalysisCancel"

    # Comments
    APPROVE_COMMENT = "approveComment"
    DISMISS_COMMENT = "dismissComment"
    MODIFY_COMMENT = "modifyComment"
    EXPORT_COMMENTS = "exportComments"

    # Repositories and projects
    LOAD_REPOSITORIES = "loadRepositories"
    LOAD_PROJECTS = "loadProjects"

    # UI state
    UPDATE_VIEW = "updateView"
    NAVIGATE = "navigate"

    # Notifications
    SHOW_ERROR = "showError"
    SHOW_SUCCESS = "showSuccess"
    SHOW_WARNING = "showWarning"
    SHOW_INFO = "showInfo"

    # Settings
    OPEN_SETTINGS = "openSettings"
    CLOSE_SETTINGS = "closeSettings"
    VALIDATE_SETTING = "validateSetting"
    SAVE_SETTINGS = "saveSettings"
    RESET_SETTINGS = "resetSettings"
    EXPORT_SETTINGS = "exportSettings"
    IMPORT_SETTINGS = "importSettings"
    SETTINGS_CHANGED = "settingsChanged"
    LOAD_AVAILABLE_MODELS = "loadAvailableModels"


def coerce_message_type(value: MessageType | str) -> MessageType:
    """Return the enum member for ``value``.

    Raises:
        UnknownMessageTypeError: If ``value`` is not a known message kind
    """
    if isinstance(value, MessageType):
        return value
    try:
        return MessageType(value)
    except ValueError:
        raise UnknownMessageTypeError(f"Unknown message type: {value!r}") from None


# =============================================================================
# Payload models
# =============================================================================


class Payload(BaseModel):
    """Base for payload models: camelCase on the wire, snake_case in Python."""

    model_config = ConfigDict(populate_by_name=True, extra="allow")


class ConfigPayload(Payload):
    config: dict[str, Any] = Field(default_factory=dict)


class PullRequestPayload(Payload):
    pr_id: int = Field(alias="prId")


class PullRequestFilter(Payload):
    query: str | None = None
    repository_id: str | None = Field(default=None, alias="repositoryId")
    author: str | None = None
    status: str | None = None


class CommentPayload(Payload):
    comment_id: str = Field(alias="commentId")


class ModifyCommentPayload(CommentPayload):
    content: str


class ViewPayload(Payload):
    view: str


class MessagePayload(Payload):
    message: str
    details: str | None = None


class SettingPayload(Payload):
    key: str
    value: Any = None


class SettingsPayload(Payload):
    settings: dict[str, Any] = Field(default_factory=dict)


class AnalysisProgressPayload(Payload):
    pr_id: int | None = Field(default=None, alias="prId")
    progress: float = 0.0
    message: str | None = None


PAYLOAD_MODELS: dict[MessageType, type[Payload]] = {
    MessageType.SAVE_CONFIG: ConfigPayload,
    MessageType.TEST_CONNECTION: ConfigPayload,
    MessageType.SELECT_PULL_REQUEST: PullRequestPayload,
    MessageType.LOAD_PR_DETAILS: PullRequestPayload,
    MessageType.SEARCH_PULL_REQUESTS: PullRequestFilter,
    MessageType.FILTER_PULL_REQUESTS: PullRequestFilter,
    MessageType.START_AI_ANALYSIS: PullRequestPayload,
    MessageType.AI_ANALYSIS_CANCEL: PullRequestPayload,
    MessageType.AI_ANALYSIS_PROGRESS: AnalysisProgressPayload,
    MessageType.APPROVE_COMMENT: CommentPayload,
    MessageType.DISMISS_COMMENT: CommentPayload,
    MessageType.MODIFY_COMMENT: ModifyCommentPayload,
    MessageType.UPDATE_VIEW: ViewPayload,
    MessageType.NAVIGATE: ViewPayload,
    MessageType.SHOW_ERROR: MessagePayload,
    MessageType.SHOW_SUCCESS: MessagePayload,
    MessageType.SHOW_WARNING: MessagePayload,
    MessageType.SHOW_INFO: MessagePayload,
    MessageType.VALIDATE_SETTING: SettingPayload,
    MessageType.SAVE_SETTINGS: SettingsPayload,
    MessageType.IMPORT_SETTINGS: SettingsPayload,
    MessageType.SETTINGS_CHANGED: SettingsPayload,
}


def payload_model_for(message_type: MessageType | str) -> type[Payload] | None:
    """Get the registered payload model for a message kind, if any."""
    try:
        return PAYLOAD_MODELS.get(MessageType(message_type))
    except ValueError:
        return None


def encode_payload(message_type: MessageType, payload: Any) -> Any:
    """Validate an outbound payload and convert it to its wire form.

    Model instances and dicts for registered kinds are validated and dumped
    with camelCase aliases. Anything else passes through unchanged.

    Raises:
        pydantic.ValidationError: If the payload does not fit the model
    """
    if isinstance(payload, BaseModel):
        return payload.model_dump(by_alias=True, exclude_none=True)
    model = PAYLOAD_MODELS.get(message_type)
    if model is None or payload is None:
        return payload
    return model.model_validate(payload).model_dump(by_alias=True, exclude_none=True)
