"""Shared data models for ccmonitor."""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationError, field_validator

from ccmonitor.errors import ProtocolError


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class HookEventKind(str, Enum):
    """Lifecycle hooks emitted by the monitored CLI."""

    PRE_TOOL_USE = "PreToolUse"
    POST_TOOL_USE = "PostToolUse"
    STOP = "Stop"
    NOTIFICATION = "Notification"

    @property
    def path_segment(self) -> str:
        """The lowercase segment used in ``/hook/{kind}``."""
        return self.value.lower()

    @classmethod
    def from_path(cls, segment: str) -> "HookEventKind":
        for kind in cls:
            if kind.path_segment == segment:
                return kind
        raise ValueError(f"unknown hook kind: {segment!r}")


class SessionState(str, Enum):
    """Working/waiting classification of a published session."""

    IDLE = "idle"
    WORKING = "working"
    WAITING = "waiting"


class MappingMethod(str, Enum):
    """Signal that established a session mapping."""

    WORKING_DIRECTORY = "working_directory"
    START_TIME = "start_time"
    LABEL = "label"
    DIRECTORY_INDEX = "directory_index"
    FALLBACK = "fallback"


class ProcessIdentity(BaseModel):
    """A live candidate process, rebuilt on every scan. Equality is by pid."""

    pid: int
    start_time: datetime
    terminal_device: Optional[str] = None
    working_directory: Optional[str] = None
    command: str = ""
    discovered_at: datetime = Field(default_factory=utcnow)

    def __eq__(self, other: object) -> bool:
        if isinstance(other, ProcessIdentity):
            return self.pid == other.pid
        return NotImplemented

    def __hash__(self) -> int:
        return hash(self.pid)


class ToolDetails(BaseModel):
    """Optional structured tool arguments carried by a hook payload."""

    command: Optional[str] = None
    file_path: Optional[str] = None
    pattern: Optional[str] = None
    old_string: Optional[str] = None
    new_string: Optional[str] = None
    content: Optional[str] = None
    limit: Optional[int] = None
    offset: Optional[int] = None

    def summary(self) -> Optional[str]:
        """Short human-readable detail: command, then file path, then pattern."""
        return self.command or self.file_path or self.pattern


class HookPayload(BaseModel):
    """Wire shape of ``POST /hook/{kind}`` bodies."""

    model_config = ConfigDict(extra="ignore")

    session_id: str = Field(min_length=1)
    transcript_path: str
    tool_name: Optional[str] = None
    tool_details: Optional[ToolDetails] = Field(
        default=None,
        validation_alias=AliasChoices("tool_details", "tool_input"),
    )

    @field_validator("session_id", "transcript_path", "tool_name", mode="before")
    @classmethod
    def _require_string(cls, value: Any) -> Any:
        if value is not None and not isinstance(value, str):
            raise ValueError("must be a string")
        return value


class HookEvent(BaseModel):
    """A validated hook event, ready for correlation."""

    kind: HookEventKind
    logical_session_id: str
    transcript_path: str
    tool_name: Optional[str] = None
    tool_details: Optional[ToolDetails] = None
    received_at: datetime = Field(default_factory=utcnow)


def parse_hook_event(segment: str, body: bytes | str) -> HookEvent:
    """
    Parse a raw hook body into a ``HookEvent``.

    Raises ProtocolError for unknown kinds, invalid JSON or payloads that
    do not match the wire shape.
    """
    try:
        kind = HookEventKind.from_path(segment)
    except ValueError as exc:
        raise ProtocolError(str(exc)) from exc

    try:
        payload = HookPayload.model_validate_json(body)
    except ValidationError as exc:
        raise ProtocolError(f"invalid hook payload: {exc.error_count()} error(s)") from exc

    return HookEvent(
        kind=kind,
        logical_session_id=payload.session_id,
        transcript_path=payload.transcript_path,
        tool_name=payload.tool_name,
        tool_details=payload.tool_details,
    )


class SessionMapping(BaseModel):
    """Binding of a logical session id to a concrete pid."""

    logical_session_id: str
    pid: int
    confidence: float = Field(ge=0.0, le=1.0)
    method: MappingMethod
    established_at: datetime = Field(default_factory=utcnow)


class TokenUsage(BaseModel):
    """Token totals for one transcript (cache counts excluded)."""

    input_tokens: int = 0
    output_tokens: int = 0
    detected_model: Optional[str] = None

    @property
    def total_tokens(self) -> int:
        return self.input_tokens + self.output_tokens


class TranscriptMetadata(BaseModel):
    """Session metadata recorded near the top of a transcript."""

    session_id: Optional[str] = None
    cwd: Optional[str] = None


class TranscriptCacheEntry(BaseModel):
    """Cached extraction results for one transcript path."""

    task_description: Optional[str] = None
    task_loaded: bool = False
    usage: Optional[TokenUsage] = None
    metadata: Optional[TranscriptMetadata] = None


class SessionRecord(BaseModel):
    """Published view of one monitored process."""

    pid: int
    working_directory: Optional[str] = None
    terminal_device: Optional[str] = None
    command: str = ""
    started_at: Optional[datetime] = None
    state: SessionState = SessionState.IDLE
    has_pending_output: bool = False
    current_tool: Optional[str] = None
    current_tool_detail: Optional[str] = None
    task_description: Optional[str] = None
    input_tokens: int = 0
    output_tokens: int = 0
    cost: float = 0.0
    detected_model: Optional[str] = None
    last_activity: datetime = Field(default_factory=utcnow)
    logical_session_id: Optional[str] = None
    transcript_path: Optional[str] = None
    mapping_confidence: Optional[float] = None
    mapping_method: Optional[MappingMethod] = None
    tokens_refreshed_at: Optional[datetime] = None
    refreshing: bool = False

    @property
    def total_tokens(self) -> int:
        return self.input_tokens + self.output_tokens

    def status_text(self) -> str:
        """Short status line for display."""
        if self.state is SessionState.WORKING:
            return TOOL_DISPLAY_NAMES.get(self.current_tool or "", self.current_tool or "Working")
        if self.state is SessionState.WAITING:
            return "Waiting"
        return "Idle"


TOOL_DISPLAY_NAMES: dict[str, str] = {
    "Bash": "Running command",
    "Edit": "Editing file",
    "MultiEdit": "Editing file",
    "Write": "Writing file",
    "Read": "Reading file",
    "Grep": "Searching files",
    "Glob": "Finding files",
    "WebSearch": "Searching web",
    "WebFetch": "Fetching web",
    "Task": "Running task",
    "LS": "Listing files",
}
