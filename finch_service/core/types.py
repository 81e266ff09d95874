from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any, Dict, List, Optional, TypedDict, Union


class Role(StrEnum):
    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"


class StreamEvent(StrEnum):
    TEXT = "text"
    TOOL_STARTED = "tool_started"
    FINAL = "final"
    ERROR = "error"
    DONE = "done"


class FailureKind(StrEnum):
    UNKNOWN_TOOL = "UnknownTool"
    INVALID_ARGUMENTS = "InvalidArguments"
    EXECUTION_FAILED = "ExecutionFailed"
    TIMEOUT = "Timeout"


class Message(TypedDict):
    role: str  # "system" | "user" | "assistant"
    content: str


class Event(TypedDict, total=False):
    type: str  # "text" | "tool_started" | "final" | "error" | "done"
    user_id: str
    data: Dict[str, Any]
    ts: str


class UserPreferences(TypedDict, total=False):
    tone: str
    topics: List[str]
    schedule: Dict[str, Any]
    tool_preferences: Dict[str, Any]


@dataclass(frozen=True)
class ToolCallRequest:
    """A tool invocation extracted from model text; never persisted."""
    name: str
    arguments: Dict[str, Any]


@dataclass
class ToolResult:
    """What a tool reports back from run(): output, or a logical failure."""
    success: bool
    output: str = ""
    error: Optional[str] = None


@dataclass
class Success:
    tool_name: str
    output: str

    @property
    def ok(self) -> bool:
        return True


@dataclass
class Failure:
    tool_name: str
    kind: FailureKind
    message: str
    details: Any = None

    @property
    def ok(self) -> bool:
        return False


ToolOutcome = Union[Success, Failure]


@dataclass
class ConversationEntry:
    role: str  # "user" | "assistant"
    content: str
    timestamp: float = 0.0

    def to_message(self) -> Message:
        return {"role": self.role, "content": self.content}

    def to_dict(self) -> Dict[str, Any]:
        return {"role": self.role, "content": self.content, "timestamp": self.timestamp}


@dataclass
class Turn:
    """User message plus the cleaned final reply that resolved it."""
    user_id: str
    user_message: str
    reply: str
    rounds: int = 0
    outcomes: List[ToolOutcome] = field(default_factory=list)
