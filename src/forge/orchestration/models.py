"""Core data models for the workflow pipeline."""
import uuid
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Literal

Mode = Literal["builder", "tutor"]


class WorkflowState(str, Enum):
    """Pipeline states gated by the state machine."""
    IDLE = "IDLE"
    PLANNING = "PLANNING"
    EXECUTING = "EXECUTING"
    REVIEWING = "REVIEWING"
    REVISING = "REVISING"
    DONE = "DONE"
    ERROR = "ERROR"


class WorkflowStatus(str, Enum):
    """Coarse progress reported to the caller."""
    PREPROCESSING = "preprocessing"
    ROUTING = "routing"
    PLANNING = "planning"
    EXECUTING = "executing"
    REVIEWING = "reviewing"
    REVISING = "revising"
    SAVING = "saving"
    COMPLETED = "completed"
    ERROR = "error"


StatusCallback = Callable[[WorkflowStatus, str], None]
StateCallback = Callable[[WorkflowState, dict], None]


@dataclass
class Message:
    """One conversation turn"""
    role: Literal["user", "ai"]
    content: str
    code: str | None = None
    images: list[str] = field(default_factory=list)
    timestamp: datetime = field(default_factory=datetime.now)

    def to_history_dict(self) -> dict[str, str]:
        """Shape sent to the backend as conversation history"""
        return {"role": self.role, "content": self.content}


@dataclass
class WorkflowContext:
    """Everything known about one request. Only metadata is mutated."""
    prompt: str
    mode: Mode = "builder"
    user_id: str | None = None
    session_id: str = field(default_factory=lambda: str(uuid.uuid4())[:8])
    provider: str | None = None
    history: list[Message] = field(default_factory=list)
    images: list[str] = field(default_factory=list)
    framework: str | None = None
    user_name: str | None = None
    user_email: str | None = None
    on_status_update: StatusCallback | None = None
    on_state_change: StateCallback | None = None
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass
class PreprocessedInput:
    """Planner's view of the analyzed request"""
    cleaned_prompt: str
    intent: str
    has_code: bool = False
    has_images: bool = False
    framework: str | None = None
    complexity: str = "medium"  # "simple" | "medium" | "complex"
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass
class PlanTask:
    """A task proposed by the planner"""
    id: str
    title: str
    description: str = ""
    dependencies: list[str] = field(default_factory=list)
    priority: str = "medium"  # "high" | "medium" | "low"
    category: str = "general"


@dataclass
class ExecutionStep:
    """Ordered step the executor follows"""
    step: int
    action: str
    expected_output: str
    dependencies: list[int] = field(default_factory=list)


@dataclass
class EnhancedPlan:
    """Planner output: tasks plus execution steps and review criteria"""
    id: str
    prompt: str
    tasks: list[PlanTask] = field(default_factory=list)
    execution_steps: list[ExecutionStep] = field(default_factory=list)
    quality_criteria: list[str] = field(default_factory=list)
    review_checklist: list[str] = field(default_factory=list)
    is_fallback: bool = False
    created_at: datetime = field(default_factory=datetime.now)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "prompt": self.prompt,
            "tasks": [vars(t) for t in self.tasks],
            "execution_steps": [vars(s) for s in self.execution_steps],
            "quality_criteria": self.quality_criteria,
            "review_checklist": self.review_checklist,
            "is_fallback": self.is_fallback,
            "created_at": self.created_at.isoformat(),
        }


@dataclass
class GeneratedFile:
    """One file of a multi-file artifact"""
    path: str
    content: str
    type: str = "file"


@dataclass
class ExecutionMetadata:
    tokens_used: int = 0
    execution_time: float = 0.0  # seconds
    quality_score: float | None = None


@dataclass
class ExecutionResult:
    """Executor artifact. Mutated only to apply an improved version or stamp a score."""
    code: str | None = None
    explanation: str | None = None
    files: list[GeneratedFile] = field(default_factory=list)
    entry: str | None = None
    metadata: ExecutionMetadata = field(default_factory=ExecutionMetadata)
    error: str | None = None

    @property
    def failed(self) -> bool:
        """True when the executor produced an error marker or nothing usable"""
        if self.error is not None:
            return True
        return not ((self.code and self.code.strip()) or (self.explanation and self.explanation.strip()) or self.files)


@dataclass
class ReviewIssue:
    """A single issue found by the reviewer"""
    severity: Literal["error", "warning", "suggestion"]
    message: str
    location: str | None = None


@dataclass
class ReviewResult:
    """Reviewer verdict"""
    quality_score: float
    issues: list[ReviewIssue] = field(default_factory=list)
    suggestions: list[str] = field(default_factory=list)
    improved_code: str | None = None
    improved_explanation: str | None = None
    rejected: bool = False
    rejection_reason: str | None = None

    def count(self, severity: str) -> int:
        return sum(1 for issue in self.issues if issue.severity == severity)

    def to_dict(self) -> dict:
        return {
            "quality_score": self.quality_score,
            "issues": [vars(i) for i in self.issues],
            "suggestions": self.suggestions,
            "rejected": self.rejected,
            "rejection_reason": self.rejection_reason,
            "has_improved_version": bool(self.improved_code or self.improved_explanation),
        }


@dataclass
class SelfReflectionResult:
    """Post-run analysis used to steer future requests"""
    what_worked: list[str] = field(default_factory=list)
    what_failed: list[str] = field(default_factory=list)
    what_to_improve: list[str] = field(default_factory=list)
    lessons_learned: list[str] = field(default_factory=list)
    recommendations: list[str] = field(default_factory=list)
    quality_score: float = 0.0
    confidence: float = 0.0


@dataclass
class WorkflowMetadata:
    tokens_used: int = 0
    execution_time: float = 0.0  # seconds
    quality_score: float | None = None
    stages_executed: list[str] = field(default_factory=list)
    execution_attempts: int = 0
    revision_attempts: int = 0
    final_state: WorkflowState = WorkflowState.IDLE
    stop_reason: str | None = None
    error_message: str | None = None


@dataclass
class WorkflowResult:
    """The single result returned for a request"""
    response: str
    code: str | None = None
    explanation: str | None = None
    files: list[GeneratedFile] = field(default_factory=list)
    plan: EnhancedPlan | None = None
    review: ReviewResult | None = None
    metadata: WorkflowMetadata = field(default_factory=WorkflowMetadata)

    @property
    def is_error(self) -> bool:
        return self.metadata.final_state == WorkflowState.ERROR

    def to_dict(self) -> dict:
        meta = self.metadata
        return {
            "response": self.response,
            "code": self.code,
            "explanation": self.explanation,
            "files": [vars(f) for f in self.files],
            "plan": self.plan.to_dict() if self.plan else None,
            "review": self.review.to_dict() if self.review else None,
            "metadata": {
                "tokens_used": meta.tokens_used,
                "execution_time": meta.execution_time,
                "quality_score": meta.quality_score,
                "stages_executed": meta.stages_executed,
                "execution_attempts": meta.execution_attempts,
                "revision_attempts": meta.revision_attempts,
                "final_state": meta.final_state.value,
                "stop_reason": meta.stop_reason,
                "error_message": meta.error_message,
            },
        }


def _new_id(prefix: str) -> str:
    return f"{prefix}_{uuid.uuid4().hex[:12]}"


@dataclass(frozen=True)
class MemoryEntry:
    """Append-only record of one finished interaction"""
    session_id: str
    prompt: str
    response: str
    intent: str
    user_id: str | None = None
    code: str | None = None
    framework: str | None = None
    components: tuple[str, ...] = ()
    quality_score: float | None = None
    stages: tuple[str, ...] = ()
    timestamp: datetime = field(default_factory=datetime.now)
    id: str = field(default_factory=lambda: _new_id("mem"))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "session_id": self.session_id,
            "user_id": self.user_id,
            "prompt": self.prompt,
            "response": self.response,
            "code": self.code,
            "intent": self.intent,
            "framework": self.framework,
            "components": list(self.components),
            "quality_score": self.quality_score,
            "stages": list(self.stages),
            "timestamp": self.timestamp.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "MemoryEntry":
        return cls(
            id=data.get("id") or _new_id("mem"),
            session_id=data.get("session_id", ""),
            user_id=data.get("user_id"),
            prompt=data.get("prompt", ""),
            response=data.get("response", ""),
            code=data.get("code"),
            intent=data.get("intent", "code_generation"),
            framework=data.get("framework"),
            components=tuple(data.get("components") or ()),
            quality_score=data.get("quality_score"),
            stages=tuple(data.get("stages") or ()),
            timestamp=datetime.fromisoformat(data["timestamp"]) if data.get("timestamp") else datetime.now(),
        )


@dataclass(frozen=True)
class AgentMemoryEntry:
    """Append-only record of a self-reflection"""
    session_id: str
    prompt: str
    intent: str
    mode: str
    user_id: str | None = None
    framework: str | None = None
    components: tuple[str, ...] = ()
    features: tuple[str, ...] = ()
    what_worked: tuple[str, ...] = ()
    what_failed: tuple[str, ...] = ()
    what_to_improve: tuple[str, ...] = ()
    lessons_learned: tuple[str, ...] = ()
    recommendations: tuple[str, ...] = ()
    quality_score: float = 0.0
    confidence: float = 0.0
    timestamp: datetime = field(default_factory=datetime.now)
    id: str = field(default_factory=lambda: _new_id("agentmem"))

    _LIST_FIELDS = (
        "components", "features", "what_worked", "what_failed",
        "what_to_improve", "lessons_learned", "recommendations",
    )

    def to_dict(self) -> dict:
        data = {
            "id": self.id,
            "session_id": self.session_id,
            "user_id": self.user_id,
            "prompt": self.prompt,
            "intent": self.intent,
            "mode": self.mode,
            "framework": self.framework,
            "quality_score": self.quality_score,
            "confidence": self.confidence,
            "timestamp": self.timestamp.isoformat(),
        }
        for name in self._LIST_FIELDS:
            data[name] = list(getattr(self, name))
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "AgentMemoryEntry":
        lists = {name: tuple(data.get(name) or ()) for name in cls._LIST_FIELDS}
        return cls(
            id=data.get("id") or _new_id("agentmem"),
            session_id=data.get("session_id", ""),
            user_id=data.get("user_id"),
            prompt=data.get("prompt", ""),
            intent=data.get("intent", "code_generation"),
            mode=data.get("mode", "builder"),
            framework=data.get("framework"),
            quality_score=float(data.get("quality_score") or 0.0),
            confidence=float(data.get("confidence") or 0.0),
            timestamp=datetime.fromisoformat(data["timestamp"]) if data.get("timestamp") else datetime.now(),
            **lists,
        )
