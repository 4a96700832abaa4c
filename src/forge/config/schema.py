"""Configuration schema using Pydantic."""

from pathlib import Path

from pydantic import BaseModel, Field

from forge.config.defaults import (
    DEFAULT_ALLOWED_PROVIDERS,
    DEFAULT_ROLE_MODELS,
    DEFAULT_SIMPLE_REQUEST_KEYWORDS,
)


class StagesConfig(BaseModel):
    """Which optional pipeline stages run."""

    enable_planner: bool = True
    enable_reviewer: bool = True
    skip_planner_for_simple: bool = True
    skip_reviewer_for_simple: bool = True
    # Review every execution, even when it already carries a passing score
    force_review: bool = False


class RetryConfig(BaseModel):
    """Loop budgets for the execute/review/revise cycle."""

    max_retries: int = Field(default=1, ge=0)
    max_revisions: int = Field(default=1, ge=0)
    retry_delay: float = Field(default=0.5, ge=0.0)  # seconds
    revision_delay: float = Field(default=0.5, ge=0.0)  # seconds


class TimeoutsConfig(BaseModel):
    """Per-stage wall-clock limits in seconds. None disables the limit."""

    planner: float | None = 60.0
    executor: float | None = 120.0
    reviewer: float | None = 60.0
    reflection: float | None = 60.0


class QualityConfig(BaseModel):
    """Quality gate configuration."""

    threshold: float = Field(default=0.7, ge=0.0, le=1.0)


class HeuristicsConfig(BaseModel):
    """Inputs to the request-complexity heuristic."""

    simple_request_max_length: int = 100
    simple_request_keywords: list[str] = Field(
        default_factory=lambda: list(DEFAULT_SIMPLE_REQUEST_KEYWORDS)
    )


class ModelsConfig(BaseModel):
    """Default model id per agent role."""

    planner: str = DEFAULT_ROLE_MODELS["planner"]
    executor: str = DEFAULT_ROLE_MODELS["executor"]
    reviewer: str = DEFAULT_ROLE_MODELS["reviewer"]
    reflection: str = DEFAULT_ROLE_MODELS["reflection"]
    # Providers a user may pick as their preferred model
    allowed_providers: list[str] = Field(default_factory=lambda: list(DEFAULT_ALLOWED_PROVIDERS))

    def for_role(self, role: str) -> str:
        """Get the default model for a role."""
        return getattr(self, role)


class MemoryConfig(BaseModel):
    """Memory retrieval and persistence configuration."""

    enabled: bool = True
    retrieval_limit: int = Field(default=5, ge=0)
    agent_memory_limit: int = Field(default=10, ge=0)
    max_entries: int = Field(default=100, ge=1)  # per user, per collection
    store: str = "memory"  # memory, jsonl, none
    path: str | None = None  # directory for the jsonl store


class BackendConfig(BaseModel):
    """Generative backend connection and retry configuration."""

    provider: str = "http"  # http, anthropic, openai
    base_url: str = "http://localhost:3000/api"
    endpoint: str = "/generate"
    request_timeout: float = 120.0
    max_attempts: int = Field(default=5, ge=1)
    backoff_base: float = 3.0
    backoff_max: float = 60.0
    backoff_jitter: float = 2.0
    max_tokens: int = 4096
    api_key_env: str | None = None


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: str = "WARNING"
    log_stages: bool = True


class WorkflowConfig(BaseModel):
    """Root configuration model for forge."""

    stages: StagesConfig = Field(default_factory=StagesConfig)
    retry: RetryConfig = Field(default_factory=RetryConfig)
    timeouts: TimeoutsConfig = Field(default_factory=TimeoutsConfig)
    quality: QualityConfig = Field(default_factory=QualityConfig)
    heuristics: HeuristicsConfig = Field(default_factory=HeuristicsConfig)
    models: ModelsConfig = Field(default_factory=ModelsConfig)
    memory: MemoryConfig = Field(default_factory=MemoryConfig)
    backend: BackendConfig = Field(default_factory=BackendConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @classmethod
    def default(cls) -> "WorkflowConfig":
        """Create default configuration."""
        return cls()


def get_config_dir() -> Path:
    """Get the configuration directory path."""
    config_dir = Path.home() / ".config" / "forge"
    config_dir.mkdir(parents=True, exist_ok=True)
    return config_dir


def get_config_file() -> Path:
    """Get the main configuration file path."""
    return get_config_dir() / "config.toml"


def get_memory_dir() -> Path:
    """Get the default directory for the file-backed memory store."""
    memory_dir = get_config_dir() / "memory"
    memory_dir.mkdir(parents=True, exist_ok=True)
    return memory_dir
