# tests/unit/config/test_schema.py
"""Tests for configuration schema."""
import pytest
from pydantic import ValidationError

from forge.config.schema import ModelsConfig, QualityConfig, RetryConfig, WorkflowConfig, get_config_file


def test_workflow_config_defaults():
    """Test WorkflowConfig has working defaults."""
    config = WorkflowConfig.default()

    assert config.stages.enable_planner is True
    assert config.stages.skip_planner_for_simple is True
    assert config.stages.force_review is False
    assert config.retry.max_retries == 1
    assert config.retry.max_revisions == 1
    assert config.quality.threshold == 0.7
    assert config.backend.max_attempts == 5
    assert config.backend.backoff_base == 3.0
    assert config.backend.backoff_max == 60.0
    assert config.memory.store == "memory"


def test_timeouts_per_stage():
    """Test each agent stage has its own timeout."""
    config = WorkflowConfig.default()

    assert config.timeouts.planner == 60.0
    assert config.timeouts.executor == 120.0
    assert config.timeouts.reviewer == 60.0
    assert config.timeouts.reflection == 60.0


def test_nested_sections_validate_from_dict():
    """Test partial dicts merge with defaults."""
    config = WorkflowConfig.model_validate({"retry": {"max_revisions": 3}, "quality": {"threshold": 0.8}})

    assert config.retry.max_revisions == 3
    assert config.retry.max_retries == 1
    assert config.quality.threshold == 0.8


def test_threshold_out_of_range_rejected():
    with pytest.raises(ValidationError):
        WorkflowConfig.model_validate({"quality": {"threshold": 1.5}})


def test_negative_retries_rejected():
    with pytest.raises(ValidationError):
        RetryConfig(max_retries=-1)


def test_models_for_role():
    models = ModelsConfig(reviewer="gemini")

    assert models.for_role("reviewer") == "gemini"
    assert models.for_role("executor") == "groq"


def test_config_file_under_home(isolated_home):
    """Test the user config file lives under ~/.config/forge."""
    assert get_config_file() == isolated_home / ".config" / "forge" / "config.toml"


def test_review_gating_has_one_flag():
    """Test forced review is controlled only by stages.force_review."""
    assert set(QualityConfig.model_fields) == {"threshold"}
    assert WorkflowConfig.model_validate({"stages": {"force_review": True}}).stages.force_review is True
