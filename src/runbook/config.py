"""Configuration management for runbook."""

import tomllib
from enum import Enum
from pathlib import Path

import tomli_w
from pydantic import BaseModel, Field

from .constants import CONFIG_FILE, STALE_LOCK_SECONDS


class SkippedPolicy(str, Enum):
    """How skipped substeps count toward percent complete."""

    # Skipped substeps leave the denominator
    EXCLUDE = "exclude"
    # Skipped substeps count as not complete
    INCOMPLETE = "incomplete"


class QueryConfig(BaseModel):
    """Configuration for session queries (next actionable, progress)."""

    skip_documentation_only: bool = Field(
        default=False,
        description="Treat NO-CODE-CHANGE substeps as informational when picking the next one",
    )
    include_documentation_only: bool = Field(
        default=False, description="Count NO-CODE-CHANGE substeps in progress"
    )
    skipped_policy: SkippedPolicy = SkippedPolicy.EXCLUDE


class SessionConfig(BaseModel):
    """Configuration for session storage."""

    lock_stale_seconds: int = Field(
        default=STALE_LOCK_SECONDS,
        ge=1,
        description="Age after which a live holder's lock is stale",
    )


class RunbookConfig(BaseModel):
    """Root configuration for runbook."""

    query: QueryConfig = Field(default_factory=QueryConfig)
    session: SessionConfig = Field(default_factory=SessionConfig)


def load_config(runbook_dir: Path) -> RunbookConfig:
    """Load config from .runbook/config.toml.

    Args:
        runbook_dir: Path to .runbook directory

    Returns:
        Loaded configuration, or defaults if config.toml doesn't exist
    """
    config_path = runbook_dir / CONFIG_FILE
    if not config_path.exists():
        return RunbookConfig()
    with open(config_path, "rb") as f:
        data = tomllib.load(f)
    return RunbookConfig.model_validate(data)


def write_config_template(runbook_dir: Path) -> Path:
    """Write default config.toml template.

    Args:
        runbook_dir: Path to .runbook directory

    Returns:
        Path to the written config file
    """
    config_path = runbook_dir / CONFIG_FILE
    template = {
        "query": {
            "skip_documentation_only": False,
            "include_documentation_only": False,
            # "exclude" drops skipped substeps from the denominator,
            # "incomplete" counts them as not done
            "skipped_policy": SkippedPolicy.EXCLUDE.value,
        },
        "session": {"lock_stale_seconds": STALE_LOCK_SECONDS},
    }
    with open(config_path, "wb") as f:
        tomli_w.dump(template, f)
    return config_path
