"""Service configuration with YAML support."""

from __future__ import annotations

import logging
from pathlib import Path

import yaml
from pydantic import Field

from codegen_core.schemas import BaseSchema, LLMProviderConfig
from sandbox.executor import DEFAULT_TIMEOUT_MS
from sandbox.policy import DEFAULT_MEMORY_LIMIT_MB


class ServiceConfig(BaseSchema):
    """Settings for one deployment of the generation service."""

    llm: LLMProviderConfig = Field(default_factory=LLMProviderConfig)

    max_attempts: int = Field(default=2, ge=1)
    # Append the transcript after passing code (debugging aid)
    include_transcript: bool = False

    node_binary: str = "node"
    sandbox_timeout_ms: int = Field(default=DEFAULT_TIMEOUT_MS, gt=0)
    sandbox_memory_limit_mb: int | None = DEFAULT_MEMORY_LIMIT_MB

    log_level: str = "INFO"


def load_config(yaml_path: str | Path | None = None) -> ServiceConfig:
    """Load service configuration from a YAML file.

    Args:
        yaml_path: Path to YAML configuration file; ``None`` gives the defaults

    Returns:
        ServiceConfig instance

    Raises:
        FileNotFoundError: If YAML file doesn't exist
        ValueError: If YAML is invalid or has invalid fields
    """
    if yaml_path is None:
        return ServiceConfig()
    yaml_path = Path(yaml_path)

    if not yaml_path.exists():
        raise FileNotFoundError(f"Config file not found: {yaml_path}")

    with open(yaml_path, "r", encoding="utf-8") as f:
        try:
            data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ValueError(f"Invalid YAML in {yaml_path}: {e}") from e

    if data is None:
        return ServiceConfig()
    if not isinstance(data, dict):
        raise ValueError(f"Expected a mapping at the top of {yaml_path}")

    try:
        return ServiceConfig.from_dict(data)
    except Exception as e:
        raise ValueError(f"Invalid configuration in {yaml_path}: {e}") from e


def save_config(config: ServiceConfig, yaml_path: str | Path) -> None:
    """Save configuration to YAML. Credentials are never written."""
    yaml_path = Path(yaml_path)
    yaml_path.parent.mkdir(parents=True, exist_ok=True)

    data = config.to_dict()
    llm_data = data.get("llm")
    if isinstance(llm_data, dict):
        llm_data["api_key"] = None

    with open(yaml_path, "w", encoding="utf-8") as f:
        yaml.dump(data, f, default_flow_style=False, sort_keys=False, indent=2)


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        force=True,
    )
