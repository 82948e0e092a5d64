"""Configuration parsing for sandboxdns.

Brief:
  Reads a YAML config file and validates it into typed pydantic models:
    - logging: settings passed to init_logging()
    - base_prefix: root directory for default sandbox file paths
    - sandboxes: sandbox definitions (id, container_id, SandboxConfig fields)

Inputs:
  - YAML config paths or already-parsed mappings

Outputs:
  - AppConfig instances and a populated Controller
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

import yaml
from pydantic import BaseModel, Field

from ..controller import Controller
from ..namespace import NetnsContext
from ..sandbox import DEFAULT_PREFIX, SandboxConfig


class LoggingConfig(BaseModel):
    """Brief: Logging options understood by init_logging()."""

    level: str = "info"
    stderr: bool = True
    file: Optional[str] = None
    syslog: Any = None


class SandboxSpec(SandboxConfig):
    """Brief: A SandboxConfig plus the identifiers of the sandbox it belongs to."""

    id: str
    container_id: str = ""
    netns_path: Optional[str] = None


class AppConfig(BaseModel):
    """Brief: Root configuration model."""

    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    base_prefix: str = DEFAULT_PREFIX
    sandboxes: List[SandboxSpec] = Field(default_factory=list)

    class Config:
        extra = "forbid"


def parse_config(cfg: Dict[str, Any]) -> AppConfig:
    """Brief: Validate a parsed config mapping.

    Inputs:
      - cfg: Mapping loaded from YAML.

    Outputs:
      - AppConfig

    Raises:
      - ValueError: the root is not a mapping, the model rejects it, or
        sandbox ids repeat.
    """

    if not isinstance(cfg, dict):
        raise ValueError("Configuration root must be a mapping")
    try:
        app = AppConfig(**cfg)
    except Exception as exc:
        raise ValueError(f"Invalid configuration: {exc}") from exc

    seen = set()
    for spec in app.sandboxes:
        if spec.id in seen:
            raise ValueError(f"duplicate sandbox id {spec.id!r}")
        seen.add(spec.id)
    return app


def parse_config_file(config_path: str) -> AppConfig:
    """Brief: Read and validate a YAML config file.

    Inputs:
      - config_path: Path to the YAML configuration file.

    Outputs:
      - AppConfig
    """

    with open(config_path, "r") as f:
        cfg = yaml.safe_load(f) or {}
    return parse_config(cfg)


def sandbox_config(spec: SandboxSpec) -> SandboxConfig:
    """Brief: Strip the identifier fields from a SandboxSpec."""

    data = spec.model_dump(exclude={"id", "container_id", "netns_path"})
    return SandboxConfig(**data)


def build_controller(app: AppConfig, **kwargs) -> Controller:
    """Brief: Create a Controller holding one Sandbox per configured spec.

    Inputs:
      - app: Validated AppConfig.
      - kwargs: Extra Controller arguments (for example resolver_factory).

    Outputs:
      - Controller
    """

    controller = Controller(base_prefix=app.base_prefix, **kwargs)
    for spec in app.sandboxes:
        exec_ctx = NetnsContext(spec.netns_path) if spec.netns_path else NetnsContext()
        controller.new_sandbox(
            spec.id, spec.container_id, sandbox_config(spec), exec_ctx=exec_ctx
        )
    return controller
