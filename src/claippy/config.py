"""Configuration loading from environment variables and claippy.toml."""

from __future__ import annotations

import os
import sys
from dataclasses import dataclass, field

if sys.version_info >= (3, 11):
    import tomllib
else:
    import tomli as tomllib
from pathlib import Path

from claippy.errors import ConfigError

_CONFIG_FILENAME = "claippy.toml"
_DATA_DIRNAME = ".claippy"

DEFAULT_API_MODEL = "claude-sonnet-4-5-20250929"
DEFAULT_BEDROCK_MODEL = "anthropic.claude-3-sonnet-20240229-v1:0"

DEFAULT_SYSTEM_PROMPT = """\
You are Claippy, a coding assistant working inside the user's project.

Files and web pages the user has added to the conversation are supplied in a
<context> block, each wrapped in <document source="..."> tags. Prefer them over
assumptions about the project.

When your answer has one principal deliverable (a file, a patch, a snippet),
wrap exactly that deliverable in <Artifact></Artifact> tags.
"""


@dataclass
class EngineConfig:
    """Configuration for the language-model backend."""

    backend: str = "anthropic_api"
    model: str | None = None
    max_tokens: int = 4096
    temperature: float = 1.0
    system_prompt: str = DEFAULT_SYSTEM_PROMPT
    region: str | None = None
    aws_profile: str | None = None
    timeout: int = 300

    @property
    def resolved_model(self) -> str:
        if self.model:
            return self.model
        return DEFAULT_BEDROCK_MODEL if self.backend == "bedrock" else DEFAULT_API_MODEL


@dataclass
class ClaippyConfig:
    """Top-level Claippy configuration."""

    engine: EngineConfig = field(default_factory=EngineConfig)
    data_dir: Path = field(default_factory=lambda: find_data_dir(Path.cwd()))
    conversation: str | None = None
    log_level: str = "WARNING"

    @property
    def project_root(self) -> Path:
        """Directory that context file references are stored relative to."""
        return self.data_dir.parent

    @property
    def history_file(self) -> Path:
        return self.data_dir / "history"


def find_data_dir(start: Path) -> Path:
    """Walk up from start to the nearest directory with .git; fall back to start."""
    p = start.resolve()
    while True:
        if (p / ".git").exists():
            return p / _DATA_DIRNAME
        if p == p.parent:
            return start.resolve() / _DATA_DIRNAME
        p = p.parent


def _read_toml(path: Path) -> dict:
    try:
        return tomllib.loads(path.read_text())
    except (OSError, UnicodeDecodeError, tomllib.TOMLDecodeError) as e:
        raise ConfigError(f"Cannot read {path}: {e}") from e


def load_config(config_path: Path | None = None) -> ClaippyConfig:
    """Load configuration from environment variables and optional claippy.toml.

    Priority: environment variables > claippy.toml > defaults.
    """
    file_data: dict = {}
    if config_path and config_path.exists():
        file_data = _read_toml(config_path)
    else:
        # Search current dir and ~/.claippy/
        for candidate in [
            Path.cwd() / _CONFIG_FILENAME,
            Path.home() / _DATA_DIRNAME / _CONFIG_FILENAME,
        ]:
            if candidate.exists():
                file_data = _read_toml(candidate)
                break

    engine_data = file_data.get("engine", {})
    if not isinstance(engine_data, dict):
        raise ConfigError("[engine] must be a table")

    data_dir = os.getenv("CLAIPPY_DATA_DIR", file_data.get("data_dir"))

    try:
        engine = EngineConfig(
            backend=os.getenv("CLAIPPY_BACKEND", engine_data.get("backend", "anthropic_api")),
            model=os.getenv("CLAIPPY_MODEL", engine_data.get("model")),
            max_tokens=int(engine_data.get("max_tokens", 4096)),
            temperature=float(
                os.getenv("CLAIPPY_TEMPERATURE", engine_data.get("temperature", 1.0))
            ),
            system_prompt=engine_data.get("system_prompt", DEFAULT_SYSTEM_PROMPT),
            region=os.getenv("CLAIPPY_AWS_REGION", engine_data.get("region")),
            aws_profile=os.getenv("CLAIPPY_AWS_PROFILE", engine_data.get("aws_profile")),
            timeout=int(os.getenv("CLAIPPY_TIMEOUT", engine_data.get("timeout", 300))),
        )
    except (TypeError, ValueError) as e:
        raise ConfigError(f"Invalid engine setting: {e}") from e

    config = ClaippyConfig(
        engine=engine,
        data_dir=Path(data_dir).expanduser() if data_dir else find_data_dir(Path.cwd()),
        conversation=os.getenv("CLAIPPY_CONVERSATION", file_data.get("conversation")),
        log_level=os.getenv("CLAIPPY_LOG_LEVEL", file_data.get("log_level", "WARNING")),
    )
    return config
