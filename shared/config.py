"""
Linear Agent - Configuration

Settings come from environment variables (optionally loaded from a .env file)
and are overridden by command-line options. The resulting AppConfig is passed
explicitly to the clients; nothing below the CLI reads the environment.
"""

import os
from pathlib import Path
from typing import Mapping, Optional

import structlog
from dotenv import load_dotenv
from pydantic import BaseModel, Field

logger = structlog.get_logger()

DEFAULT_ENV_FILENAME = ".env"
DEFAULT_CONFIG_DIR = ".linear-agent"
DEFAULT_TEAM_NAME = "Engineering"
DEFAULT_STATES = ["Open", "In Progress"]
DEFAULT_ANTHROPIC_MODEL = "claude-3-7-sonnet-20250219"

SUPPORTED_MODELS = [
    "claude-3-7-sonnet-20250219",
    "claude-3-5-sonnet-20240620",
    "claude-3-haiku-20240307",
    "claude-3-opus-20240229",
]


class ConfigError(Exception):
    """Raised when a required setting is missing"""


def parse_states(text: str) -> list[str]:
    """Split a comma-separated state list, e.g. "Open, In Progress" """
    return [s.strip() for s in text.split(",")]


def default_config_path() -> Path:
    return Path.home() / DEFAULT_CONFIG_DIR / DEFAULT_ENV_FILENAME


def env_locations() -> list[Path]:
    """Standard .env locations, in lookup order"""
    return [Path(DEFAULT_ENV_FILENAME), default_config_path()]


def load_env_file(path: Optional[Path] = None) -> Optional[Path]:
    """
    Load environment variables from a .env file.

    Args:
        path: Explicit file to load. When omitted, the first existing file
            from env_locations() is used.

    Returns:
        The file that was loaded, or None if no known location existed
    """
    if path is not None:
        if not Path(path).exists():
            raise ConfigError(f"Env file not found: {path}")
        load_dotenv(path)
        logger.debug("Loaded env file", path=str(path))
        return Path(path)

    for location in env_locations():
        if location.exists():
            load_dotenv(location)
            logger.debug("Loaded env file", path=str(location))
            return location

    # Fall back to python-dotenv's own search from the working directory
    load_dotenv()
    return None


class AppConfig(BaseModel):
    """Runtime settings for the Linear and Anthropic clients"""
    linear_api_key: str = ""
    anthropic_api_key: Optional[str] = None
    linear_team_name: str = DEFAULT_TEAM_NAME
    linear_agent_user: str = ""
    linear_agent_states: list[str] = Field(default_factory=lambda: list(DEFAULT_STATES))
    anthropic_model: str = DEFAULT_ANTHROPIC_MODEL

    @classmethod
    def from_env(
        cls,
        environ: Optional[Mapping[str, str]] = None,
        *,
        user: Optional[str] = None,
        team: Optional[str] = None,
        states: Optional[str] = None,
        model: Optional[str] = None,
    ) -> "AppConfig":
        """
        Build a config from environment variables, then apply overrides.

        Overrides mirror the CLI options; None means "not given".
        """
        env = os.environ if environ is None else environ
        config = cls()

        if "LINEAR_API_KEY" in env:
            config.linear_api_key = env["LINEAR_API_KEY"]
        if "ANTHROPIC_API_KEY" in env:
            config.anthropic_api_key = env["ANTHROPIC_API_KEY"]
        if "LINEAR_TEAM_NAME" in env:
            config.linear_team_name = env["LINEAR_TEAM_NAME"]
        if "LINEAR_AGENT_USER" in env:
            config.linear_agent_user = env["LINEAR_AGENT_USER"]
        if "LINEAR_AGENT_STATES" in env:
            config.linear_agent_states = parse_states(env["LINEAR_AGENT_STATES"])
        if "ANTHROPIC_MODEL" in env:
            config.anthropic_model = env["ANTHROPIC_MODEL"]

        if user is not None:
            config.linear_agent_user = user
        if team is not None:
            config.linear_team_name = team
        if states is not None:
            config.linear_agent_states = parse_states(states)
        if model is not None:
            config.anthropic_model = model

        return config

    def require_linear_key(self) -> str:
        if not self.linear_api_key:
            raise ConfigError("LINEAR_API_KEY is not set. Run with --setup or provide an .env file.")
        return self.linear_api_key

    def require_anthropic_key(self) -> str:
        if not self.anthropic_api_key:
            raise ConfigError("ANTHROPIC_API_KEY is not set; it is required for --plan.")
        return self.anthropic_api_key

    def to_env_text(self) -> str:
        lines = [f"LINEAR_API_KEY={self.linear_api_key}"]
        if self.anthropic_api_key:
            lines.append(f"ANTHROPIC_API_KEY={self.anthropic_api_key}")
        lines.extend([
            f"LINEAR_TEAM_NAME={self.linear_team_name}",
            f"LINEAR_AGENT_USER={self.linear_agent_user}",
            f"LINEAR_AGENT_STATES={','.join(self.linear_agent_states)}",
            f"ANTHROPIC_MODEL={self.anthropic_model}",
        ])
        return "\n".join(lines) + "\n"

    def save(self, path: Optional[Path] = None) -> Path:
        """Write the config as a .env file (default ~/.linear-agent/.env)"""
        env_path = Path(path) if path is not None else default_config_path()
        env_path.parent.mkdir(parents=True, exist_ok=True)
        env_path.write_text(self.to_env_text(), encoding="utf-8")
        logger.info("Saved configuration", path=str(env_path))
        return env_path
