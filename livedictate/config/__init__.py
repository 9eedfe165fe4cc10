"""Simple YAML configuration loader for LiveDictate."""

import os
import yaml
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Any, Optional
import logging

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_NAME = "livedictate.yaml"


class LiveDictateConfig:
    """LiveDictate configuration loader."""

    def __init__(self, config_path: Optional[str] = None):
        """Initialize configuration loader.

        Args:
            config_path: Path to YAML config file. If None, looks for livedictate.yaml
                        in current directory and parent directories.
        """
        self.config_file = Path(config_path) if config_path else self._find_config_file()

        if not self.config_file.exists():
            raise FileNotFoundError(f"Configuration file not found: {self.config_file}")

        logger.info(f"Loading configuration from: {self.config_file}")
        self.config = self._load_config()

    @staticmethod
    def _find_config_file() -> Path:
        current = Path.cwd()
        for directory in [current, *current.parents]:
            candidate = directory / DEFAULT_CONFIG_NAME
            if candidate.exists():
                return candidate
        return current / DEFAULT_CONFIG_NAME

    def _load_config(self) -> Dict[str, Any]:
        """Load and parse YAML configuration file."""
        try:
            with open(self.config_file, 'r', encoding='utf-8') as f:
                config = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ValueError(f"Invalid YAML in configuration file: {e}") from e
        except OSError as e:
            raise ValueError(f"Failed to load configuration: {e}") from e

        if not config:
            raise ValueError("Configuration file is empty")
        if not isinstance(config, dict):
            raise ValueError("Configuration root must be a mapping")

        # Resolve relative paths
        self._resolve_paths(config)

        logger.info("Configuration loaded successfully")
        return config

    def _resolve_paths(self, config: Dict[str, Any]) -> None:
        """Resolve relative paths in configuration relative to config file location."""
        config_dir = self.config_file.parent

        for section, key in (
            ('google_cloud', 'credentials_path'),
            ('storage', 'data_directory'),
            ('logging', 'file_path'),
        ):
            if section in config and key in (config[section] or {}):
                value = config[section][key]
                if value and not os.path.isabs(value):
                    config[section][key] = str(config_dir / value)

    def get(self, key_path: str, default: Any = None) -> Any:
        """Get configuration value using dot notation (e.g., 'coordinator.backlog_ceiling').

        Args:
            key_path: Dot-separated key path
            default: Default value if key not found

        Returns:
            Configuration value or default
        """
        keys = key_path.split('.')
        value = self.config

        for key in keys:
            if isinstance(value, dict) and key in value:
                value = value[key]
            else:
                return default

        return value

    def set(self, key_path: str, value: Any) -> None:
        """Set configuration value using dot notation.

        Args:
            key_path: Dot-separated path to config value (e.g., 'transcription.backend')
            value: Value to set
        """
        keys = key_path.split('.')
        config_dict = self.config

        # Navigate to the parent dictionary
        for key in keys[:-1]:
            if key not in config_dict:
                config_dict[key] = {}
            config_dict = config_dict[key]

        config_dict[keys[-1]] = value
        logger.debug(f"Configuration key '{key_path}' set to: {value}")

    def get_google_credentials_path(self) -> str:
        """Get Google credentials path - raises if not configured or missing."""
        creds_path = self.get('google_cloud.credentials_path')
        if not creds_path:
            raise ValueError(f"Google credentials path not configured in {self.config_file.name}")

        creds_file = Path(creds_path)
        if not creds_file.exists():
            raise FileNotFoundError(f"Google credentials file not found: {creds_path}")

        return str(creds_file.absolute())

    def get_openai_api_key(self) -> str:
        """Get the OpenAI API key from config or the OPENAI_API_KEY environment variable."""
        api_key = self.get('openai.api_key') or os.environ.get('OPENAI_API_KEY')
        if not api_key:
            raise ValueError("OpenAI API key not configured (openai.api_key or OPENAI_API_KEY)")
        return api_key

    def get_data_directory(self) -> str:
        """Get data directory path."""
        data_dir = self.get('storage.data_directory', 'data')
        return str(Path(data_dir).absolute())


@dataclass
class CoordinatorSettings:
    """Tunables of the live session coordinator."""
    flush_interval_seconds: float = 1.0
    backlog_ceiling: int = 10
    resume_min_chunks: int = 5
    silence_floor_rms: float = 0.002
    min_audio_seconds: float = 1.0
    min_audio_seconds_after_pause: float = 0.5
    prompt_budget_chars: int = 224
    context_tail_chars: int = 180
    hallucination_scan_chars: int = 500
    min_vocabulary_room_chars: int = 30
    max_recording_ms: int = 15 * 60 * 1000

    @classmethod
    def from_config(cls, config: LiveDictateConfig) -> "CoordinatorSettings":
        """Build settings from the ``coordinator`` section, keeping defaults for missing keys."""
        defaults = cls()
        values = {}
        for name in cls.__dataclass_fields__:
            default = getattr(defaults, name)
            value = config.get(f'coordinator.{name}', default)
            values[name] = type(default)(value)
        return cls(**values)
