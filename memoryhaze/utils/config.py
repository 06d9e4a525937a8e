"""
Configuration management with schema validation.
Single source of truth for MemoryHaze client configuration.
"""

import os
from pathlib import Path
from typing import Any, Optional

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, Field

from .exceptions import ConfigError
from .logger import get_logger

logger = get_logger(__name__)

# Load environment variables
load_dotenv()

CONFIG_DIR = Path(os.getenv("MEMORYHAZE_CONFIG_DIR", "config"))
SETTINGS_FILE = CONFIG_DIR / "settings.yaml"


class AppSettings(BaseModel):
    name: str = "MemoryHaze"
    version: str = "1.0.0"
    environment: str = "development"


class ApiSettings(BaseModel):
    base_url: str = "http://localhost:5000"
    connection_timeout: int = 10
    read_timeout: int = 30
    max_retries: int = 3


class CloudinarySettings(BaseModel):
    cloud_name: Optional[str] = None
    upload_preset: Optional[str] = None
    # Falls back to upload_preset when unset
    audio_upload_preset: Optional[str] = None
    root_folder: str = "MemoryHaze"

    def image_preset(self) -> Optional[str]:
        return self.upload_preset or None

    def audio_preset(self) -> Optional[str]:
        return self.audio_upload_preset or self.upload_preset or None

    def is_configured(self) -> bool:
        return bool(self.cloud_name and self.upload_preset)


class SessionSettings(BaseModel):
    token_file: str = "data/session.json"


class SubmissionSettings(BaseModel):
    min_scenario_length: int = 150
    scenario_count: int = 3
    default_max_photos: int = 4
    admin_max_photos: int = 4


class LoggingSettings(BaseModel):
    level: str = "INFO"
    format: str = "json"
    file_path: Optional[str] = "logs/memoryhaze.log"
    max_bytes: int = 10485760
    backup_count: int = 5


class Settings(BaseModel):
    app: AppSettings = Field(default_factory=AppSettings)
    api: ApiSettings = Field(default_factory=ApiSettings)
    cloudinary: CloudinarySettings = Field(default_factory=CloudinarySettings)
    session: SessionSettings = Field(default_factory=SessionSettings)
    submission: SubmissionSettings = Field(default_factory=SubmissionSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)


class ConfigManager:
    """Singleton configuration manager"""

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super(ConfigManager, cls).__new__(cls)
            cls._instance._initialized = False
        return cls._instance

    def __init__(self):
        if self._initialized:
            return

        self.settings_path = SETTINGS_FILE
        self._settings: Optional[Settings] = None
        self._initialized = True

    def _substitute_env_vars(self, value: Any) -> Any:
        """Recursively substitute ${VAR} and ${VAR:default} expressions"""
        if isinstance(value, str):
            if value.startswith("${") and value.endswith("}"):
                var_expr = value[2:-1]
                if ":" in var_expr:
                    var_name, default = var_expr.split(":", 1)
                    resolved = os.getenv(var_name.strip(), default.strip())
                else:
                    resolved = os.getenv(var_expr)
                return resolved if resolved != "" else None
        elif isinstance(value, dict):
            return {k: self._substitute_env_vars(v) for k, v in value.items()}
        elif isinstance(value, list):
            return [self._substitute_env_vars(item) for item in value]
        return value

    def load_settings(self, path: Optional[Path] = None) -> Settings:
        """Load and validate settings.yaml. A missing file yields defaults."""
        settings_path = Path(path) if path else self.settings_path
        if not settings_path.exists():
            logger.info("Settings file not found, using defaults", path=str(settings_path))
            self._settings = Settings()
            return self._settings

        try:
            with open(settings_path, "r", encoding="utf-8") as f:
                raw_data = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as e:
            raise ConfigError(f"Failed to read settings from {settings_path}: {e}")

        processed = self._substitute_env_vars(raw_data)
        # Drop keys whose env substitution resolved to nothing so model defaults apply
        processed = {
            section: {k: v for k, v in (values or {}).items() if v is not None}
            for section, values in processed.items()
            if isinstance(values, dict)
        }
        try:
            self._settings = Settings(**processed)
        except ValueError as e:
            raise ConfigError(f"Invalid settings in {settings_path}: {e}")
        return self._settings

    @property
    def settings(self) -> Settings:
        if self._settings is None:
            return self.load_settings()
        return self._settings


config_manager = ConfigManager()
