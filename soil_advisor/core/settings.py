"""
Environment-driven settings.
Loaded once from the process environment (and .env if present).
"""

import os
from dataclasses import dataclass

from dotenv import load_dotenv

from . import config
from .errors import ConfigurationError


@dataclass(frozen=True)
class Settings:
    """
    Values that vary per deployment.
    Nothing here has a usable default for the credential.
    """

    api_key: str = ""
    analysis_model: str = config.ANALYSIS_MODEL
    live_model: str = config.LIVE_MODEL
    host: str = "0.0.0.0"
    port: int = 7860
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "Settings":
        """Build settings from environment variables."""
        return cls(
            api_key=os.environ.get("API_KEY") or os.environ.get("GEMINI_API_KEY", ""),
            analysis_model=os.environ.get("ANALYSIS_MODEL", config.ANALYSIS_MODEL),
            live_model=os.environ.get("LIVE_MODEL", config.LIVE_MODEL),
            host=os.environ.get("HOST", "0.0.0.0"),
            port=int(os.environ.get("PORT", "7860")),
            log_level=os.environ.get("LOG_LEVEL", "INFO").upper(),
        )

    def require_api_key(self) -> str:
        """Return the API credential or fail fast if it is not configured."""
        if not self.api_key.strip():
            raise ConfigurationError(
                "API_KEY environment variable not set. "
                "Add it to the environment or a .env file before starting."
            )
        return self.api_key


# Global settings instance
_settings: Settings | None = None


def get_settings() -> Settings:
    """Get or create the global settings."""
    global _settings
    if _settings is None:
        load_dotenv()
        _settings = Settings.from_env()
    return _settings
