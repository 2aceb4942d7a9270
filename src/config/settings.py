"""Application settings loaded from environment variables via pydantic-settings.

Settings are read from two sources, in priority order:

  1. Environment variables, e.g. ``OPENAI_API_KEY=sk-...``
  2. A ``.env`` file in the working directory (local development)

Field ``openai_api_key`` maps to env var ``OPENAI_API_KEY``, and so on.
An empty string means "not configured"; :meth:`Settings.missing_credentials`
turns that into the pipeline's "configuration ready" flag.
"""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """recipeSnap application settings."""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # === Image storage ===
    # "bunny" uploads to a Bunny.net storage zone; "inline" embeds the image
    # in the vision request as a data: URI and needs no credentials.
    storage_backend: str = "bunny"
    bunny_storage_access_key: str = ""
    bunny_storage_name: str = ""
    bunny_storage_region: str = "de"
    # Public base URL of a pull zone; defaults to https://{zone}.b-cdn.net
    bunny_pull_zone_url: str = ""

    # === Vision model ===
    openai_api_key: str = ""
    openai_base_url: str = ""  # OpenAI-compatible endpoints
    openai_vision_model: str = "gpt-4o"

    # === Record store ===
    airtable_api_key: str = ""
    airtable_base_id: str = ""
    airtable_table_name: str = ""

    # === Pipeline ===
    # Minimum spacing between outbound provider calls, shared by every stage.
    rate_limit_delay_ms: int = Field(default=5000, ge=0)
    http_timeout_seconds: float = Field(default=30.0, gt=0)

    # === App Config ===
    app_host: str = "0.0.0.0"
    app_port: int = 8000
    app_env: str = "development"
    log_level: str = "INFO"

    @property
    def uses_inline_storage(self) -> bool:
        return self.storage_backend.strip().lower() == "inline"

    def missing_credentials(self) -> list[str]:
        """Return the env var names that must be set before a batch can run."""
        required: dict[str, str] = {
            "OPENAI_API_KEY": self.openai_api_key,
            "AIRTABLE_API_KEY": self.airtable_api_key,
            "AIRTABLE_BASE_ID": self.airtable_base_id,
            "AIRTABLE_TABLE_NAME": self.airtable_table_name,
        }
        if not self.uses_inline_storage:
            required["BUNNY_STORAGE_ACCESS_KEY"] = self.bunny_storage_access_key
            required["BUNNY_STORAGE_NAME"] = self.bunny_storage_name
        return [name for name, value in required.items() if not value.strip()]

    def credentials_configured(self) -> bool:
        return not self.missing_credentials()
