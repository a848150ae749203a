"""Configuration management via environment variables.

Reads from .env file (via pydantic-settings) with sensible defaults.
All values can be overridden via environment variables.

Required:
    EDGAR_IDENTITY  — Your name + email for SEC EDGAR API User-Agent header
    MONGODB_URI     — MongoDB holding the stock roster and statement store

Optional:
    DATA_DIR           — Extracted companyfacts bulk directory
    CONCURRENCY        — Worker pool size for the batch pipeline
    PORT               — Trigger service port
"""

from pydantic import field_validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # SEC EDGAR API identity (name + email, required by SEC)
    edgar_identity: str = "edgar-statements edgar-statements@example.com"

    # Directory holding CIK##########.json documents from companyfacts.zip
    data_dir: str = "/tmp/edgar/companyfacts"

    # MongoDB for the stock roster, statements and job status
    mongodb_uri: str = ""
    mongodb_database: str = "edgar_statements"

    # Batch pipeline tuning
    concurrency: int = 50
    progress_interval: int = 500
    write_chunk_size: int = 2000
    recent_years: int = 3

    # Trigger service port
    port: int = 3000

    # Strip whitespace from string fields; the .env file often has
    # trailing spaces that break connection strings
    @field_validator("mongodb_uri", "edgar_identity", "data_dir", mode="before")
    @classmethod
    def strip_whitespace(cls, v: str) -> str:
        if isinstance(v, str):
            return v.strip().strip('"').strip("'").strip()
        return v

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}


_config: Settings | None = None


def get_config() -> Settings:
    """Get or create the shared Settings singleton."""
    global _config
    if _config is None:
        _config = Settings()
    return _config
