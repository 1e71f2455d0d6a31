"""Environment settings (``.env`` or process environment).

Engine tunables such as timeouts, weights and thresholds live in
``engine_config.yaml`` instead; see ``clarity.config_loader``.
"""

from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Deployment settings; every field maps to an upper-cased env var."""

    # --- App ---
    app_name: str = "Clarity"
    app_version: str = "0.1.0"
    debug: bool = False
    log_level: str = "INFO"
    environment: str = "development"  # development | staging | production

    # --- Device ---
    platform: Literal["ios", "android", "web"] = "web"

    # --- Remote scoring ---
    api_url: str = "http://localhost:3000/api"

    # --- Storage ---
    storage_backend: Literal["memory", "postgres"] = "memory"
    database_url: str = ""
    db_pool_min_size: int = 1
    db_pool_max_size: int = 10
    db_command_timeout_seconds: float = 30.0
    local_state_path: Path = Path(".clarity/state.json")

    # --- Auth (HS256 bearer tokens; sub = user id) ---
    jwt_secret: str = ""
    jwt_algorithm: str = "HS256"

    # --- Google Fit OAuth client; empty client id disables the source ---
    google_fit_client_id: str = ""
    google_fit_client_secret: str = ""
    google_fit_redirect_uri: str = ""

    # --- CORS ---
    cors_origins: list[str] = ["http://localhost:8081"]

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}


@lru_cache
def get_settings() -> Settings:
    return Settings()
