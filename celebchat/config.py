from pathlib import Path

import yaml
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    ollama_api: str = "http://localhost:11434"
    default_model: str = "gpt-oss:20b"
    debug_prompts: bool = False
    log_level: str = "INFO"
    personas_path: str = ""
    buffer_partial_lines: bool = False
    connect_timeout_seconds: float = 10.0
    list_models_timeout_seconds: float = 5.0
    preflight_retries: int = 3
    prompt_preview_chars: int = 1500
    auth_required: bool = False
    jwt_secret: str = "dev_secret"
    jwt_algorithm: str = "HS256"
    host: str = "0.0.0.0"
    port: int = 5000

    model_config = {"env_prefix": "CELEBCHAT_"}


settings = Settings()


def load_personas_config(path: str | None = None) -> dict:
    """Load a persona registry override from YAML.

    Returns an empty dict when no path is configured so the built-in
    registry stays in effect.
    """
    raw_path = settings.personas_path if path is None else path
    if not raw_path:
        return {}
    config_path = Path(raw_path)
    if not config_path.exists():
        raise FileNotFoundError(f"Persona config not found: {config_path}")
    with open(config_path) as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ValueError(f"Persona config must be a mapping: {config_path}")
    return data
