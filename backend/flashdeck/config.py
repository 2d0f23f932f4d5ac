from pathlib import Path

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    data_dir: Path = Path.home() / ".flashdeck" / "data"
    sqlite_filename: str = "flashdeck.db"
    ollama_base_url: str = "http://localhost:11434"
    report_model: str = "llama3.2:3b"
    report_temperature: float = 0.6
    report_max_tokens: int = 500
    llm_timeout: float = 120.0
    history_limit: int = 15  # sessions returned for the trend chart
    session_idle_timeout: float = 3600.0  # seconds before an untouched study session is evicted
    log_level: str = "INFO"

    model_config = {"env_prefix": "FLASHDECK_"}


settings = Settings()
