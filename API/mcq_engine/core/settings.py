from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    app_env: str = "dev"
    app_host: str = "127.0.0.1"
    app_port: int = 5001
    log_level: str = "INFO"
    cors_origins: list[str] = ["http://localhost:3000", "http://localhost:3001"]

    store_backend: str = "mongo"
    runtime_data_dir: str = "data/system"
    mongodb_url: str = "mongodb://localhost:27017"
    mongodb_db_name: str = "trainwithme"

    llm_provider: str = "openai"
    llm_model: str = "gpt-4o-mini"
    llm_temperature: float = 0.4
    llm_max_output_tokens: int = 2048
    openai_api_key: str = ""
    openai_base_url: str = "https://api.openai.com/v1"
    gemini_api_key: str = ""
    gemini_api_url: str = ""
    gemini_model: str = "gemini-2.5-flash"
    ollama_base_url: str = "http://localhost:11434"
    ollama_model: str = "qwen2.5:3b"

    oracle_timeout_seconds: float = 60.0
    oracle_history_turns: int = 2
    oracle_transport_retries: int = 3
    oracle_backoff_seconds: float = 0.5
    oracle_breaker_threshold: int = 4
    oracle_breaker_cooldown_seconds: float = 30.0
    statement_max_attempts: int = 3
    evaluation_max_attempts: int = 3
    tree_max_attempts: int = 2

    batch_target_items: int = 100
    batch_item_delay_seconds: float = 0.5
    batch_max_consecutive_failures: int = 10
    transformer_legacy_fallback: bool = False

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")


settings = Settings()
