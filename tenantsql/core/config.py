from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    DATABASE_URL: str
    SECRET_KEY: str
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 120
    SQL_ECHO: bool = False

    # Language model (OpenAI-compatible chat completions API)
    LLM_API_KEY: str = ""
    LLM_BASE_URL: str = "https://api.openai.com/v1"
    LLM_MODEL: str = "gpt-4"
    LLM_TIMEOUT_SECONDS: float = 60.0

    # Tenant databases
    TENANT_POOL_SIZE: int = 5
    PLAN_TIMEOUT_SECONDS: float = 10.0
    QUERY_TIMEOUT_SECONDS: float = 30.0

    # Schema sync
    SYNC_WRITE_ATTEMPTS: int = 3
    SYNC_RETRY_BACKOFF_SECONDS: float = 0.1

    # Generation
    CONTEXT_WINDOW: int = 5
    DEFAULT_ROW_LIMIT: int = 100
    QUERY_HISTORY_ENABLED: bool = True

    # This tells Pydantic to read from the .env file
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")


# Create a single instance of the settings to use everywhere
settings = Settings()
