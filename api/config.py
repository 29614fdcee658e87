from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # Server
    HOST: str = "0.0.0.0"
    PORT: int = 8000

    # Database
    DATABASE_URL: str = "sqlite+aiosqlite:///./missions.db"
    DATABASE_ECHO: bool = False

    # Logging
    LOG_LEVEL: str = "INFO"

    # CORS
    CORS_ORIGINS: str = ""  # Comma-separated. Empty = local dev origins

    # Badge catalog
    SEED_BADGES: bool = True  # Insert the starter badges when the table is empty

    # Mission defaults (applied on create when the field is absent)
    DEFAULT_MISSION_TITLE: str = "Untitled Mission"
    DEFAULT_MISSION_POINTS: int = 100
    DEFAULT_CREATOR: str = "anonymous"

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
    }


settings = Settings()
