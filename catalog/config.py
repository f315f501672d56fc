import os
from dataclasses import dataclass
from dotenv import load_dotenv

load_dotenv()

@dataclass
class Settings:
    # API settings
    api_host: str = os.getenv("API_HOST", "127.0.0.1")
    api_port: int = int(os.getenv("API_PORT", "8000"))

    # Database settings
    database_file: str = os.getenv("LIBRARY_DB_FILE", "catalog.db")
    database_timeout: float = float(os.getenv("DATABASE_TIMEOUT", "5"))

    # Application settings
    app_name: str = os.getenv("APP_NAME", "Local Library")
    app_version: str = os.getenv("APP_VERSION", "1.0.0")
    debug: bool = os.getenv("DEBUG", "False").lower() in ("true", "1", "yes")
    environment: str = os.getenv("ENVIRONMENT", "development")
    log_level: str = os.getenv("LOG_LEVEL", "INFO").upper()


settings = Settings()
