from pydantic_settings import BaseSettings
from typing import List


class Settings(BaseSettings):
    # API Configuration
    debug: bool = False
    environment: str = "development"
    api_host: str = "0.0.0.0"
    api_port: int = 8000
    api_prefix: str = "/api"
    # Front-end origins allowed to call the API
    cors_origins: List[str] = ["*"]

    # Database Configuration
    database_url: str = "sqlite:///./data/testexec.db"

    # Test execution
    # How many times run creation is attempted when a concurrent request
    # grabbed the same run_number first.
    run_create_max_attempts: int = 3

    # Logging
    log_level: str = "INFO"

    class Config:
        env_file = ".env"
        case_sensitive = False


# Global settings instance
settings = Settings()
