"""
Configuration settings for the PropDesk back-office.
"""
from pydantic_settings import BaseSettings
from functools import lru_cache


class Settings(BaseSettings):
    # Remote property-management REST API
    api_base_url: str = "http://localhost:5000/api"
    request_timeout: float = 30.0

    # Durable session store (token + user)
    session_file: str = ".propdesk_session.json"

    # List views
    debounce_seconds: float = 0.3
    default_page_size: int = 10

    # Dashboard
    dashboard_page_size: int = 10
    urgent_page_size: int = 5

    # Display
    currency_prefix: str = "RWF"

    log_level: str = "INFO"
    frontend_url: str = ""

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        env_prefix = "PROPDESK_"


@lru_cache()
def get_settings() -> Settings:
    return Settings()
