from pydantic_settings import BaseSettings
from dotenv import load_dotenv
import os

load_dotenv()

class Settings(BaseSettings):
    # Storage
    DATABASE_URL: str = os.getenv("DATABASE_URL", "sqlite:///./invoices.db")

    # Account scope used when a request does not name one
    DEFAULT_ACCOUNT_KEY: str = os.getenv("DEFAULT_ACCOUNT_KEY", "default")
    DEFAULT_INVOICE_DESIGN_ID: int = int(os.getenv("DEFAULT_INVOICE_DESIGN_ID", "1"))
    DEFAULT_TIMEZONE: str = os.getenv("DEFAULT_TIMEZONE", "UTC")
    DEFAULT_CURRENCY_CODE: str = os.getenv("DEFAULT_CURRENCY_CODE", "USD")

    # Outbound email
    EMAIL_PROVIDER: str = os.getenv("EMAIL_PROVIDER", "disabled")
    EMAIL_RELAY_URL: str = os.getenv("EMAIL_RELAY_URL", "")
    EMAIL_API_KEY: str = os.getenv("EMAIL_API_KEY", "")
    EMAIL_FROM: str = os.getenv("EMAIL_FROM", "")

    ORIGINS: str = os.getenv("ORIGINS", "")
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")

    # API Configuration
    API_V1_PREFIX: str = "/api/v1"
    PROJECT_NAME: str = "Invoice API"

    class Config:
        case_sensitive = True

settings = Settings()
