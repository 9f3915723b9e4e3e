# files_core/config.py
import os
from typing import Optional

from dotenv import load_dotenv

load_dotenv()


class Settings:
    """Application configuration settings"""

    # App
    APP_NAME: str = "Files Core"
    VERSION: str = "1.0.0"
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "WARNING")

    # Security
    SECRET_KEY: Optional[str] = os.getenv("SECRET_KEY") or os.getenv("JWT_SECRET")
    ENCRYPTION_SECRET_KEY: Optional[str] = os.getenv("ENCRYPTION_SECRET_KEY")
    BCRYPT_ROUNDS: int = int(os.getenv("BCRYPT_ROUNDS", 10))

    # Database
    DATABASE_URL: str = os.getenv(
        "DATABASE_URL",
        "sqlite+aiosqlite:///./files_core.db"
    )
    DATABASE_ECHO: bool = os.getenv("DATABASE_ECHO", "false").lower() == "true"

    # Remote storage (S3-compatible). The email/password pair maps onto the
    # provider's access key id and secret access key.
    STORAGE_EMAIL: Optional[str] = os.getenv("STORAGE_EMAIL")
    STORAGE_PASSWORD: Optional[str] = os.getenv("STORAGE_PASSWORD")
    STORAGE_BUCKET: str = os.getenv("STORAGE_BUCKET", "files-core")
    STORAGE_ENDPOINT_URL: Optional[str] = os.getenv("STORAGE_ENDPOINT_URL")
    STORAGE_REGION: Optional[str] = os.getenv("STORAGE_REGION")
    STORAGE_CONNECT_TIMEOUT: int = int(os.getenv("STORAGE_CONNECT_TIMEOUT", 10))
    STORAGE_READ_TIMEOUT: int = int(os.getenv("STORAGE_READ_TIMEOUT", 60))
    URL_EXPIRY_SECONDS: int = int(os.getenv("URL_EXPIRY_SECONDS", 3600))

    # Listing defaults
    DEFAULT_PAGE_SIZE: int = 20
    DEFAULT_LOG_LIMIT: int = 50

    @property
    def has_default_storage_credentials(self) -> bool:
        """Check if process-wide storage credentials are configured"""
        return bool(self.STORAGE_EMAIL and self.STORAGE_PASSWORD)

settings = Settings()
