"""Application configuration settings."""

import os
from pathlib import Path

from dotenv import load_dotenv
from pydantic import BaseModel


# Ensure environment variables from a .env file are loaded before accessing them.
load_dotenv()


class Settings(BaseModel):
    APP_HOST: str = os.getenv("APP_HOST", "0.0.0.0")
    APP_PORT: int = int(os.getenv("APP_PORT", "8000"))
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")
    BROADCAST_CAPACITY: int = int(os.getenv("BROADCAST_CAPACITY", "1024"))
    PRINCIPAL_HEADER: str = os.getenv("PRINCIPAL_HEADER", "X-MS-CLIENT-PRINCIPAL-NAME")
    GUEST_NAME: str = os.getenv("GUEST_NAME", "guest")
    ANONYMOUS_NAME: str = os.getenv("ANONYMOUS_NAME", "anonymous")
    ROOM_MAX_LENGTH: int = int(os.getenv("ROOM_MAX_LENGTH", "29"))
    DATABASE_URL: str = os.getenv("DATABASE_URL", "sqlite+aiosqlite:///./relay.db")
    STATIC_DIR: str = os.getenv("STATIC_DIR", str(Path(__file__).resolve().parent / "static"))


settings = Settings()
