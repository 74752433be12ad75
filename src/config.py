"""Configuration module for the Quizzie classroom API.

This module provides centralized configuration management, including directory
paths, API server settings, authentication, join code policy and mail
settings. All configuration values can be overridden via environment
variables.
"""

import os
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()

# --- Directory Configuration ---

# Root directory of the project
ROOT_DIR = Path(__file__).parent.parent.resolve()

# Data directory name
DATA_DIR_NAME = "data"
DATA_DIR = ROOT_DIR / DATA_DIR_NAME

# --- Database Configuration ---

DATABASE_URL: str = os.getenv(
    "DATABASE_URL", f"sqlite:///{DATA_DIR}/quizzie.db"
)

# --- API Server Configuration ---

API_HOST: str = os.getenv("API_HOST", "0.0.0.0")
API_PORT: int = int(os.getenv("API_PORT", "8080"))

# Public base URL used to build links in outgoing emails
BASE_URL: str = os.getenv("BASE_URL", f"http://localhost:{API_PORT}")

# CORS allowed origins (comma-separated list)
# Default includes local development addresses. For production, set via
# CORS_ALLOWED_ORIGINS environment variable.
_CORS_ALLOWED_ORIGINS_STR: str = os.getenv(
    "CORS_ALLOWED_ORIGINS",
    "http://localhost:5173,http://127.0.0.1:5173,http://localhost:3000,"
    "http://127.0.0.1:3000",
)
CORS_ALLOWED_ORIGINS: List[str] = [
    origin.strip()
    for origin in _CORS_ALLOWED_ORIGINS_STR.split(",")
    if origin.strip()
]

# --- Logging Configuration ---

LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO").upper()

# --- Authentication Configuration ---

JWT_SECRET_KEY: str = os.getenv("JWT_SECRET_KEY", "your-secret-key-change-in-production")
JWT_ALGORITHM: str = "HS256"
ACCESS_TOKEN_EXPIRE_MINUTES: int = int(
    os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", str(60 * 24 * 7))  # 7 days
)

# Email verification links stay valid for 24 hours
VERIFICATION_TOKEN_EXPIRY_HOURS: int = int(
    os.getenv("VERIFICATION_TOKEN_EXPIRY_HOURS", "24")
)

# Password reset links stay valid for 1 hour
PASSWORD_RESET_TOKEN_EXPIRY_MINUTES: int = int(
    os.getenv("PASSWORD_RESET_TOKEN_EXPIRY_MINUTES", "60")
)

MIN_PASSWORD_LENGTH: int = 6

# --- Join Code Configuration ---

JOIN_CODE_LENGTH: int = int(os.getenv("JOIN_CODE_LENGTH", "6"))
JOIN_CODE_EXPIRY_MINUTES: int = int(os.getenv("JOIN_CODE_EXPIRY_MINUTES", "10"))
JOIN_CODE_MAX_USAGE: int = int(os.getenv("JOIN_CODE_MAX_USAGE", "50"))

# Attempts made to find a code that does not collide with an active one
JOIN_CODE_MAX_ATTEMPTS: int = 20

DEFAULT_REJECTION_REASON: str = "Request rejected by teacher"

# --- Mail Configuration ---

# When disabled, outgoing mails are only logged (useful for local development)
MAIL_ENABLED: bool = os.getenv("MAIL_ENABLED", "false").lower() == "true"
MAIL_USERNAME: str = os.getenv("MAIL_USERNAME", "")
MAIL_PASSWORD: str = os.getenv("MAIL_PASSWORD", "")
MAIL_FROM: str = os.getenv("MAIL_FROM", "noreply@example.com")
MAIL_FROM_NAME: str = os.getenv("MAIL_FROM_NAME", "Quizzie")
MAIL_SERVER: Optional[str] = os.getenv("MAIL_SERVER", "smtp.gmail.com")
MAIL_PORT: int = int(os.getenv("MAIL_PORT", "587"))
MAIL_STARTTLS: bool = os.getenv("MAIL_STARTTLS", "true").lower() == "true"
MAIL_SSL_TLS: bool = os.getenv("MAIL_SSL_TLS", "false").lower() == "true"
