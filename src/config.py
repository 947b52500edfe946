"""Configuration module for the Q&A platform core.

This module provides centralized configuration management, including directory
paths, database settings, credential and invitation policies, API server
settings and logging defaults. All configuration values can be overridden via
environment variables.
"""

import os
from pathlib import Path
from typing import List

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

DATABASE_FILE_NAME = "qa_platform.db"
DATABASE_URL: str = os.getenv(
    "DATABASE_URL", f"sqlite:///{DATA_DIR / DATABASE_FILE_NAME}"
)

# Seconds a connection waits on a locked database before failing
DB_TIMEOUT_SECONDS: float = float(os.getenv("DB_TIMEOUT_SECONDS", "15"))

# Echo generated SQL (debugging only)
DB_ECHO: bool = os.getenv("DB_ECHO", "false").lower() == "true"

# --- Credential Configuration ---

# Bcrypt rounds for password hashing (higher = more secure but slower)
BCRYPT_ROUNDS: int = int(os.getenv("BCRYPT_ROUNDS", "12"))

USERNAME_MIN_LENGTH: int = int(os.getenv("USERNAME_MIN_LENGTH", "3"))
USERNAME_MAX_LENGTH: int = int(os.getenv("USERNAME_MAX_LENGTH", "16"))

# --- Invitation Configuration ---

# Invitation codes are short tokens handed out by hand, keep them short
INVITATION_CODE_LENGTH: int = int(os.getenv("INVITATION_CODE_LENGTH", "4"))
INVITATION_CODE_MAX_ATTEMPTS: int = int(
    os.getenv("INVITATION_CODE_MAX_ATTEMPTS", "50")
)
DEFAULT_INVITATION_TTL_DAYS: int = int(
    os.getenv("DEFAULT_INVITATION_TTL_DAYS", "7")
)

# --- Content Configuration ---

TAG_DELIMITER: str = os.getenv("TAG_DELIMITER", ",")
TITLE_MAX_LENGTH: int = int(os.getenv("TITLE_MAX_LENGTH", "255"))

# Message type used for feedback sent to reviewers about their reviews
REVIEW_FEEDBACK_MESSAGE_TYPE = "review-feedback"
DEFAULT_MESSAGE_TYPE = "question"

# --- API Server Configuration ---

API_HOST: str = os.getenv("API_HOST", "0.0.0.0")
API_PORT: int = int(os.getenv("API_PORT", "8000"))

# CORS allowed origins (comma-separated list)
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

# --- Authentication Configuration ---

JWT_SECRET_KEY: str = os.getenv("JWT_SECRET_KEY", "change-me-in-production")
JWT_ALGORITHM: str = os.getenv("JWT_ALGORITHM", "HS256")
ACCESS_TOKEN_EXPIRE_MINUTES: int = int(
    os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", str(60 * 24))
)

# --- Logging Configuration ---

LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO").upper()
LOG_FORMAT: str = os.getenv(
    "LOG_FORMAT", "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
