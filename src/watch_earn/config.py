"""Configuration management for Watch & Earn."""

import os
from pathlib import Path
from dotenv import load_dotenv

load_dotenv()

def _env_bool(key: str, default: str) -> bool:
    return os.getenv(key, default).lower() == "true"

class Config:
    """Application configuration."""

    # Base paths
    BASE_DIR = Path(__file__).resolve().parent.parent.parent
    LOG_DIR = BASE_DIR / "logs"

    # Backend (PostgREST / Supabase style API)
    BACKEND_URL = os.getenv("BACKEND_URL", "http://localhost:54321")
    BACKEND_ANON_KEY = os.getenv("BACKEND_ANON_KEY", "")
    ACCESS_TOKEN = os.getenv("ACCESS_TOKEN", "")
    USER_ID = os.getenv("USER_ID", "")
    REQUEST_TIMEOUT = float(os.getenv("REQUEST_TIMEOUT", "10"))

    # Flask settings
    SECRET_KEY = os.getenv("SECRET_KEY", "dev-secret-key-change-in-production")
    FLASK_HOST = os.getenv("FLASK_HOST", "0.0.0.0")
    FLASK_PORT = int(os.getenv("FLASK_PORT", "8080"))
    DEBUG = os.getenv("DEBUG", "False").lower() == "true"

    # Watch timer and embed bridge
    TICK_INTERVAL = float(os.getenv("TICK_INTERVAL", "1"))
    STALL_POLL_INTERVAL = float(os.getenv("STALL_POLL_INTERVAL", "2"))
    STALL_EPSILON = float(os.getenv("STALL_EPSILON", "0.1"))
    STALL_WARNING_DELAY = float(os.getenv("STALL_WARNING_DELAY", "3"))
    LOAD_TIMEOUT = float(os.getenv("LOAD_TIMEOUT", "15"))

    # Queue
    QUEUE_LIMIT = int(os.getenv("QUEUE_LIMIT", "50"))
    QUEUE_LOW_WATER = int(os.getenv("QUEUE_LOW_WATER", "1"))
    QUEUE_REFRESH_INTERVAL = float(os.getenv("QUEUE_REFRESH_INTERVAL", "120"))
    HOLD_WINDOW_MINUTES = int(os.getenv("HOLD_WINDOW_MINUTES", "10"))

    # Auto-skip policy
    AUTO_SKIP = _env_bool("AUTO_SKIP", "true")
    AUTO_SKIP_UNAVAILABLE = _env_bool("AUTO_SKIP_UNAVAILABLE", "false")
    UNAVAILABLE_SKIP_DELAY = float(os.getenv("UNAVAILABLE_SKIP_DELAY", "5"))
    SKIP_STORM_LIMIT = int(os.getenv("SKIP_STORM_LIMIT", "3"))
    SKIP_STORM_WINDOW = float(os.getenv("SKIP_STORM_WINDOW", "30"))

    # Connectivity monitor
    NETWORK_CHECK_URL = os.getenv("NETWORK_CHECK_URL", "https://www.google.com/generate_204")
    NETWORK_CHECK_INTERVAL = float(os.getenv("NETWORK_CHECK_INTERVAL", "3"))
    NETWORK_CHECK_TIMEOUT = float(os.getenv("NETWORK_CHECK_TIMEOUT", "5"))

    # Worker threads for remote calls
    WORKER_THREADS = int(os.getenv("WORKER_THREADS", "4"))

    # Logging
    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
    LOG_FILE = LOG_DIR / "watch_earn.log"

    @classmethod
    def ensure_directories(cls):
        """Create necessary directories if they don't exist."""
        cls.LOG_DIR.mkdir(parents=True, exist_ok=True)

    @classmethod
    def update_env_value(cls, key: str, value: str):
        """Update a value in the .env file."""
        env_file = cls.BASE_DIR / ".env"

        # Read existing .env file
        lines = []
        if env_file.exists():
            with open(env_file, 'r') as f:
                lines = f.readlines()

        # Update or add the key
        key_found = False
        for i, line in enumerate(lines):
            if line.strip().startswith(f"{key}="):
                lines[i] = f"{key}={value}\n"
                key_found = True
                break

        if not key_found:
            lines.append(f"{key}={value}\n")

        with open(env_file, 'w') as f:
            f.writelines(lines)

        # bool("false") is truthy, so booleans are parsed by hand
        current = getattr(cls, key, None)
        if isinstance(current, bool):
            setattr(cls, key, str(value).lower() == "true")
        elif current is not None:
            setattr(cls, key, type(current)(value))
        else:
            setattr(cls, key, value)

config = Config()
