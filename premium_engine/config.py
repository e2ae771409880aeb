from dotenv import load_dotenv
import os

# Load .env into environment variables
load_dotenv()

def _flag(name: str, default: str = "0") -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")


def get_valid_api_keys() -> set[str]:
    keys = os.getenv("PREMIUM_API_KEYS", "")
    return {k.strip() for k in keys.split(",") if k.strip()}


def get_database_url() -> str:
    return os.getenv("DATABASE_URL", "sqlite:///premium_engine.db")


def sql_echo_enabled() -> bool:
    return _flag("SQL_ECHO")


def allow_unverified_providers() -> bool:
    # when set, unapproved institutions/personnel are flagged for higher approval instead of rejected
    return _flag("ALLOW_UNVERIFIED_PROVIDERS")


def get_log_level() -> str:
    return os.getenv("LOG_LEVEL", "INFO").upper()


def dev_mode() -> bool:
    return os.getenv("DEV_MODE") == "1"
