import json
from pathlib import Path
from threading import Lock

from premium_engine.config import dev_mode

# Path to JSON files
DATA_PATH = Path(__file__).resolve().parent / "data"

RULES_FILE = "eligibility_rules.json"

# Module-level cache
_cached_rules = None

# Lock to make cache thread-safe
_cache_lock = Lock()


def load_json(file_name: str):
    """Load a JSON file from the data folder."""
    file_path = DATA_PATH / file_name
    with open(file_path, "r", encoding="utf-8") as f:
        return json.load(f)


def reset_cache():
    """Manually reset the rules cache."""
    global _cached_rules
    with _cache_lock:
        _cached_rules = None


def _load_rules():
    global _cached_rules
    _cached_rules = load_json(RULES_FILE)


# --- Public API ---
def get_rules() -> dict:
    with _cache_lock:
        if dev_mode() or _cached_rules is None:
            _load_rules()
        return _cached_rules


def get_dependent_age_rule(dependent_type: str) -> dict:
    return get_rules().get("dependent_age_rules", {}).get(dependent_type, {})


def get_pro_rata_basis_days() -> int:
    return int(get_rules().get("pro_rata", {}).get("basis_days", 365))
