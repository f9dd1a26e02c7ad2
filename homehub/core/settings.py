import os
from pathlib import Path
from threading import RLock


APP_NAME = "homehub"
APP_VERSION = "0.2.0"
PROJECT_ROOT = Path(__file__).resolve().parents[2]
ENV_FILE_PATH = PROJECT_ROOT / ".env"


def load_local_env(env_path: Path) -> None:
    if not env_path.exists():
        return

    for raw in env_path.read_text(encoding="utf-8").splitlines():
        line = raw.strip()
        if not line or line.startswith("#") or "=" not in line:
            continue

        key, value = line.split("=", 1)
        key = key.strip()
        value = value.strip()
        if not key:
            continue

        if (value.startswith('"') and value.endswith('"')) or (value.startswith("'") and value.endswith("'")):
            value = value[1:-1]

        os.environ.setdefault(key, value)


load_local_env(ENV_FILE_PATH)


def env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def env_path(name: str, default: str) -> Path:
    raw = os.getenv(name, default)
    path = Path(raw)
    if path.is_absolute():
        return path
    return (Path.cwd() / path).resolve()


def env_str(name: str, default: str) -> str:
    raw = os.getenv(name)
    if raw is None:
        return default
    value = raw.strip()
    if not value:
        return default
    return value


def env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    normalized = raw.strip().lower()
    if normalized in {"1", "true", "yes", "y", "on"}:
        return True
    if normalized in {"0", "false", "no", "n", "off"}:
        return False
    return default


DATA_DIR = PROJECT_ROOT / "data"
HUB_HOST = env_str("HUB_HOST", "0.0.0.0")
HUB_PORT = env_int("HUB_PORT", 8080)
HUB_DB_PATH = env_path("HUB_DB_PATH", str(DATA_DIR / "homehub.db"))
HUB_LEGACY_ROOM_MAPPINGS_PATH = env_path("HUB_LEGACY_ROOM_MAPPINGS_PATH", str(DATA_DIR / "roomMappings.json"))
HUB_LOG_PATH = env_path("HUB_LOG_PATH", str(DATA_DIR / "logs" / "operations.jsonl"))
HUB_LOG_MAX_BYTES = env_int("HUB_LOG_MAX_BYTES", 5 * 1024 * 1024)
HUB_LOG_BACKUP_COUNT = max(1, env_int("HUB_LOG_BACKUP_COUNT", 10))
HUB_LOG_RETENTION_DAYS = max(1, env_int("HUB_LOG_RETENTION_DAYS", 14))
HUB_LOG_QUEUE_MAX = max(100, env_int("HUB_LOG_QUEUE_MAX", 5000))

# Sessions slide forward on every successful lookup.
HUB_SESSION_EXPIRY_SEC = max(1.0, env_float("HUB_SESSION_EXPIRY_SEC", 24 * 60 * 60))
HUB_SESSION_CLEANUP_INTERVAL_SEC = max(1.0, env_float("HUB_SESSION_CLEANUP_INTERVAL_SEC", 60 * 60))
HUB_SESSION_CLEANUP_ENABLED = env_bool("HUB_SESSION_CLEANUP_ENABLED", True)

HUB_HUE_TIMEOUT_SEC = env_float("HUB_HUE_TIMEOUT_SEC", 10.0)
HUB_HUE_DEVICE_TYPE = env_str("HUB_HUE_DEVICE_TYPE", "homehub#server")
HUB_DEMO_BRIDGE_IP = env_str("HUB_DEMO_BRIDGE_IP", "demo-bridge")
HUB_DEMO_USERNAME = env_str("HUB_DEMO_USERNAME", "demo-user")

storage_lock = RLock()
log_lock = RLock()
