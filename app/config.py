import os
from typing import Optional
from dotenv import load_dotenv

load_dotenv()


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    try:
        return int(raw) if raw else default
    except ValueError:
        return default


def _env_list(name: str) -> list[str]:
    return [item.strip() for item in (os.getenv(name) or "").split(",") if item.strip()]


class Settings:
    PROJECT_NAME: str = os.getenv("PROJECT_NAME") or "Pendientes API"
    LOG_LEVEL: str = (os.getenv("LOG_LEVEL") or "INFO").upper()
    CORS_ORIGINS: list[str] = _env_list("CORS_ORIGINS") or ["*"]

    # Firebase service account, either as discrete env vars or a JSON file path.
    # FB_PRIVATE_KEY usually arrives with escaped newlines.
    FB_PROJECT_ID: Optional[str] = os.getenv("FB_PROJECT_ID") or None
    FB_CLIENT_EMAIL: Optional[str] = os.getenv("FB_CLIENT_EMAIL") or None
    FB_PRIVATE_KEY: Optional[str] = (os.getenv("FB_PRIVATE_KEY") or "").replace("\\n", "\n") or None
    GOOGLE_APPLICATION_CREDENTIALS: Optional[str] = os.getenv("GOOGLE_APPLICATION_CREDENTIALS") or None

    # Run against the in-process store instead of Firestore (local dev, tests).
    USE_IN_MEMORY_STORE: bool = (os.getenv("USE_IN_MEMORY_STORE") or "").lower() in ("1", "true", "yes")

    CATEGORIES_COLLECTION: str = os.getenv("FS_COLLECTION") or "PendientesGenerales"
    TASKS_SUBCOLLECTION: str = os.getenv("FS_TASKS_SUBCOL") or "tareas"
    TASK_STATUSES: list[str] = [s.lower() for s in _env_list("FS_TASK_STATUSES")] or [
        "pendiente",
        "en_progreso",
        "detenida",
        "completada",
    ]
    NOTES_COLLECTION: str = os.getenv("FS_NOTES_COLLECTION") or "Notes"
    DEBTS_COLLECTION: str = os.getenv("FS_DEBTS_COLLECTION") or "Debts"
    PUSH_TOKENS_COLLECTION: str = os.getenv("FS_PUSH_TOKENS_COLLECTION") or "PushTokens"
    CHAT_MESSAGES_COLLECTION: str = os.getenv("FS_CHAT_MESSAGES_COLLECTION") or "ChatMessages"

    # Expo push gateway. Without an access token Expo may answer InvalidCredentials.
    EXPO_PUSH_ENDPOINT: str = os.getenv("EXPO_PUSH_ENDPOINT") or "https://exp.host/--/api/v2/push/send"
    EXPO_ACCESS_TOKEN: Optional[str] = (
        (os.getenv("EXPO_ACCESS_TOKEN") or os.getenv("EXPO_PUSH_ACCESS_TOKEN") or "").strip() or None
    )
    EXPO_MAX_BATCH: int = _env_int("EXPO_MAX_BATCH", 100)
    EXPO_TIMEOUT_SECONDS: int = _env_int("EXPO_TIMEOUT_SECONDS", 10)
    FCM_MAX_BATCH: int = _env_int("FCM_MAX_BATCH", 500)

    NOTIFICATION_SOUND: str = os.getenv("NOTIFICATION_SOUND") or "notifications.wav"


settings = Settings()
