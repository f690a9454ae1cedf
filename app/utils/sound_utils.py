"""
Utility functions for sound handling
"""
from typing import Optional


def resolve_sound(sound: Optional[str], default: str = "default") -> str:
    """
    Pick the sound identifier sent with a push message.

    Expo plays bundled sounds by file name (``notifications.wav``), and
    ``default`` maps to the platform's default notification sound.

    Examples:
        None -> "default"
        "  " -> "default"
        " notifications.wav " -> "notifications.wav"
    """
    if not isinstance(sound, str) or not sound.strip():
        return default
    return sound.strip()
