from pydantic import BaseModel
from typing import Optional

class DeviceRegister(BaseModel):
    token: Optional[str] = None
    deviceToken: Optional[str] = None  # Fallback for Firebase Web SDK
    deviceId: Optional[str] = None
    userId: Optional[str] = None
    platform: Optional[str] = None
    appVersion: Optional[str] = None
    pushProvider: Optional[str] = None
    displayName: Optional[str] = None


class DeviceUpdate(BaseModel):
    displayName: Optional[str] = None
