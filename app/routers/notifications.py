from fastapi import APIRouter, Depends, Query, status
from fastapi.responses import JSONResponse
from typing import Optional
from ..schemas.device import DeviceRegister, DeviceUpdate
from ..schemas.notification import BroadcastRequest, ChatMessageCreate
from ..dependencies import get_chat, get_dispatcher, get_registry
from ..services.chat_service import ChatService
from ..services.notification_service import NotificationDispatcher
from ..services.token_registry import UNSET, TokenRegistry
import logging

logger = logging.getLogger(__name__)
router = APIRouter()

@router.post("/register")
async def register_device(payload: DeviceRegister, registry: TokenRegistry = Depends(get_registry)):
    """Register (or refresh) a device push token"""
    result = await registry.upsert(
        token=payload.token or payload.deviceToken,
        device_id=payload.deviceId,
        user_id=payload.userId,
        platform=payload.platform,
        app_version=payload.appVersion,
        provider_hint=payload.pushProvider,
        display_name=payload.displayName,
    )
    return JSONResponse(
        status_code=status.HTTP_201_CREATED if result.is_new else status.HTTP_200_OK,
        content={
            "ok": True,
            "token": result.token,
            "tokenType": result.provider_kind,
            "isNew": result.is_new,
            "displayName": result.display_name,
        },
    )


@router.get("/devices")
async def list_devices(registry: TokenRegistry = Depends(get_registry)):
    """Active devices, one per device id, most recently seen first"""
    devices = await registry.list_devices()
    return {"ok": True, "data": [device.to_dict() for device in devices]}


@router.patch("/devices/{device_id}")
async def update_device(device_id: str, payload: DeviceUpdate, registry: TokenRegistry = Depends(get_registry)):
    """Rename a registered device"""
    display_name = payload.displayName if "displayName" in payload.model_fields_set else UNSET
    device = await registry.rename_device(device_id, display_name)
    logger.info(f"✏️ Device {device_id} renamed to {device.display_name!r}")
    return {"ok": True, "data": device.to_dict()}


@router.get("/messages")
async def list_messages(limit: Optional[int] = Query(default=None), chat: ChatService = Depends(get_chat)):
    """Chat history, oldest first"""
    return {"ok": True, "data": await chat.list_messages(limit)}


@router.post("/messages", status_code=status.HTTP_201_CREATED)
async def post_message(payload: ChatMessageCreate, chat: ChatService = Depends(get_chat)):
    """Store a chat message and push it to the recipients (or every active device)"""
    message = await chat.post_message(
        message=payload.message,
        sender_token=payload.senderToken,
        title=payload.title,
        recipient_tokens=payload.recipientTokens,
        data=payload.data,
        sound=payload.sound,
    )
    return {"ok": True, "data": message}


@router.post("/broadcast")
async def broadcast(payload: BroadcastRequest, dispatcher: NotificationDispatcher = Depends(get_dispatcher)):
    """Send a notification to explicit tokens or to every active device"""
    result = await dispatcher.deliver(
        title=payload.title,
        body=payload.body,
        data=payload.data,
        sound=payload.sound,
        explicit_tokens=payload.tokens,
        exclude_tokens=payload.excludeTokens,
        sender_token=payload.senderToken,
    )
    return result.to_dict()
