"""
Dependency wiring for the FastAPI app.

Services are built once at startup (see ``app.main``) and stored on
``app.state``; these helpers hand them to the routers.
"""
from dataclasses import dataclass
from typing import Optional

from fastapi import Request

from .config import Settings, settings as default_settings
from .database import Database, FirestoreDatabase
from .services.chat_service import ChatService
from .services.entity_notifier import EntityNotifier
from .services.notification_service import NotificationDispatcher
from .services.order_repair import OrderRepairEngine
from .services.push_providers import ExpoPushClient, FcmPushClient
from .services.token_registry import TokenRegistry


@dataclass
class Services:
    db: Database
    registry: TokenRegistry
    expo: ExpoPushClient
    fcm: Optional[FcmPushClient]
    dispatcher: NotificationDispatcher
    notifier: EntityNotifier
    order_engine: OrderRepairEngine
    chat: ChatService

    async def close(self) -> None:
        await self.expo.close()
        if self.fcm is not None:
            await self.fcm.close()
        await self.db.close()


def build_services(
    db: Database,
    config: Settings = default_settings,
    expo: ExpoPushClient = None,
    fcm: FcmPushClient = None,
) -> Services:
    registry = TokenRegistry(db, config.PUSH_TOKENS_COLLECTION)
    expo = expo or ExpoPushClient(config.EXPO_PUSH_ENDPOINT, config.EXPO_ACCESS_TOKEN, config.EXPO_TIMEOUT_SECONDS)
    # FCM needs an initialized Firebase app; the in-memory store has none.
    if fcm is None and isinstance(db, FirestoreDatabase):
        fcm = FcmPushClient(app=db.app)
    dispatcher = NotificationDispatcher(registry, expo, fcm, config.EXPO_MAX_BATCH, config.FCM_MAX_BATCH)
    return Services(
        db=db,
        registry=registry,
        expo=expo,
        fcm=fcm,
        dispatcher=dispatcher,
        notifier=EntityNotifier(dispatcher, config.NOTIFICATION_SOUND),
        order_engine=OrderRepairEngine(db),
        chat=ChatService(db, registry, dispatcher, config.CHAT_MESSAGES_COLLECTION),
    )


def get_services(request: Request) -> Services:
    return request.app.state.services


def get_db(request: Request) -> Database:
    return get_services(request).db


def get_registry(request: Request) -> TokenRegistry:
    return get_services(request).registry


def get_dispatcher(request: Request) -> NotificationDispatcher:
    return get_services(request).dispatcher


def get_notifier(request: Request) -> EntityNotifier:
    return get_services(request).notifier


def get_order_engine(request: Request) -> OrderRepairEngine:
    return get_services(request).order_engine


def get_chat(request: Request) -> ChatService:
    return get_services(request).chat
