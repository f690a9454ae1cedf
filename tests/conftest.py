"""Shared fixtures: in-memory store and fake push gateways."""
import json
from types import SimpleNamespace

import httpx
import pytest
from fastapi.testclient import TestClient
from firebase_admin import exceptions as firebase_exceptions

from app.config import settings
from app.database import InMemoryDatabase
from app.dependencies import build_services
from app.main import create_app
from app.services.push_providers import ExpoPushClient, FcmPushClient

EXPO_ENDPOINT = "https://expo.test/--/api/v2/push/send"


def expo_token(name: str) -> str:
    return f"ExponentPushToken[{name}]"


class ExpoGateway:
    """Answers Expo batches with ok tickets unless a token is told to fail."""

    def __init__(self):
        self.requests: list[list[dict]] = []
        self.ticket_errors: dict[str, str] = {}
        self.status_code = 200
        self.failing_batches: set[int] = set()

    def handler(self, request: httpx.Request) -> httpx.Response:
        messages = json.loads(request.content)
        self.requests.append(messages)
        if self.status_code != 200 or len(self.requests) - 1 in self.failing_batches:
            status_code = self.status_code if self.status_code != 200 else 503
            return httpx.Response(status_code, json={"errors": [{"code": "INTERNAL_SERVER_ERROR"}]})
        tickets = []
        for message in messages:
            error = self.ticket_errors.get(message["to"])
            if error:
                tickets.append({"status": "error", "message": error, "details": {"error": error}})
            else:
                tickets.append({"status": "ok", "id": f"ticket-{len(tickets)}"})
        return httpx.Response(200, json={"data": tickets})

    @property
    def sent_tokens(self) -> list[str]:
        return [message["to"] for batch in self.requests for message in batch]


class FcmGateway:
    """Stands in for messaging.send_each_for_multicast."""

    def __init__(self):
        self.messages = []
        self.token_errors: dict[str, Exception] = {}
        self.batch_error = None
        self.failing_batches: set[int] = set()

    def send(self, message, app=None):
        self.messages.append(message)
        if self.batch_error is not None:
            raise self.batch_error
        if len(self.messages) - 1 in self.failing_batches:
            raise firebase_exceptions.UnavailableError("multicast failed")
        responses = [
            SimpleNamespace(success=token not in self.token_errors, exception=self.token_errors.get(token))
            for token in message.tokens
        ]
        return SimpleNamespace(responses=responses, success_count=sum(r.success for r in responses))

    @property
    def sent_tokens(self) -> list[str]:
        return [token for message in self.messages for token in message.tokens]


@pytest.fixture
def db():
    return InMemoryDatabase()


@pytest.fixture
def expo_gateway():
    return ExpoGateway()


@pytest.fixture
def fcm_gateway():
    return FcmGateway()


@pytest.fixture
def services(db, expo_gateway, fcm_gateway):
    expo = ExpoPushClient(EXPO_ENDPOINT, "test-access-token", 5, transport=httpx.MockTransport(expo_gateway.handler))
    fcm = FcmPushClient(send_multicast=fcm_gateway.send)
    return build_services(db, settings, expo=expo, fcm=fcm)


@pytest.fixture
def client(services):
    return TestClient(create_app(services))
