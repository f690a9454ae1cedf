import logging

from .conftest import expo_token


def register(client, token, **extra):
    return client.post("/notifications/register", json={"token": token, **extra})


def test_root(client):
    response = client.get("/")

    assert response.status_code == 200
    assert response.json()["ok"] is True
    assert "X-Process-Time" in response.headers


def test_register_returns_201_then_200(client):
    first = register(client, expo_token("a"), deviceId="pixel", platform="android")
    second = register(client, expo_token("a"), deviceId="pixel")

    assert first.status_code == 201
    assert first.json() == {
        "ok": True,
        "token": expo_token("a"),
        "tokenType": "expo",
        "isNew": True,
        "displayName": "pixel",
    }
    assert second.status_code == 200
    assert second.json()["isNew"] is False


def test_register_accepts_device_token_field(client):
    response = client.post("/notifications/register", json={"deviceToken": "fcm-web-token"})

    assert response.status_code == 201
    assert response.json()["tokenType"] == "fcm"


def test_register_without_token(client):
    response = client.post("/notifications/register", json={"deviceId": "pixel"})

    assert response.status_code == 400
    assert response.json() == {"ok": False, "message": "Invalid push token"}


def test_devices_list_and_rename(client):
    register(client, expo_token("old"), deviceId="ipad")
    register(client, expo_token("new"), deviceId="ipad")

    devices = client.get("/notifications/devices").json()["data"]
    assert [device["token"] for device in devices] == [expo_token("new")]

    renamed = client.patch(f"/notifications/devices/{devices[0]['id']}", json={"displayName": "Living room"})
    assert renamed.status_code == 200
    assert renamed.json()["data"]["displayName"] == "Living room"

    unchanged = client.patch(f"/notifications/devices/{devices[0]['id']}", json={})
    assert unchanged.json()["data"]["displayName"] == "Living room"


def test_rename_unknown_device(client):
    response = client.patch("/notifications/devices/nope", json={"displayName": "x"})

    assert response.status_code == 404


def test_broadcast(client, expo_gateway, fcm_gateway):
    register(client, expo_token("a"))
    register(client, "fcm-token-1")

    response = client.post("/notifications/broadcast", json={"title": "Hi", "body": "All", "data": {"k": "v"}})

    body = response.json()
    assert response.status_code == 200
    assert body["ok"] is True
    assert body["totalTargets"] == 2
    assert body["delivered"] == 2
    assert expo_gateway.sent_tokens == [expo_token("a")]
    assert fcm_gateway.sent_tokens == ["fcm-token-1"]


def test_broadcast_without_recipients(client):
    body = client.post("/notifications/broadcast", json={"title": "Hi", "body": "All"}).json()

    assert body["totalTargets"] == 0
    assert body["message"] == "No recipients for this notification"


def test_broadcast_requires_title_and_body(client, expo_gateway):
    register(client, expo_token("a"))

    response = client.post("/notifications/broadcast", json={"title": "Hi"})

    assert response.status_code == 400
    assert expo_gateway.requests == []


def test_chat_message_skips_the_sender(client, expo_gateway):
    register(client, expo_token("me"), deviceId="phone", displayName="Ana")
    register(client, expo_token("you"), deviceId="tablet")

    response = client.post("/notifications/messages", json={"message": "Lunch?", "senderToken": expo_token("me")})

    assert response.status_code == 201
    message = response.json()["data"]
    assert message["senderDisplayName"] == "Ana"
    assert message["deliveredCount"] == 1
    assert message["delivery"]["deliveredTokens"] == [expo_token("you")]
    assert expo_gateway.sent_tokens == [expo_token("you")]
    pushed = expo_gateway.requests[0][0]
    assert pushed["data"]["chat"] == "true"
    assert pushed["data"]["chatMessageId"] == message["id"]

    history = client.get("/notifications/messages").json()["data"]
    assert [item["message"] for item in history] == ["Lunch?"]


def test_chat_history_is_oldest_first_and_limited(client, db):
    for minute, text in enumerate(("one", "two", "three")):
        db.docs[f"ChatMessages/m{minute}"] = {"message": text, "createdAt": f"2024-01-01T10:0{minute}:00.000Z"}

    history = client.get("/notifications/messages", params={"limit": 2}).json()["data"]

    assert [item["message"] for item in history] == ["two", "three"]


def test_chat_message_validation(client):
    assert client.post("/notifications/messages", json={"senderToken": "x"}).status_code == 400
    assert client.post("/notifications/messages", json={"message": "hi"}).status_code == 400


def test_requests_are_logged_with_their_router(client, caplog):
    caplog.set_level(logging.INFO, logger="app.middleware.logging")

    client.get("/categories")
    client.get("/")

    messages = [record.getMessage() for record in caplog.records]
    assert any("[Categories] GET /categories → 200" in message for message in messages)
    assert any("[-] GET / → 200" in message for message in messages)
