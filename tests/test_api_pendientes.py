from app.config import settings

from .conftest import expo_token


def create_category(client, title, **extra):
    response = client.post("/categories", json={"title": title, **extra})
    assert response.status_code == 201
    return response.json()["data"]["id"]


def create_task(client, category_id, title, **extra):
    response = client.post(f"/categories/{category_id}/tasks", json={"title": title, **extra})
    assert response.status_code == 201
    return response.json()["data"]


# ---------------------------------------------------------------- categories


def test_category_crud(client):
    category_id = create_category(client, "Casa", description="Chores", order=3)

    listed = client.get("/categories").json()["data"]
    assert [(item["id"], item["title"], item["order"], item["tasksCount"]) for item in listed] == [
        (category_id, "Casa", 3, 0)
    ]

    assert client.put(f"/categories/{category_id}", json={"nombre": "Hogar"}).status_code == 200
    fetched = client.get(f"/categories/{category_id}").json()["data"]
    assert fetched["title"] == "Hogar"
    assert fetched["description"] == "Chores"
    assert fetched["tasks"] == []

    assert client.delete(f"/categories/{category_id}").status_code == 200
    assert client.get(f"/categories/{category_id}").status_code == 404


def test_category_requires_title(client):
    response = client.post("/categories", json={"description": "no title"})

    assert response.status_code == 400
    assert response.json()["ok"] is False


def test_update_category_without_changes(client):
    category_id = create_category(client, "Casa")

    assert client.put(f"/categories/{category_id}", json={}).status_code == 400
    assert client.put("/categories/missing", json={"title": "x"}).status_code == 404


def test_legacy_categories_get_orders_assigned(client, db):
    db.docs["PendientesGenerales/old"] = {"Nombre": "Legacy", "createdAt": "2023-01-01T00:00:00.000Z"}
    category_id = create_category(client, "Nueva", order=0)

    listed = client.get("/categories").json()["data"]

    assert [item["id"] for item in listed] == [category_id, "old"]
    assert listed[1]["title"] == "Legacy"
    assert db.docs["PendientesGenerales/old"]["order"] == 1


def test_reorder_categories(client):
    first = create_category(client, "Uno", order=0)
    second = create_category(client, "Dos", order=1)

    response = client.post(
        "/categories/reorder",
        json={"categories": [{"id": first, "order": 1}, {"categoryId": second, "position": "0"}]},
    )

    assert response.status_code == 200
    assert response.json()["count"] == 2
    assert [item["id"] for item in client.get("/categories").json()["data"]] == [second, first]


def test_reorder_categories_accepts_a_bare_list(client):
    first = create_category(client, "Uno", order=0)

    response = client.post("/categories/reorder", json=[{"cid": first, "order": 7}])

    assert response.status_code == 200
    assert client.get(f"/categories/{first}").json()["data"]["order"] == 7


def test_reorder_categories_rejects_bad_entries(client, db):
    first = create_category(client, "Uno", order=0)
    commits = db.commits

    duplicate = client.post("/categories/reorder", json=[{"id": first, "order": 1}, {"id": first, "order": 2}])
    not_numeric = client.post("/categories/reorder", json=[{"id": first, "order": "soon"}])
    missing_id = client.post("/categories/reorder", json=[{"order": 1}])
    empty = client.post("/categories/reorder", json={"categories": []})
    unknown = client.post("/categories/reorder", json=[{"id": first, "order": 1}, {"id": "ghost", "order": 2}])

    assert [r.status_code for r in (duplicate, not_numeric, missing_id, empty)] == [400, 400, 400, 400]
    assert unknown.status_code == 404
    assert "ghost" in unknown.json()["message"]
    assert db.commits == commits


def test_list_categories_with_tasks_and_counts(client):
    category_id = create_category(client, "Casa", order=0)
    create_task(client, category_id, "Barrer", order=1)
    create_task(client, category_id, "Lavar", order=0)

    with_tasks = client.get("/categories", params={"includeTasks": "true"}).json()["data"][0]
    with_counts = client.get("/categories", params={"includeTaskCounts": "true"}).json()["data"][0]

    assert [task["title"] for task in with_tasks["tasks"]] == ["Lavar", "Barrer"]
    assert with_tasks["tasksCount"] == 2
    assert with_counts["tasksCount"] == 2
    assert "tasks" not in with_counts


def test_delete_category_removes_its_tasks(client, db):
    category_id = create_category(client, "Casa")
    create_task(client, category_id, "Barrer")

    client.delete(f"/categories/{category_id}")

    assert not any(path.startswith(f"PendientesGenerales/{category_id}") for path in db.docs)


# --------------------------------------------------------------------- tasks


def test_task_lifecycle(client):
    category_id = create_category(client, "Casa")
    task = create_task(client, category_id, "Barrer", estatus="EN_PROGRESO", fecha="2024-06-01")

    assert task["status"] == "en_progreso"
    assert task["dueDate"] == "2024-06-01"

    listed = client.get(f"/categories/{category_id}/tasks").json()
    assert listed["count"] == 1
    assert listed["statusCatalog"] == settings.TASK_STATUSES

    patched = client.patch(f"/categories/{category_id}/tasks/{task['id']}", json={"status": "completada"})
    assert patched.status_code == 200
    assert patched.json()["data"]["status"] == "completada"
    assert patched.json()["data"]["title"] == "Barrer"

    assert client.delete(f"/categories/{category_id}/tasks/{task['id']}").status_code == 200
    assert client.get(f"/categories/{category_id}/tasks").json()["count"] == 0


def test_task_defaults_and_validation(client):
    category_id = create_category(client, "Casa")

    task = create_task(client, category_id, "Barrer")
    assert task["status"] == settings.TASK_STATUSES[0]
    assert task["order"] > 0

    assert client.post(f"/categories/{category_id}/tasks", json={"title": "x", "status": "lost"}).status_code == 400
    assert client.post(f"/categories/{category_id}/tasks", json={"status": "pendiente"}).status_code == 400
    assert client.post("/categories/missing/tasks", json={"title": "x"}).status_code == 404
    assert client.patch(f"/categories/{category_id}/tasks/{task['id']}", json={}).status_code == 400
    assert client.patch(f"/categories/{category_id}/tasks/missing", json={"title": "x"}).status_code == 404


def test_reorder_tasks(client):
    category_id = create_category(client, "Casa")
    first = create_task(client, category_id, "Uno", order=0)["id"]
    second = create_task(client, category_id, "Dos", order=1)["id"]

    response = client.post(
        f"/categories/{category_id}/tasks/reorder",
        json={"tasks": [{"taskId": first, "order": 5}, {"tid": second, "order": 4}]},
    )

    assert response.status_code == 200
    tasks = client.get(f"/categories/{category_id}/tasks").json()["data"]
    assert [task["id"] for task in tasks] == [second, first]


def test_task_changes_notify_devices(client, fcm_gateway):
    client.post("/notifications/register", json={"token": "fcm-token-1"})
    category_id = create_category(client, "Casa")

    task = create_task(client, category_id, "Barrer", description="La cocina")
    client.patch(f"/categories/{category_id}/tasks/{task['id']}", json={"status": "detenida"})

    created, updated = fcm_gateway.messages
    assert created.notification.title == "New task in Casa"
    assert created.data["entityType"] == "task"
    assert created.data["action"] == "created"
    assert created.data["categoryId"] == category_id
    assert updated.data["action"] == "updated"
    assert updated.data["status"] == "detenida"


def test_failed_notification_does_not_fail_the_write(client, fcm_gateway):
    client.post("/notifications/register", json={"token": "fcm-token-1"})
    fcm_gateway.batch_error = RuntimeError("socket closed")
    category_id = create_category(client, "Casa")

    response = client.post(f"/categories/{category_id}/tasks", json={"title": "Barrer"})

    assert response.status_code == 201
    assert client.get(f"/categories/{category_id}/tasks").json()["count"] == 1


# --------------------------------------------------------------------- notes


def test_notes(client, expo_gateway):
    client.post("/notifications/register", json={"token": expo_token("a")})
    plain = client.post("/notes", json={"title": "Compras", "content": "pan"}).json()["data"]
    apple = client.post("/notes", json={"title": "Manzana", "isManzana": "true"}).json()["data"]

    assert apple["type"] == "manzana"
    assert [note["id"] for note in client.get("/notes").json()["data"]] == [apple["id"], plain["id"]]
    assert expo_gateway.requests[0][0]["data"]["entityType"] == "note"

    updated = client.put(f"/notes/{plain['id']}", json={"content": "pan y leche"})
    assert updated.json()["data"]["content"] == "pan y leche"
    assert expo_gateway.requests[-1][0]["data"]["action"] == "updated"

    assert client.put(f"/notes/{plain['id']}", json={}).status_code == 400
    assert client.put(f"/notes/{plain['id']}", json={"type": "weird"}).status_code == 400
    assert client.delete(f"/notes/{plain['id']}").status_code == 200
    assert client.delete(f"/notes/{plain['id']}").status_code == 404


def test_empty_note_is_rejected(client):
    assert client.post("/notes", json={"title": " ", "content": ""}).status_code == 400


# --------------------------------------------------------------------- debts


def test_debts(client):
    client.post("/debts", json={"title": "Renta", "amount": 100, "date": "2024-02-01"})
    created = client.post("/debts", json={"title": "Pago", "monto": "-40.5", "type": "pago", "fecha": "2024-03-01"})

    assert created.status_code == 201
    debt = created.json()["data"]
    assert debt["amount"] == -40.5
    assert debt["type"] == "abono"
    assert debt["date"] == "2024-03-01T00:00:00.000Z"

    newest_first = client.get("/debts").json()["data"]
    by_amount = client.get("/debts", params={"order": "amount"}).json()["data"]

    assert [item["title"] for item in newest_first] == ["Pago", "Renta"]
    assert [item["title"] for item in by_amount] == ["Pago", "Renta"]


def test_debts_without_index_are_sorted_in_process(client, db):
    db.index_errors.add(settings.DEBTS_COLLECTION)
    client.post("/debts", json={"title": "Chica", "amount": 1, "date": "2024-01-01"})
    client.post("/debts", json={"title": "Grande", "amount": 99, "date": "2024-02-01"})

    response = client.get("/debts", params={"order": "-amount"})

    assert response.status_code == 200
    assert [item["title"] for item in response.json()["data"]] == ["Grande", "Chica"]


def test_debt_validation(client):
    assert client.post("/debts", json={"amount": 1}).status_code == 400
    assert client.post("/debts", json={"title": "x", "amount": "mucho"}).status_code == 400
    assert client.post("/debts", json={"title": "x"}).status_code == 400
