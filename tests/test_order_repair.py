from app.services.order_repair import OrderRepairEngine

SCOPE = "PendientesGenerales"


def seed(db, **docs):
    for doc_id, data in docs.items():
        db.docs[f"{SCOPE}/{doc_id}"] = data


async def test_consistent_orders_need_no_repair(db):
    seed(
        db,
        a={"order": 2, "createdAt": "2024-01-01T00:00:00.000Z"},
        b={"order": 0, "createdAt": "2024-01-02T00:00:00.000Z"},
        c={"order": 1, "createdAt": "2024-01-03T00:00:00.000Z"},
    )

    docs = await OrderRepairEngine(db).load_ordered(SCOPE)

    assert [doc.id for doc in docs] == ["b", "c", "a"]
    assert db.commits == 0


async def test_missing_orders_are_appended_by_creation_time(db):
    seed(
        db,
        a={"order": 0, "createdAt": "2024-01-01T00:00:00.000Z"},
        b={"order": 5, "createdAt": "2024-01-02T00:00:00.000Z"},
        c={"createdAt": "2024-01-04T00:00:00.000Z"},
        d={"createdAt": "2024-01-03T00:00:00.000Z"},
    )

    docs = await OrderRepairEngine(db).load_ordered(SCOPE)

    assert [(doc.id, doc.get("order")) for doc in docs] == [("a", 0), ("b", 5), ("d", 6), ("c", 7)]
    assert db.docs[f"{SCOPE}/d"]["order"] == 6
    assert db.docs[f"{SCOPE}/c"]["order"] == 7
    assert "updatedAt" in db.docs[f"{SCOPE}/c"]
    assert "updatedAt" not in db.docs[f"{SCOPE}/a"]
    assert db.commits == 1


async def test_duplicate_order_keeps_the_earliest_document(db):
    seed(
        db,
        a={"order": 0, "createdAt": "2024-01-01T00:00:00.000Z"},
        b={"order": 0, "createdAt": "2024-01-02T00:00:00.000Z"},
        c={"order": 1, "createdAt": "2024-01-03T00:00:00.000Z"},
    )

    docs = await OrderRepairEngine(db).load_ordered(SCOPE)

    assert [(doc.id, doc.get("order")) for doc in docs] == [("a", 0), ("c", 1), ("b", 2)]


async def test_non_numeric_orders_are_replaced(db):
    seed(
        db,
        a={"order": "first", "createdAt": "2024-01-01T00:00:00.000Z"},
        b={"order": None, "createdAt": "2024-01-02T00:00:00.000Z"},
    )

    docs = await OrderRepairEngine(db).load_ordered(SCOPE)

    assert [(doc.id, doc.get("order")) for doc in docs] == [("a", 0), ("b", 1)]


async def test_documents_without_creation_time_go_last(db):
    seed(
        db,
        z={},
        y={"createdAt": "2024-01-02T00:00:00.000Z"},
        x={},
    )

    docs = await OrderRepairEngine(db).load_ordered(SCOPE)

    assert [doc.id for doc in docs] == ["y", "x", "z"]


async def test_missing_index_falls_back_to_full_scan(db):
    seed(
        db,
        a={"order": 1, "createdAt": "2024-01-01T00:00:00.000Z"},
        b={"order": 0, "createdAt": "2024-01-02T00:00:00.000Z"},
    )
    db.index_errors.add(SCOPE)

    docs = await OrderRepairEngine(db).load_ordered(SCOPE)

    assert [doc.id for doc in docs] == ["b", "a"]
    assert db.commits == 0


async def test_empty_scope(db):
    assert await OrderRepairEngine(db).load_ordered(SCOPE) == []


async def test_repair_is_deterministic_and_settles(db):
    seed(
        db,
        c={"createdAt": "2024-01-01T00:00:00.000Z"},
        a={"createdAt": "2024-01-03T00:00:00.000Z"},
        b={"createdAt": "2024-01-02T00:00:00.000Z"},
    )
    engine = OrderRepairEngine(db)

    first = await engine.load_ordered(SCOPE)
    writes = db.writes
    second = await engine.load_ordered(SCOPE)

    assert [(doc.id, doc.get("order")) for doc in first] == [("c", 0), ("b", 1), ("a", 2)]
    assert [doc.id for doc in second] == ["c", "b", "a"]
    assert db.writes == writes


async def test_equal_creation_times_are_ordered_by_id(db):
    seed(
        db,
        b={"createdAt": "2024-01-01T00:00:00.000Z"},
        a={"createdAt": "2024-01-01T00:00:00.000Z"},
    )

    docs = await OrderRepairEngine(db).load_ordered(SCOPE)

    assert [(doc.id, doc.get("order")) for doc in docs] == [("a", 0), ("b", 1)]


async def test_numeric_string_orders_are_sorted_by_value(db):
    seed(
        db,
        a={"order": 5, "createdAt": "2024-01-01T00:00:00.000Z"},
        b={"order": "3", "createdAt": "2024-01-02T00:00:00.000Z"},
    )

    docs = await OrderRepairEngine(db).load_ordered(SCOPE)

    assert [(doc.id, doc.get("order")) for doc in docs] == [("b", 3), ("a", 5)]
    assert db.commits == 0
