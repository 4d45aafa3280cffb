import sys
import os
from pathlib import Path

sys.path.append(str(Path(__file__).resolve().parents[1]))

os.environ.setdefault("database_url", "sqlite:///:memory:")
os.environ.setdefault("secret_key", "testsecret")

from fastapi.testclient import TestClient
from sqlmodel import SQLModel, Session, create_engine, select
from sqlalchemy.pool import StaticPool

from app.main import app
from app.api.endpoints.auth import get_current_user
from app.database import get_session
from app.models.requirement import Requirement
from app.models.requirement_item import RequirementItem
from app.models.user import User


def create_test_client():
    app.dependency_overrides.clear()
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    SQLModel.metadata.create_all(engine)

    def override_get_session():
        with Session(engine) as session:
            yield session

    app.dependency_overrides[get_session] = override_get_session
    client = TestClient(app)

    users = {
        "alice": User(id=1, username="alice", email="alice@example.com", display_name="Alice",
                      password_hash="hashed", roles="buyer"),
        "admin": User(id=2, username="root", email="root@example.com", display_name="Root",
                      password_hash="hashed", roles="administrator"),
        "bob": User(id=3, username="bob", email="bob@example.com", display_name="Bob",
                    password_hash="hashed", roles="buyer"),
    }
    with Session(engine) as session:
        for user in users.values():
            session.add(user)
        session.commit()
        for user in users.values():
            session.refresh(user)

    return client, engine, users


def act_as(user):
    app.dependency_overrides[get_current_user] = lambda: user


def requirement_payload(**overrides):
    payload = {
        "title": "Laptops for the new team",
        "priority": "high",
        "description": "Three developer laptops",
        "cost_center": "CC-100",
        "payment_method": "purchase_order",
        "items": [
            {"name": "Laptop", "quantity": 2, "unit_of_measure": "unit", "estimated_price": 10},
            {"name": "Dock", "quantity": 1, "unit_of_measure": "unit", "estimated_price": 5},
        ],
    }
    payload.update(overrides)
    return payload


def test_create_requirement_with_items_computes_total():
    client, engine, users = create_test_client()
    act_as(users["alice"])

    response = client.post("/requirements/", json=requirement_payload())
    assert response.status_code == 201
    data = response.json()
    assert data["status"] == "draft"
    assert data["created_by"] == 1
    assert data["created_by_name"] == "Alice"
    assert data["total_price"] == 25
    assert data["currency"] == "USD"
    assert len(data["items"]) == 2
    assert data["approvals"] == []
    assert data["submitted_at"] is None

    app.dependency_overrides.clear()


def test_create_requirement_validation():
    client, engine, users = create_test_client()
    act_as(users["alice"])

    missing_title = client.post("/requirements/", json={"priority": "high"})
    assert missing_title.status_code == 400

    bad_priority = client.post("/requirements/", json={"title": "X", "priority": "urgent"})
    assert bad_priority.status_code == 400

    bad_quantity = client.post(
        "/requirements/",
        json=requirement_payload(items=[{"name": "Pen", "quantity": 0, "unit_of_measure": "unit"}]),
    )
    assert bad_quantity.status_code == 400

    with Session(engine) as session:
        assert session.exec(select(Requirement)).all() == []

    app.dependency_overrides.clear()


def test_get_requirement_includes_items_and_approvals():
    client, engine, users = create_test_client()
    act_as(users["alice"])
    requirement_id = client.post("/requirements/", json=requirement_payload()).json()["id"]

    response = client.get(f"/requirements/{requirement_id}")
    assert response.status_code == 200
    data = response.json()
    assert [i["name"] for i in data["items"]] == ["Laptop", "Dock"]
    assert data["approvals"] == []

    assert client.get("/requirements/999").status_code == 404

    app.dependency_overrides.clear()


def test_list_requirements_filters_and_pagination():
    client, engine, users = create_test_client()
    act_as(users["alice"])
    for i in range(3):
        client.post("/requirements/", json=requirement_payload(title=f"Req {i}", priority="low"))
    act_as(users["bob"])
    client.post("/requirements/", json=requirement_payload(title="Bob's", priority="critical"))

    page = client.get("/requirements/?limit=2&offset=0").json()
    assert len(page["requirements"]) == 2
    assert page["pagination"] == {"total": 4, "limit": 2, "offset": 0, "has_more": True}
    # más recientes primero
    assert page["requirements"][0]["title"] == "Bob's"

    last = client.get("/requirements/?limit=2&offset=2").json()
    assert len(last["requirements"]) == 2
    assert last["pagination"]["has_more"] is False

    by_priority = client.get("/requirements/?priority=low").json()
    assert by_priority["pagination"]["total"] == 3

    by_creator = client.get("/requirements/?created_by=3").json()
    assert [r["title"] for r in by_creator["requirements"]] == ["Bob's"]

    assert client.get("/requirements/?status=archived").status_code == 400
    assert client.get("/requirements/?limit=0").status_code == 400

    app.dependency_overrides.clear()


def test_update_requirement_allow_and_deny():
    client, engine, users = create_test_client()
    act_as(users["alice"])
    requirement_id = client.post("/requirements/", json=requirement_payload()).json()["id"]

    resp = client.put(f"/requirements/{requirement_id}", json={"title": "Updated", "warranty": True})
    assert resp.status_code == 200
    assert resp.json()["title"] == "Updated"
    assert resp.json()["warranty"] is True
    assert resp.json()["updated_at"] is not None

    act_as(users["admin"])
    resp = client.put(f"/requirements/{requirement_id}", json={"priority": "critical"})
    assert resp.status_code == 200
    assert resp.json()["priority"] == "critical"

    act_as(users["bob"])
    resp = client.put(f"/requirements/{requirement_id}", json={"title": "Hijacked"})
    assert resp.status_code == 403

    with Session(engine) as session:
        assert session.get(Requirement, requirement_id).title == "Updated"

    app.dependency_overrides.clear()


def test_update_requirement_only_when_editable():
    client, engine, users = create_test_client()
    act_as(users["alice"])
    requirement_id = client.post("/requirements/", json=requirement_payload()).json()["id"]
    assert client.put(f"/requirements/{requirement_id}/submit").status_code == 200

    resp = client.put(f"/requirements/{requirement_id}", json={"title": "Too late"})
    assert resp.status_code == 400

    app.dependency_overrides.clear()


def test_delete_requirement_guards():
    client, engine, users = create_test_client()
    act_as(users["alice"])
    draft_id = client.post("/requirements/", json=requirement_payload()).json()["id"]
    submitted_id = client.post("/requirements/", json=requirement_payload()).json()["id"]
    client.put(f"/requirements/{submitted_id}/submit")

    act_as(users["bob"])
    assert client.delete(f"/requirements/{draft_id}").status_code == 403

    act_as(users["alice"])
    assert client.delete(f"/requirements/{submitted_id}").status_code == 400
    with Session(engine) as session:
        assert session.get(Requirement, submitted_id).status == "pending_approval"
        items = session.exec(
            select(RequirementItem).where(RequirementItem.requirement_id == submitted_id)
        ).all()
        assert len(items) == 2

    assert client.delete(f"/requirements/{draft_id}").status_code == 204
    assert client.get(f"/requirements/{draft_id}").status_code == 404
    with Session(engine) as session:
        items = session.exec(
            select(RequirementItem).where(RequirementItem.requirement_id == draft_id)
        ).all()
        assert items == []

    assert client.delete("/requirements/999").status_code == 404

    app.dependency_overrides.clear()


def test_admin_can_delete_any_draft():
    client, engine, users = create_test_client()
    act_as(users["alice"])
    requirement_id = client.post("/requirements/", json=requirement_payload()).json()["id"]

    act_as(users["admin"])
    assert client.delete(f"/requirements/{requirement_id}").status_code == 204

    app.dependency_overrides.clear()


def test_item_crud_recomputes_total():
    client, engine, users = create_test_client()
    act_as(users["alice"])
    requirement_id = client.post("/requirements/", json=requirement_payload(items=[])).json()["id"]
    assert client.get(f"/requirements/{requirement_id}").json()["total_price"] == 0

    created = client.post(
        f"/requirements/{requirement_id}/items",
        json={
            "name": "Monitor",
            "quantity": 3,
            "unit_of_measure": "unit",
            "estimated_price": 120,
            "currency": "EUR",
            "specifications": {"size": "27in"},
        },
    )
    assert created.status_code == 201
    item = created.json()
    assert item["specifications"] == {"size": "27in"}
    detail = client.get(f"/requirements/{requirement_id}").json()
    assert detail["total_price"] == 360
    assert detail["currency"] == "EUR"

    updated = client.put(f"/requirements/{requirement_id}/items/{item['id']}", json={"quantity": 1})
    assert updated.status_code == 200
    assert updated.json()["quantity"] == 1
    assert client.get(f"/requirements/{requirement_id}").json()["total_price"] == 120

    items = client.get(f"/requirements/{requirement_id}/items")
    assert items.status_code == 200
    assert len(items.json()) == 1

    assert client.delete(f"/requirements/{requirement_id}/items/{item['id']}").status_code == 204
    assert client.get(f"/requirements/{requirement_id}").json()["total_price"] == 0
    assert client.delete(f"/requirements/{requirement_id}/items/{item['id']}").status_code == 404

    app.dependency_overrides.clear()


def test_items_locked_outside_editable_states():
    client, engine, users = create_test_client()
    act_as(users["alice"])
    requirement_id = client.post("/requirements/", json=requirement_payload()).json()["id"]
    item_id = client.get(f"/requirements/{requirement_id}/items").json()[0]["id"]
    client.put(f"/requirements/{requirement_id}/submit")

    new_item = {"name": "Mouse", "quantity": 1, "unit_of_measure": "unit"}
    assert client.post(f"/requirements/{requirement_id}/items", json=new_item).status_code == 400
    assert client.put(
        f"/requirements/{requirement_id}/items/{item_id}", json={"quantity": 5}
    ).status_code == 400
    assert client.delete(f"/requirements/{requirement_id}/items/{item_id}").status_code == 400

    app.dependency_overrides.clear()


def test_items_forbidden_for_third_party():
    client, engine, users = create_test_client()
    act_as(users["alice"])
    requirement_id = client.post("/requirements/", json=requirement_payload()).json()["id"]

    act_as(users["bob"])
    new_item = {"name": "Mouse", "quantity": 1, "unit_of_measure": "unit"}
    assert client.post(f"/requirements/{requirement_id}/items", json=new_item).status_code == 403

    act_as(users["admin"])
    assert client.post(f"/requirements/{requirement_id}/items", json=new_item).status_code == 201

    app.dependency_overrides.clear()
