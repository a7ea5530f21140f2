import pytest
from fastapi.testclient import TestClient
from expense_tracker.main import app
from expense_tracker.db.memory import expense_repo

client = TestClient(app)

@pytest.fixture(autouse=True)
def clean_repo():
    expense_repo._storage.clear()
    yield
    expense_repo._storage.clear()

def test_list_starts_empty():
    response = client.get("/api/expenses")
    assert response.status_code == 200
    assert response.json() == {"expenses": []}

def test_create_then_list_and_detail():
    response = client.post("/api/expenses", json={"title": "Coffee", "amount": 4.5})
    assert response.status_code == 201
    created = response.json()["expense"]
    assert created["title"] == "Coffee"
    assert created["amount"] == 4.5
    assert created["fileUrl"] is None

    listed = client.get("/api/expenses").json()["expenses"]
    assert listed == [created]

    detail = client.get(f"/api/expenses/{created['id']}")
    assert detail.status_code == 200
    assert detail.json() == {"expense": created}

def test_create_strips_title_and_assigns_unique_ids():
    first = client.post("/api/expenses", json={"title": "  Lunch ", "amount": 12}).json()["expense"]
    second = client.post("/api/expenses", json={"title": "Lunch", "amount": 12}).json()["expense"]
    assert first["title"] == "Lunch"
    assert first["id"] != second["id"]

    ids = [e["id"] for e in client.get("/api/expenses").json()["expenses"]]
    assert len(ids) == len(set(ids)) == 2

@pytest.mark.parametrize("payload", [
    {"title": "", "amount": 5},
    {"title": "   ", "amount": 5},
    {"title": "Taxi", "amount": 0},
    {"title": "Taxi", "amount": -3.2},
    {"title": "Taxi"},
    {"amount": 5},
])
def test_create_rejects_invalid_payload(payload):
    response = client.post("/api/expenses", json=payload)
    assert response.status_code == 422
    assert client.get("/api/expenses").json() == {"expenses": []}

def test_list_keeps_insertion_order_after_delete():
    ids = [client.post("/api/expenses", json={"title": t, "amount": 1}).json()["expense"]["id"] for t in "abc"]

    response = client.delete(f"/api/expenses/{ids[1]}")
    assert response.status_code == 204

    titles = [e["title"] for e in client.get("/api/expenses").json()["expenses"]]
    assert titles == ["a", "c"]

def test_unknown_expense_returns_404():
    assert client.get("/api/expenses/999").status_code == 404
    assert client.delete("/api/expenses/999").status_code == 404
    response = client.patch("/api/expenses/999", json={"fileKey": "receipts/x/y.png"})
    assert response.status_code == 404
    assert response.json()["detail"] == "Expense not found"

def test_patch_rejects_key_without_uploaded_object():
    expense_id = client.post("/api/expenses", json={"title": "Hotel", "amount": 80}).json()["expense"]["id"]

    response = client.patch(f"/api/expenses/{expense_id}", json={"fileKey": "receipts/never/uploaded.pdf"})
    assert response.status_code == 400
    assert response.json()["detail"] == "Unknown file key"
    assert client.get(f"/api/expenses/{expense_id}").json()["expense"]["fileUrl"] is None

def test_patch_requires_file_key():
    expense_id = client.post("/api/expenses", json={"title": "Hotel", "amount": 80}).json()["expense"]["id"]
    assert client.patch(f"/api/expenses/{expense_id}", json={}).status_code == 422
