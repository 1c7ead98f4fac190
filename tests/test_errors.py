from fastapi.testclient import TestClient
from pydantic import BaseModel
from pymongo.errors import ServerSelectionTimeoutError

from app.core.exceptions import ConflictError, ExpiredError, ResourceNotFoundError
from app.main import app

client = TestClient(app)


class Item(BaseModel):
    name: str
    price: int


@app.post("/test-validation")
def create_item(item: Item):
    return item


@app.get("/test-custom-error")
def trigger_custom_error():
    raise ResourceNotFoundError(message="Item not found")


@app.get("/test-expired")
def trigger_expired():
    raise ExpiredError("Reward has expired")


@app.get("/test-conflict")
def trigger_conflict():
    raise ConflictError("Reward already claimed", details={"reward_id": "abc"})


@app.get("/test-database-down")
def trigger_database_down():
    raise ServerSelectionTimeoutError("No servers found yet")


def test_404_not_found():
    response = client.get("/non-existent-route")
    assert response.status_code == 404
    data = response.json()
    assert "error" in data
    assert "code" in data
    assert data["code"] == "HTTP_ERROR"


def test_validation_error_structure():
    response = client.post("/test-validation", json={"name": "foo", "price": "invalid"})
    assert response.status_code == 422
    data = response.json()
    assert data["code"] == "VALIDATION_ERROR"
    assert "details" in data
    assert len(data["details"]) > 0


def test_custom_exception():
    response = client.get("/test-custom-error")
    assert response.status_code == 404
    data = response.json()
    assert data["code"] == "NOT_FOUND"
    assert data["error"] == "Item not found"


def test_expired_maps_to_410():
    response = client.get("/test-expired")
    assert response.status_code == 410
    assert response.json()["code"] == "EXPIRED"


def test_conflict_keeps_details():
    response = client.get("/test-conflict")
    assert response.status_code == 409
    data = response.json()
    assert data["code"] == "CONFLICT"
    assert data["details"] == {"reward_id": "abc"}


def test_database_outage_maps_to_503():
    response = client.get("/test-database-down")
    assert response.status_code == 503
    data = response.json()
    assert data["code"] == "DATABASE_ERROR"
    assert "No servers" not in data["error"]


def test_request_id_is_echoed():
    response = client.get("/live", headers={"X-Request-ID": "req-42"})
    assert response.headers["X-Request-ID"] == "req-42"
    assert "X-Process-Time" in response.headers
