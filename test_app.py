import warnings

import pytest
from fastapi.testclient import TestClient

import app
from dotstore import DotStore, StoreConfig
from dotstore.adapters.localstorage import LocalStorageAdapter

# Starlette and httpx deprecations are not under test here.
warnings.filterwarnings("ignore", category=DeprecationWarning)


@pytest.fixture
def service(tmp_path):
    """A StoreService writing to a temporary folder."""
    return app.StoreService(StoreConfig(folder=tmp_path, file_name="api"))


@pytest.fixture
def client(service):
    """FastAPI TestClient wired to the temporary store service."""
    app.app.dependency_overrides[app.get_store_service] = lambda: service
    yield TestClient(app.app)
    app.app.dependency_overrides.clear()


# ---------- API tests ----------

def test_root_and_info(client):
    assert "dotstore" in client.get("/").json()["message"]

    resp = client.get("/info")
    assert resp.status_code == 200
    assert resp.json() == {
        "adapter": "jsondb",
        "transactions": False,
        "sessions": False,
        "language": "en",
    }


def test_set_get_delete_item(client, tmp_path):
    resp = client.put("/item", json={"key": "user.name", "value": "Ada"})
    assert resp.status_code == 200
    assert resp.json() == {"key": "user.name", "value": "Ada"}
    assert (tmp_path / "api.json").exists()

    resp = client.get("/item", params={"key": "user"})
    assert resp.status_code == 200
    assert resp.json()["value"] == {"name": "Ada"}

    resp = client.delete("/item", params={"key": "user.name"})
    assert resp.status_code == 200
    assert resp.json() == {"message": "Deleted", "key": "user.name"}

    assert client.get("/item", params={"key": "user.name"}).status_code == 404
    assert client.delete("/item", params={"key": "user.name"}).status_code == 404


def test_stored_null_is_found(client):
    client.put("/item", json={"key": "nothing", "value": None})
    resp = client.get("/item", params={"key": "nothing"})
    assert resp.status_code == 200
    assert resp.json()["value"] is None


def test_numeric_and_list_operations(client):
    assert client.post("/item/add", json={"key": "stats.wins", "amount": 3}).json()["value"] == 3
    assert client.post("/item/subtract", json={"key": "stats.wins", "amount": 1}).json()["value"] == 2

    assert client.post("/item/push", json={"key": "tags", "element": "a"}).json()["value"] == ["a"]
    assert client.post("/item/push", json={"key": "tags", "element": "b"}).json()["value"] == ["a", "b"]
    assert client.post("/item/unpush", json={"key": "tags", "element": "a"}).json()["value"] == ["b"]


def test_priority_endpoints(client):
    client.put("/item", json={"key": "queue", "value": [1, 2, 3]})

    resp = client.put("/item/priority", json={"key": "queue", "value": 99, "index": 2})
    assert resp.status_code == 200
    assert resp.json()["value"] == [1, 99, 3]

    resp = client.request("DELETE", "/item/priority", json={"key": "queue", "index": 1})
    assert resp.status_code == 200
    assert resp.json()["value"] == [99, 3]

    resp = client.request("DELETE", "/item/priority", json={"key": "queue", "index": 5})
    assert resp.status_code == 404


def test_all_find_and_delete_all(client):
    for key, age in (("u1", 15), ("u2", 20), ("u3", 30)):
        client.put("/item", json={"key": key, "value": {"age": age}})

    assert client.get("/all").json() == {"u1": {"age": 15}, "u2": {"age": 20}, "u3": {"age": 30}}

    resp = client.post("/find", json={"query": {"age": {"$gte": 18}}, "sort": {"age": -1}, "limit": 1})
    assert resp.status_code == 200
    assert resp.json() == {"results": [{"age": 30}]}

    resp = client.delete("/all")
    assert resp.json() == {"message": "Deleted all", "deleted": True}
    assert client.get("/all").json() == {}


def test_invalid_query_maps_to_400(client):
    resp = client.post("/find", json={"query": {"age": {"$regex": "x"}}})
    assert resp.status_code == 400

    resp = client.post("/find", json={"query": {}, "sort": {"a": 1, "b": 1}})
    assert resp.status_code == 400


def test_request_validation_errors(client):
    assert client.put("/item", json={"key": "", "value": 1}).status_code == 422
    assert client.post("/item/add", json={"key": "a", "amount": "lots"}).status_code == 422
    assert client.put("/item/priority", json={"key": "a", "value": 1, "index": 0}).status_code == 422


class _UnsupportedService(app.StoreService):
    async def set_item(self, key, value):
        with app._http_errors():
            await self.store.start_transaction()


def test_unsupported_operation_maps_to_501(tmp_path):
    service = _UnsupportedService(StoreConfig(folder=tmp_path))
    app.app.dependency_overrides[app.get_store_service] = lambda: service
    try:
        resp = TestClient(app.app).put("/item", json={"key": "a", "value": 1})
    finally:
        app.app.dependency_overrides.clear()
    assert resp.status_code == 501
    assert "jsondb" in resp.json()["detail"]


class _ReadOnlyStorage(dict):
    def __setitem__(self, key, value):
        raise OSError("quota exceeded")


def test_storage_failure_maps_to_500(tmp_path):
    service = app.StoreService(StoreConfig(folder=tmp_path))
    service._store = DotStore(backend=LocalStorageAdapter(_ReadOnlyStorage()))
    app.app.dependency_overrides[app.get_store_service] = lambda: service
    try:
        resp = TestClient(app.app).put("/item", json={"key": "a", "value": 1})
    finally:
        app.app.dependency_overrides.clear()
    assert resp.status_code == 500
    assert resp.json()["detail"]
