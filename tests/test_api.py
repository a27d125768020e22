import pytest
from fastapi.testclient import TestClient

from backend import main
from semcanvas import EditorSession, Graph


@pytest.fixture
def client(monkeypatch, store, scenario_graph: Graph) -> TestClient:
    monkeypatch.setattr(main, "session", EditorSession(graph=scenario_graph, store=store))
    return TestClient(main.app)


def test_health(client: TestClient) -> None:
    assert client.get("/api/health").json()["status"] == "ok"


def test_get_model(client: TestClient) -> None:
    state = client.get("/api/model").json()

    assert [n["id"] for n in state["model"]["nodes"]] == ["a", "b", "c"]
    assert state["can_undo"] is False


def test_add_variable_and_undo(client: TestClient) -> None:
    response = client.post("/api/nodes", json={"label": "F2", "type": "observed"})
    assert response.status_code == 200
    assert response.json()["node"]["type"] == "observed"

    assert client.post("/api/undo").json()["success"] is True
    assert len(client.get("/api/model").json()["model"]["nodes"]) == 3
    assert client.post("/api/undo").json()["success"] is False


def test_blank_label_rejected(client: TestClient) -> None:
    assert client.post("/api/nodes", json={"label": " "}).status_code == 400


def test_duplicate_link_rejected(client: TestClient) -> None:
    assert client.post("/api/links", json={"source": "a", "target": "b"}).status_code == 400
    response = client.post("/api/links", json={"from": "b", "to": "c", "type": "covariance"})
    assert response.status_code == 200
    assert len(response.json()["links"]) == 3


def test_delete_node_cascades(client: TestClient) -> None:
    assert client.delete("/api/nodes/a", params={"confirm": False}).status_code == 409
    assert client.delete("/api/nodes/a").json()["success"] is True

    model = client.get("/api/model").json()["model"]
    assert model["links"] == []
    assert client.delete("/api/nodes/a").status_code == 404


def test_delete_link(client: TestClient) -> None:
    assert client.delete("/api/links/5").status_code == 404
    assert client.delete("/api/links/0").json()["success"] is True
    assert len(client.get("/api/model").json()["model"]["links"]) == 1


def test_link_gesture_via_interaction_endpoints(client: TestClient) -> None:
    client.post("/api/interaction/mode", json={"mode": "link"})
    client.post("/api/interaction/link-type", json={"link_type": "covariance"})
    pending = client.post("/api/interaction/click-node", json={"node_id": "b"}).json()
    assert pending["interaction"]["pending_source"] == "b"

    client.post("/api/interaction/pointer", json={"x": 10, "y": 12})
    done = client.post("/api/interaction/click-node", json={"node_id": "c"}).json()

    assert done["changed"] is True
    assert done["interaction"]["pending_source"] is None


def test_select_and_delete_selected(client: TestClient) -> None:
    client.post("/api/interaction/click-link", json={"index": 1})
    assert client.post("/api/interaction/delete-selected", params={"confirm": False}).json()["changed"] is False
    assert client.post("/api/interaction/delete-selected").json()["changed"] is True


def test_drop_and_move(client: TestClient) -> None:
    dropped = client.post("/api/nodes/c/drop", json={"x": 200, "y": 100}).json()
    assert (dropped["node"]["x"], dropped["node"]["y"]) == (140, 75)

    moved = client.post("/api/nodes/c/move", json={"x": 1, "y": 2}).json()
    assert (moved["node"]["x"], moved["node"]["y"]) == (1, 2)
    assert client.post("/api/nodes/zz/move", json={"x": 1, "y": 2}).status_code == 404


def test_auto_layout(client: TestClient) -> None:
    model = client.post("/api/layout/auto").json()["model"]
    positions = {n["id"]: (n["x"], n["y"]) for n in model["nodes"]}

    assert positions["a"] == (100, 100)
    assert positions["b"][0] == 450
    assert positions["c"] == (100, 220)


def test_mermaid_and_validate(client: TestClient) -> None:
    text = client.get("/api/model/mermaid", params={"dark": True}).text
    assert text.startswith("graph LR")

    result = client.get("/api/model/validate").json()
    assert result["summary"]["valid"] is True


def test_snapshot_lifecycle(client: TestClient) -> None:
    model_id = client.post("/api/snapshots", json={"name": "base"}).json()["id"]
    client.post("/api/model/new")
    assert client.get("/api/model").json()["model"]["nodes"] == []

    listed = client.get("/api/snapshots").json()["snapshots"]
    assert [s["name"] for s in listed] == ["base"]

    assert client.post(f"/api/snapshots/{model_id}/load", params={"confirm": False}).status_code == 409
    loaded = client.post(f"/api/snapshots/{model_id}/load").json()
    assert len(loaded["model"]["nodes"]) == 3

    assert client.post("/api/snapshots/missing/load").status_code == 404
    assert client.delete(f"/api/snapshots/{model_id}").json()["success"] is True
    assert client.delete(f"/api/snapshots/{model_id}").status_code == 404


def test_replace_model_drops_dangling_links(client: TestClient) -> None:
    response = client.put("/api/model", json={
        "nodes": [{"id": "x", "label": "X", "type": "latent", "x": 0, "y": 0}],
        "links": [{"source": "x", "target": "y", "type": "directed"}],
    })

    assert response.json()["model"]["links"] == []
    assert client.post("/api/undo").json()["success"] is True


def test_new_model_declined(client: TestClient) -> None:
    assert client.post("/api/model/new", params={"confirm": False}).status_code == 409


def test_declined_delete_keeps_selection(client: TestClient) -> None:
    client.post("/api/interaction/click-link", json={"index": 1})

    assert client.delete("/api/nodes/a", params={"confirm": False}).status_code == 409
    assert client.delete("/api/links/0", params={"confirm": False}).status_code == 409

    interaction = client.get("/api/model").json()["interaction"]
    assert interaction["selected_link_index"] == 1
    assert interaction["selected_node_id"] is None
