"""Tests for the REST API.

Every test runs against a fresh in-memory SQLite database opened by the
application lifespan.
"""

from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from flowgraph.api.app import create_app


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture()
def client():
    with TestClient(create_app(db_path=":memory:")) as c:
        yield c


@pytest.fixture()
def project(client: TestClient) -> dict:
    resp = client.post("/projects", json={"title": "Demo", "project_id": "p1"})
    assert resp.status_code == 201
    return resp.json()


def _add_node(client: TestClient, **body) -> dict:
    resp = client.post("/projects/p1/nodes", json=body)
    assert resp.status_code == 201, resp.text
    return resp.json()["node"]


# ---------------------------------------------------------------------------
# Projects
# ---------------------------------------------------------------------------

class TestProjects:
    def test_create_and_list(self, client: TestClient, project: dict) -> None:
        assert project["title"] == "Demo"
        assert project["nodes"] == [] and project["edges"] == []
        listed = client.get("/projects").json()
        assert [p["project_id"] for p in listed] == ["p1"]

    def test_duplicate_id_conflicts(self, client: TestClient, project: dict) -> None:
        resp = client.post("/projects", json={"title": "Again", "project_id": "p1"})
        assert resp.status_code == 409

    def test_blank_title_rejected(self, client: TestClient) -> None:
        assert client.post("/projects", json={"title": "  "}).status_code == 400

    def test_missing_project(self, client: TestClient) -> None:
        resp = client.get("/projects/ghost")
        assert resp.status_code == 404
        assert resp.json() == {"detail": "Project ghost not found"}

    def test_update_and_settings(self, client: TestClient, project: dict) -> None:
        resp = client.patch("/projects/p1", json={"title": "Renamed"})
        assert resp.json()["title"] == "Renamed"
        client.patch("/projects/p1/settings", json={"grid": {"size": 10}})
        resp = client.patch("/projects/p1/settings", json={"grid": {"snap": True}})
        assert resp.json()["settings"] == {"grid": {"size": 10, "snap": True}}

    def test_export_import_clone(self, client: TestClient, project: dict) -> None:
        _add_node(client, type="text", title="A", node_id="a")
        flow = client.get("/projects/p1/export").json()
        flow["project_id"] = "p2"

        imported = client.post("/projects/import", json=flow)
        assert imported.status_code == 201
        assert [n["node_id"] for n in imported.json()["nodes"]] == ["a"]

        clone = client.post("/projects/p1/clone")
        assert clone.status_code == 201
        assert clone.json()["project_id"] == "p1_copy"
        assert clone.json()["title"] == "Copy of Demo"

    def test_delete(self, client: TestClient, project: dict) -> None:
        assert client.delete("/projects/p1").status_code == 204
        assert client.get("/projects/p1").status_code == 404
        assert client.delete("/projects/p1").status_code == 404


# ---------------------------------------------------------------------------
# Nodes and edges
# ---------------------------------------------------------------------------

class TestNodes:
    def test_create_with_position(self, client: TestClient, project: dict) -> None:
        resp = client.post(
            "/projects/p1/nodes",
            json={"type": "ai", "title": "Writer", "ai": {"model": "m"}, "position": {"x": 10.4, "y": 20.5}},
        )
        body = resp.json()
        node = body["node"]
        assert node["node_id"] == "n1_ai"
        assert node["ai"] == {"model": "m"}
        assert node["ui"]["bbox"] == {"x1": 10, "y1": 21, "x2": 250, "y2": 141}
        assert body["project_updated_at"] == client.get("/projects/p1").json()["updated_at"]

    def test_malformed_ui_is_repaired_on_create(self, client: TestClient, project: dict) -> None:
        node = _add_node(client, type="text", title="A", ui={"color": "red", "bbox": {"x1": 5, "x2": 1}})
        assert node["ui"]["color"] == "#6B7280"
        assert node["ui"]["bbox"] == {"x1": 5, "y1": 0, "x2": 245, "y2": 120}

    def test_malformed_ui_is_repaired_on_patch(self, client: TestClient, project: dict) -> None:
        _add_node(client, type="text", title="A", node_id="a", ui={"color": "#abc"})
        resp = client.patch(
            "/projects/p1/nodes/a", json={"ui": {"color": "not-a-colour", "bbox": {"x1": 300, "y2": "tall"}}}
        )
        assert resp.status_code == 200
        ui = resp.json()["ui"]
        assert ui["color"] == "#6B7280"
        assert ui["bbox"] == {"x1": 300, "y1": 0, "x2": 540, "y2": 120}

    def test_unknown_create_field(self, client: TestClient, project: dict) -> None:
        resp = client.post("/projects/p1/nodes", json={"type": "text", "title": "x", "bogus": 1})
        assert resp.status_code == 422

    def test_create_in_missing_project(self, client: TestClient) -> None:
        resp = client.post("/projects/ghost/nodes", json={"type": "text", "title": "x"})
        assert resp.status_code == 404

    def test_get_patch_delete(self, client: TestClient, project: dict) -> None:
        _add_node(client, type="text", title="A", node_id="a")

        assert client.get("/projects/p1/nodes/a").json()["title"] == "A"
        patched = client.patch("/projects/p1/nodes/a", json={"title": "B", "content": "hi"})
        assert patched.json()["title"] == "B"
        assert patched.json()["content"] == "hi"
        assert client.patch("/projects/p1/nodes/a", json={"bogus": 1}).status_code == 400

        assert client.delete("/projects/p1/nodes/a").status_code == 204
        assert client.get("/projects/p1/nodes/a").status_code == 404
        assert client.delete("/projects/p1/nodes/a").status_code == 404

    def test_clone_and_runs(self, client: TestClient, project: dict) -> None:
        _add_node(client, type="text", title="A", node_id="a")
        resp = client.post("/projects/p1/nodes/a/clone")
        assert resp.status_code == 201
        assert resp.json()["node_id"] == "a_clone_001"
        assert client.get("/projects/p1/nodes/a/runs").json() == []


class TestEdges:
    def test_create_duplicate_delete(self, client: TestClient, project: dict) -> None:
        _add_node(client, type="text", title="A", node_id="a")
        _add_node(client, type="text", title="B", node_id="b")

        created = client.post("/projects/p1/edges", json={"from": "a", "to": "b", "sourceHandle": "out"})
        body = created.json()
        assert body["status"] == "created"
        assert body["edge"]["edge_id"] == "a:out->b"
        assert body["notification"] is None

        dup = client.post("/projects/p1/edges", json={"from": "a", "to": "b", "sourceHandle": "out"}).json()
        assert dup["status"] == "duplicate"
        assert dup["notification"]["code"] == "duplicate_edge"
        assert dup["notification"]["severity"] == "warning"

        assert len(client.get("/projects/p1/edges").json()) == 1
        node_a = client.get("/projects/p1/nodes/a").json()
        assert node_a["connections"]["outgoing"] == [{"edge_id": "a:out->b", "to": "b", "routing": "out"}]

        removed = client.delete("/projects/p1/edges", params={"from": "a", "to": "b"}).json()
        assert removed["status"] == "deleted"
        again = client.delete("/projects/p1/edges", params={"from": "a", "to": "b"}).json()
        assert again["status"] == "missing"

    def test_unknown_endpoint(self, client: TestClient, project: dict) -> None:
        _add_node(client, type="text", title="A", node_id="a")
        resp = client.post("/projects/p1/edges", json={"from": "a", "to": "ghost"})
        assert resp.status_code == 404


# ---------------------------------------------------------------------------
# Transformer
# ---------------------------------------------------------------------------

class TestTransform:
    def test_split_preview_then_split(self, client: TestClient, project: dict) -> None:
        _add_node(client, type="text", title="Src", node_id="src", content="A---B")

        preview = client.post("/projects/p1/nodes/src/split/preview", json={})
        assert preview.status_code == 200
        assert [s["title"] for s in preview.json()["segments"]] == ["A", "B"]
        assert len(client.get("/projects/p1/nodes").json()) == 1

        split = client.post(
            "/projects/p1/nodes/src/split",
            json={"config": {"naming_mode": "manual"}, "manual_titles": [{"path": "0", "title": "First"}]},
        )
        assert split.status_code == 201
        body = split.json()
        assert [n["title"] for n in body["created_nodes"]] == ["First", "B"]
        assert body["edges"] == [{"from": "src", "to": "n1_text"}, {"from": "src", "to": "n2_text"}]
        assert body["preview"]["config"]["naming_mode"] == "manual"

    def test_split_empty_source(self, client: TestClient, project: dict) -> None:
        _add_node(client, type="text", title="Src", node_id="src")
        assert client.post("/projects/p1/nodes/src/split", json={}).status_code == 400

    def test_import_tree(self, client: TestClient, project: dict) -> None:
        _add_node(client, type="input", title="Anchor", node_id="root")
        resp = client.post(
            "/projects/p1/nodes/root/import-tree",
            json={"payload": '{"nodes": [{"type": "ai", "title": "R", "children": [{"title": "C"}]}]}'},
        )
        assert resp.status_code == 201
        body = resp.json()
        assert [n["node_id"] for n in body["created_nodes"]] == ["n1_ai", "n2_text"]
        assert body["project_updated_at"]

    def test_import_tree_coerces_generated_fields(self, client: TestClient, project: dict) -> None:
        _add_node(client, type="input", title="Anchor", node_id="root")
        resp = client.post(
            "/projects/p1/nodes/root/import-tree",
            json={"payload": {"nodes": [{"type": ["ai"], "title": "T", "content": {"k": 1}}]}},
        )
        assert resp.status_code == 201
        assert resp.json()["created_nodes"] == [{"node_id": "n1_text", "type": "text", "title": "T"}]
        assert client.get("/projects/p1/nodes/n1_text").json()["content"] == '{"k": 1}'

    def test_import_tree_malformed_node_is_a_client_error(self, client: TestClient, project: dict) -> None:
        _add_node(client, type="input", title="Anchor", node_id="root")
        resp = client.post(
            "/projects/p1/nodes/root/import-tree", json={"payload": [{"title": "T", "meta": "oops"}]}
        )
        assert resp.status_code == 400
        assert len(client.get("/projects/p1/nodes").json()) == 1

    def test_import_tree_bad_payload(self, client: TestClient, project: dict) -> None:
        _add_node(client, type="input", title="Anchor", node_id="root")
        resp = client.post("/projects/p1/nodes/root/import-tree", json={"payload": "not json"})
        assert resp.status_code == 400

    def test_single_node(self, client: TestClient, project: dict) -> None:
        _add_node(client, type="text", title="Src", node_id="src")
        resp = client.post("/projects/p1/nodes/src/single", json={"content": "## Idea\nmore"})
        assert resp.status_code == 201
        assert resp.json() == {"node_id": "n1_text", "type": "text", "title": "Idea"}
        assert client.post("/projects/p1/nodes/src/single", json={"node_type": "ai"}).status_code == 422
