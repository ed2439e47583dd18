"""Tests for the HTTP API."""

from pathlib import Path

from fastapi.testclient import TestClient

from folder_search.catalog.index_config import IndexConfig


def build(client: TestClient) -> dict:
    response = client.post("/api/v1/index", params={"wait": "true"})
    assert response.status_code == 202
    return response.json()


class TestHealthEndpoints:
    """Tests for health endpoints."""

    def test_health(self, client: TestClient) -> None:
        """Test basic health check."""
        response = client.get("/api/v1/health")
        assert response.status_code == 200
        assert response.json()["status"] == "healthy"

    def test_ready(self, client: TestClient) -> None:
        """Test readiness reports the index component."""
        data = client.get("/api/v1/health/ready").json()
        assert data["status"] == "healthy"
        assert data["components"]["index"]["state"] == "idle"
        assert data["components"]["index"]["validity"] == "Not yet created"

    def test_live(self, client: TestClient) -> None:
        """Test liveness check."""
        assert client.get("/api/v1/health/live").json() == {"status": "alive"}

    def test_response_time_header(self, client: TestClient) -> None:
        """Test the performance middleware adds its header."""
        assert client.get("/api/v1/health/live").headers["X-Response-Time"].endswith("ms")


class TestIndexEndpoints:
    """Tests for index endpoints."""

    def test_build_and_status(self, client: TestClient) -> None:
        """Test a waited build completes and is reflected in the status."""
        data = build(client)
        assert data["status"] == "completed"
        assert data["validity_text"].startswith("Last updated ")

        status = client.get("/api/v1/index/status").json()
        assert status["state"] == "idle"
        assert status["validity"] == "updated"
        assert status["progress"] == 1.0
        assert [s["stage"] for s in status["stages"]] == ["select", "parse", "index"]

    def test_start_without_wait(self, client: TestClient) -> None:
        """Test a build can be started in the background."""
        response = client.post("/api/v1/index")
        assert response.status_code == 202
        assert response.json()["status"] == "started"

    def test_cancel(self, client: TestClient) -> None:
        """Test cancelling returns the session status."""
        response = client.post("/api/v1/index/cancel")
        assert response.status_code == 200
        assert response.json()["state"] == "idle"

    def test_clear(self, client: TestClient) -> None:
        """Test clearing marks the index never created."""
        build(client)
        data = client.delete("/api/v1/index").json()
        assert data["validity"] == "never_created"


class TestSearchEndpoint:
    """Tests for the search endpoint."""

    def test_search(self, client: TestClient, root: Path) -> None:
        """Test ranked results over the built index."""
        build(client)

        data = client.get("/api/v1/search", params={"q": "world"}).json()

        assert data["message"] == "2 results"
        assert data["total"] == 2
        files = sorted(r["file"] for r in data["results"])
        assert files == [str(root.resolve() / "a.txt"), str(root.resolve() / "b.txt")]
        assert "hashsum: " in data["results"][0]["details"]

    def test_search_limit(self, client: TestClient) -> None:
        """Test the result limit."""
        build(client)
        data = client.get("/api/v1/search", params={"q": "world", "limit": 1}).json()
        assert data["total"] == 1

    def test_search_parse_error(self, client: TestClient) -> None:
        """Test a malformed query is reported in the message, not as an error."""
        build(client)
        response = client.get("/api/v1/search", params={"q": "title:"})
        assert response.status_code == 200
        assert response.json()["message"].startswith("Parse error: ")

    def test_search_before_build(self, client: TestClient) -> None:
        """Test searching before the first build."""
        data = client.get("/api/v1/search", params={"q": "hello"}).json()
        assert data["message"] == "Index not yet created"

    def test_empty_query_rejected(self, client: TestClient) -> None:
        """Test request validation."""
        assert client.get("/api/v1/search", params={"q": ""}).status_code == 422


class TestConfigEndpoints:
    """Tests for configuration endpoints."""

    def test_get_config(self, client: TestClient) -> None:
        """Test options, legal values and validity are returned."""
        data = client.get("/api/v1/config").json()
        assert data["name"] == "default"
        assert data["configured"] is True
        assert data["options"]["text.analyzer"] == ["Standard", "English", "ASCII"]
        assert data["details"] == "[default]: FS / Analyzer: Standard / Scoring: BM25"

    def test_set_property_invalidates(self, client: TestClient) -> None:
        """Test changing an option after a build invalidates the index."""
        build(client)

        data = client.put("/api/v1/config/scoring.model", json={"value": "Weighted"}).json()

        assert data["properties"]["scoring.model"] == "Weighted"
        assert data["status"] == "Index invalidated"
        search = client.get("/api/v1/search", params={"q": "world"}).json()
        assert search["message"] == "Index invalidated"

        assert build(client)["status"] == "completed"
        assert client.get("/api/v1/search", params={"q": "world"}).json()["total"] == 2

    def test_set_unknown_value_unconfigures(self, client: TestClient) -> None:
        """Test an unknown value leaves the session unconfigured."""
        data = client.put("/api/v1/config/index.backend", json={"value": "Cloud"}).json()
        assert data["configured"] is False

        response = client.post("/api/v1/index")
        assert response.status_code == 409
        assert response.json()["error"] == "NotConfiguredError"

    def test_set_unknown_property(self, client: TestClient) -> None:
        """Test unknown property names are a bad request."""
        response = client.put("/api/v1/config/last.updated", json={"value": "0"})
        assert response.status_code == 400
        assert response.json()["error"] == "UnknownPropertyError"

    def test_catalog(self, client: TestClient, root: Path) -> None:
        """Test listing and deleting configurations."""
        IndexConfig(root.resolve() / ".folder_search", "other")

        assert client.get("/api/v1/config/catalog").json() == {
            "current": "default",
            "configs": ["default", "other"],
        }
        assert client.delete("/api/v1/config/catalog/default").status_code == 409
        assert client.delete("/api/v1/config/catalog/other").status_code == 204
        assert client.delete("/api/v1/config/catalog/other").status_code == 404


class TestMessageEndpoints:
    """Tests for notification endpoints."""

    def test_messages_after_build(self, client: TestClient) -> None:
        """Test build notices are exposed and can be cleared."""
        build(client)

        messages = client.get("/api/v1/messages").json()
        assert messages[-1]["summary"] == "Index updated"
        assert client.get("/api/v1/messages", params={"min_level": "ERROR"}).json() == []

        assert client.delete("/api/v1/messages").status_code == 204
        assert client.get("/api/v1/messages").json() == []
