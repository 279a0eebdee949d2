"""Test the assembled application: startup load, health, and persistence across restarts."""

from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from highlighter.config import Settings
from highlighter.main import create_app


@pytest.fixture
def config(tmp_path: Path) -> Settings:
    return Settings(
        database_url=f"sqlite+aiosqlite:///{tmp_path / 'highlighter.db'}",
        legacy_store_path=tmp_path / "legacy_store.json",
        fallback_store_path=tmp_path / "legacy_store.json",
        nominatim_url="http://127.0.0.1:9",
        save_debounce=0,
    )


@pytest.mark.unit
class TestApp:
    def test_health(self, config):
        with TestClient(create_app(config)) as client:
            data = client.get("/health").json()
        assert data["status"] == "operational"

    def test_first_boot_loads_bundled_dataset(self, config):
        with TestClient(create_app(config)) as client:
            layers = client.get("/api/layers").json()
            groups = client.get("/api/groups").json()
        assert [layer["name"] for layer in layers] == ["Landmarks", "Study Area"]
        assert groups["orphans"] == []

    def test_edits_survive_restart(self, config):
        with TestClient(create_app(config)) as client:
            client.post("/api/layers", json={"name": "Rivers", "path": "Nature"})
        with TestClient(create_app(config)) as client:
            names = [layer["name"] for layer in client.get("/api/layers").json()]
            groups = client.get("/api/groups").json()["groups"]
        assert names == ["Landmarks", "Study Area", "Rivers"]
        assert "Nature" in [g["name"] for g in groups[0]["subgroups"]]

    def test_legacy_store_migrated(self, config):
        config.legacy_store_path.write_text('{"layers": "[{\\"id\\": 9, \\"name\\": \\"Old\\"}]"}')
        with TestClient(create_app(config)) as client:
            names = [layer["name"] for layer in client.get("/api/layers").json()]
        assert names == ["Old"]
        assert not Path(config.legacy_store_path).read_text().count("Old")
