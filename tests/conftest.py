"""
Pytest configuration and fixtures for reconciliation tests.
"""

import json
import os
from pathlib import Path

import pytest
from hypothesis import HealthCheck, settings

from datarecon.scanner import InMemoryRecordSource
from datarecon.staging import InMemoryStagingStore, SqliteStagingStore


# Cold-start strategy warm-up can trip the input-generation timing check.
settings.register_profile("default", suppress_health_check=[HealthCheck.too_slow])
settings.load_profile("default")


def pytest_configure(config: pytest.Config) -> None:
    """Configure pytest with custom markers."""
    config.addinivalue_line("markers", "slow: mark test as slow running")
    config.addinivalue_line("markers", "property: hypothesis property-based test")


@pytest.fixture(scope="session")
def project_root() -> Path:
    """Get project root directory."""
    return Path(__file__).parent.parent


@pytest.fixture(autouse=True)
def set_test_env_vars(monkeypatch: pytest.MonkeyPatch) -> None:
    """Clear DATARECON_* settings and provide dummy database credentials."""
    for key in list(os.environ):
        if key.startswith("DATARECON_"):
            monkeypatch.delenv(key, raising=False)

    defaults = {
        "SQLSERVER_HOST": "localhost",
        "SQLSERVER_DATABASE": "warehouse_source",
        "SQLSERVER_USER": "sa",
        "SQLSERVER_PASSWORD": "YourStrong!Passw0rd",
        "POSTGRES_HOST": "localhost",
        "POSTGRES_PORT": "5432",
        "POSTGRES_DB": "warehouse_target",
        "POSTGRES_USER": "postgres",
        "POSTGRES_PASSWORD": "postgres_secure_password",
        "VAULT_ADDR": "http://localhost:8200",
        "VAULT_TOKEN": "dev-root-token",
    }
    for key, value in defaults.items():
        if key not in os.environ:
            monkeypatch.setenv(key, value)


@pytest.fixture(params=["memory", "sqlite"])
def staging_store(request, tmp_path):
    """Each staging backend, freshly reset."""
    if request.param == "memory":
        store = InMemoryStagingStore()
    else:
        store = SqliteStagingStore(tmp_path / "staging.db")
    store.reset("test-run")
    yield store
    store.close()


@pytest.fixture
def make_source():
    """Build an InMemoryRecordSource from {id: fields} pairs."""
    def _make(records: dict, id_field: str = "id") -> InMemoryRecordSource:
        return InMemoryRecordSource(
            [{id_field: record_id, **fields} for record_id, fields in records.items()],
            id_field=id_field,
        )
    return _make


@pytest.fixture
def write_jsonl(tmp_path):
    """Write records to a .jsonl file and return its path."""
    def _write(records: list, name: str = "records.jsonl") -> Path:
        path = tmp_path / name
        with open(path, "w", encoding="utf-8") as f:
            for record in records:
                f.write(json.dumps(record) + "\n")
        return path
    return _write
