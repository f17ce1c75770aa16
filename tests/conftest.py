# tests/conftest.py
import pytest

import backend.app as app_module


@pytest.fixture
def app_env(tmp_path, monkeypatch):
    """The Flask module with local storage redirected into tmp_path."""
    monkeypatch.setattr(app_module, "DATA_DIR", tmp_path)
    monkeypatch.setattr(app_module, "READINGS_FILE", tmp_path / "readings.jsonl")
    monkeypatch.setattr(app_module, "BILLING_FILE", tmp_path / "billing.jsonl")
    monkeypatch.setattr(app_module, "USE_DYNAMODB", False)
    monkeypatch.setattr(app_module, "USE_SNS", False)
    monkeypatch.setattr(app_module, "sns_service", None)
    return app_module


@pytest.fixture
def client(app_env):
    app_env.app.config["TESTING"] = True
    with app_env.app.test_client() as client:
        yield client
