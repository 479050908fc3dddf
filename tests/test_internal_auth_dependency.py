# tests/test_internal_auth_dependency.py
from http import HTTPStatus

from app.api.dependencies import internal_auth as auth_module


class DummySettingsProd:
    APP_ENV = "prod"
    INTERNAL_API_KEY = "supersecret"


class DummySettingsProdNoKey:
    APP_ENV = "prod"
    INTERNAL_API_KEY = None


class DummySettingsLocalWithKey:
    APP_ENV = "local"
    INTERNAL_API_KEY = "localsecret"


ROLLOVER_URL = "/internal/run-monthly-rollover?run_date=2024-02-01"


def test_internal_endpoint_open_in_test_env_without_key(client):
    """
    APP_ENV=test with no INTERNAL_API_KEY configured => no auth enforced.
    """
    resp = client.post(ROLLOVER_URL)
    assert resp.status_code == HTTPStatus.OK


def test_internal_endpoint_401_when_key_missing_in_prod(monkeypatch, client):
    """
    In non-local env (APP_ENV='prod') with INTERNAL_API_KEY set, calling an
    /internal endpoint without the X-Internal-Api-Key header should return 401.
    """
    monkeypatch.setattr(auth_module, "get_settings", lambda: DummySettingsProd())

    resp = client.post(ROLLOVER_URL)
    assert resp.status_code == HTTPStatus.UNAUTHORIZED
    assert "invalid or missing" in resp.json()["detail"].lower()


def test_internal_endpoint_401_when_key_wrong_in_prod(monkeypatch, client):
    monkeypatch.setattr(auth_module, "get_settings", lambda: DummySettingsProd())

    resp = client.post(ROLLOVER_URL, headers={"X-Internal-Api-Key": "wrong-key"})
    assert resp.status_code == HTTPStatus.UNAUTHORIZED


def test_internal_endpoint_500_when_key_not_configured_in_prod(monkeypatch, client):
    monkeypatch.setattr(auth_module, "get_settings", lambda: DummySettingsProdNoKey())

    resp = client.post(ROLLOVER_URL, headers={"X-Internal-Api-Key": "anything"})
    assert resp.status_code == HTTPStatus.INTERNAL_SERVER_ERROR


def test_internal_endpoint_enforces_key_locally_when_configured(monkeypatch, client):
    monkeypatch.setattr(auth_module, "get_settings", lambda: DummySettingsLocalWithKey())

    assert client.post(ROLLOVER_URL).status_code == HTTPStatus.UNAUTHORIZED
    resp = client.post(ROLLOVER_URL, headers={"X-Internal-Api-Key": "localsecret"})
    assert resp.status_code == HTTPStatus.OK


def test_internal_endpoint_200_when_key_correct_in_prod(monkeypatch, client):
    """
    Correct key => request goes through (200).
    """
    monkeypatch.setattr(auth_module, "get_settings", lambda: DummySettingsProd())

    resp = client.post(ROLLOVER_URL, headers={"X-Internal-Api-Key": "supersecret"})
    assert resp.status_code == HTTPStatus.OK
    data = resp.json()
    assert data["run_date"] == "2024-02-01"
    assert (data["closed_year"], data["closed_month"]) == (2024, 1)
