import pytest
from fastapi.testclient import TestClient

API_KEY = "test-key"
OTHER_KEY = "other-key"


@pytest.fixture
def app(tmp_path, monkeypatch):
    config_file = tmp_path / "config.toml"
    config_file.write_text(
        f"""
timezone = "UTC"

[database]
path = "{tmp_path / 'formwright.db'}"

[auth.api_keys]
{API_KEY} = "alice"
{OTHER_KEY} = "bob"

[rate_limit]
max_requests = 2
window_seconds = 3600
""",
        encoding="utf-8",
    )

    monkeypatch.setenv("CONFIG_FILE", str(config_file))

    from formwright.api import create_app

    return create_app()


@pytest.fixture
def client(app):
    with TestClient(app, headers={"X-API-Key": API_KEY}) as client:
        yield client


@pytest.fixture
def anonymous(app):
    with TestClient(app) as client:
        yield client


CONTACT_FIELDS = [
    {"id": "f-email", "type": "email", "label": "Email", "config": {"required": True}},
    {
        "id": "f-age",
        "type": "number",
        "label": "Age",
        "config": {"required": True, "min": 0, "max": 120},
    },
]


@pytest.fixture
def published_form(client):
    response = client.post("/api/v1/forms", json={"title": "Contact Us", "fields": CONTACT_FIELDS})
    assert response.status_code == 201
    form = response.json()

    response = client.patch(f"/api/v1/forms/{form['id']}/publish", json={"status": "published"})
    assert response.status_code == 200
    return response.json()
