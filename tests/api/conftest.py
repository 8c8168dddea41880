import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker

from taskhub.config import config
from taskhub.dependencies import get_db
from taskhub.main import app
from taskhub.security_utils import create_access_token


def auth_headers_for(user):
    token = create_access_token({"sub": user.id})
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def api_client(engine, monkeypatch):
    monkeypatch.setattr(config, "SECRET_KEY", "test-secret-key")
    Session = sessionmaker(autocommit=False, autoflush=False, bind=engine)

    def override_get_db():
        db = Session()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    # No context manager: the startup hook would create tables on the configured database
    client = TestClient(app, follow_redirects=True)
    yield client
    app.dependency_overrides.clear()


@pytest.fixture
def gm_headers(api_client, gm):
    return auth_headers_for(gm)


@pytest.fixture
def officer_headers(api_client, officer):
    return auth_headers_for(officer)


@pytest.fixture
def basic_headers(api_client, basic_user):
    return auth_headers_for(basic_user)


@pytest.fixture
def created_task(api_client, gm_headers, officer):
    payload = {
        "title": "Report on parcel distribution",
        "description": "Visit the site and fill in the report",
        "assigned_to": officer.id,
        "priority": "urgent",
        "tags": ["food"],
        "form": {
            "title": "Distribution report",
            "fields": [
                {"id": "site", "type": "text", "label": "Site", "required": True},
                {"id": "families", "type": "number", "label": "Families", "required": True},
            ],
        },
    }
    response = api_client.post("/tasks/", json=payload, headers=gm_headers)
    assert response.status_code == 201
    return response.json()
