# coding: utf-8

import pytest
from fastapi import Depends, FastAPI, Request
from fastapi.testclient import TestClient

from space_together.core.dependencies import get_tenant_db
from space_together.core.security import TokenCodec

from conftest import school_claims


def _state(request: Request):
    principal = request.state.principal
    school = request.state.school
    return {
        "principal": principal.id if principal else None,
        "school": school.id if school else None,
        "tenant": request.state.tenant_name,
        "has_tenant_db": request.state.tenant_db is not None,
    }


@pytest.fixture
def probe_client(app: FastAPI) -> TestClient:
    async def probe(request: Request):
        return _state(request)

    async def tenant_probe(request: Request, tenant_db=Depends(get_tenant_db)):
        return _state(request)

    app.add_api_route("/probe", probe)
    app.add_api_route("/probe/tenant", tenant_probe)
    app.add_api_route("/events/probe", probe)
    return TestClient(app, base_url="http://localhost")


def test_anonymous_request_is_forwarded(probe_client: TestClient):
    response = probe_client.get("/probe")

    assert response.status_code == 200
    assert response.json() == {
        "principal": None,
        "school": None,
        "tenant": None,
        "has_tenant_db": False,
    }


@pytest.mark.parametrize("prefix", ["Bearer ", ""])
def test_user_token_attaches_principal(probe_client: TestClient, user_token: str, prefix: str):
    response = probe_client.get("/probe", headers={"Authorization": f"{prefix}{user_token}"})

    assert response.json()["principal"] == "650000000000000000000001"


def test_invalid_user_token_is_ignored(probe_client: TestClient):
    response = probe_client.get("/probe", headers={"Authorization": "Bearer a.b.c"})

    assert response.status_code == 200
    assert response.json()["principal"] is None


def test_school_token_attaches_identity_and_tenant(probe_client: TestClient, school_token: str):
    response = probe_client.get("/probe", headers={"School-Token": school_token})

    assert response.json()["school"] == "s1"
    assert response.json()["tenant"] == "school_s1"
    assert response.json()["has_tenant_db"] is True


def test_user_token_is_not_a_school_token(probe_client: TestClient, user_token: str):
    response = probe_client.get("/probe", headers={"School-Token": user_token})

    assert response.json()["school"] is None
    assert response.json()["tenant"] is None


def test_school_id_header_selects_tenant(probe_client: TestClient):
    response = probe_client.get("/probe", headers={"X-School-ID": "s2"})

    assert response.json()["tenant"] == "school_s2"


def test_subdomain_selects_tenant(probe_client: TestClient):
    response = probe_client.get("http://green-hill.example.org/probe")

    assert response.json()["tenant"] == "school_green-hill"


def test_events_paths_skip_tenant_binding(probe_client: TestClient):
    response = probe_client.get("/events/probe", headers={"X-School-ID": "s2"})

    assert response.json()["tenant"] is None
    assert response.json()["has_tenant_db"] is False


def test_tenant_dependency_requires_school_context(probe_client: TestClient):
    response = probe_client.get("/probe/tenant")

    assert response.status_code == 400
    assert response.json() == {"message": "School context required"}


def test_request_id_is_generated_or_echoed(probe_client: TestClient):
    assert probe_client.get("/probe").headers.get("X-Request-ID")

    response = probe_client.get("/probe", headers={"X-Request-ID": "req-123"})
    assert response.headers["X-Request-ID"] == "req-123"


def test_school_me_requires_school_token(client: TestClient):
    response = client.get("/school/me")

    assert response.status_code == 401
    assert response.json() == {"message": "Invalid or missing school token 😣"}


def test_school_me_returns_identity(client: TestClient, school_token: str):
    response = client.get("/school/me", headers={"School-Token": school_token})

    assert response.status_code == 200
    assert response.json()["database_name"] == "school_s1"


def test_school_token_must_match_resolved_tenant(client: TestClient, codec: TokenCodec):
    token = codec.issue_school(school_claims("s1"))
    response = client.post(
        "/school/class-timetables/generate/650000000000000000000010",
        headers={"School-Token": token, "X-School-ID": "s2"},
    )

    assert response.status_code == 403
    assert response.json() == {"message": "School token does not match the requested school"}
