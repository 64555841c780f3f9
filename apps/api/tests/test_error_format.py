"""
Error format contract: RFC 9457 Problem Details.

Every error response must be application/problem+json with type, title,
status, detail and an opaque instance, plus the stable ``code`` extension
for core errors and ``errors`` for field validation failures.
"""

import re

from tests.api_helpers import create_credential, login, select_org


def assert_problem_details(resp, expected_status: int):
    """Assert the response is a well-formed problem document."""
    content_type = resp.headers.get("content-type", "")
    assert content_type.startswith("application/problem+json"), \
        f"Expected application/problem+json, got: {content_type}"

    data = resp.json()
    for field in ("type", "title", "status", "detail", "instance"):
        assert field in data, f"Missing required field: {field}"

    assert data["status"] == expected_status
    assert data["type"].startswith("https://credman.dev/problems/")

    # Opaque trace id: no paths, no DB ids
    instance = data["instance"]
    assert re.match(r"^urn:credman:trace:[A-Za-z0-9._:-]{8,}$", instance), \
        f"Invalid instance format: {instance}"
    return data


class TestErrorFormat:

    def test_401_login_required(self, client, organizations):
        response = create_credential(client)

        data = assert_problem_details(response, 401)
        assert data["code"] == "LOGIN_REQUIRED"
        assert data["title"] == "Unauthorized"
        assert response.headers["WWW-Authenticate"] == "Session"

    def test_403_org_selection_required(self, client, organizations):
        login(client, "u1", "u1@example.com", ["org-a", "org-b"])

        data = assert_problem_details(create_credential(client), 403)
        assert data["code"] == "ORG_SELECTION_REQUIRED"
        assert data["type"].endswith("/org-selection-required")

    def test_403_not_a_member(self, client, organizations):
        login(client, "u1", "u1@example.com", ["org-a", "org-b"])

        data = assert_problem_details(select_org(client, "org-c"), 403)
        assert data["code"] == "NOT_A_MEMBER"

    def test_404_core_not_found(self, client, organizations):
        login(client, "u1", "u1@example.com", ["org-a"])

        data = assert_problem_details(client.get("/v1/credentials/missing"), 404)
        assert data["code"] == "CREDENTIAL_NOT_FOUND"

    def test_404_unknown_route(self, client):
        data = assert_problem_details(client.get("/v1/does-not-exist"), 404)
        assert "code" not in data

    def test_405_wrong_method(self, client):
        assert_problem_details(client.put("/v1/session"), 405)

    def test_422_schema_validation_lists_every_field(self, client, organizations):
        login(client, "u1", "u1@example.com", ["org-a"])

        response = client.post("/v1/credentials", json={"name": "", "validity_in_days": 500})

        data = assert_problem_details(response, 422)
        assert data["code"] == "VALIDATION_ERROR"
        assert set(data["errors"]) == {"name", "validity_in_days"}

    def test_422_core_validation_carries_field_errors(self, client, organizations):
        data = assert_problem_details(login(client, "u1", "u1@example.com", ["org-x"]), 422)
        assert data["code"] == "UNKNOWN_ORGANIZATION"
        assert "org-x" in data["errors"]["associate_with_org_ids"]

    def test_request_id_echoed_and_used_as_instance(self, client, organizations):
        response = client.get("/v1/credentials/missing", headers={"X-Request-ID": "req-abcdef123"})

        assert response.headers["X-Request-ID"] == "req-abcdef123"
        assert response.json()["instance"] == "urn:credman:trace:req-abcdef123"

    def test_request_id_generated_when_absent(self, client):
        response = client.get("/health")
        assert response.headers.get("X-Request-ID")


def test_health_reports_dependencies(client):
    response = client.get("/health")

    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "healthy"
    assert data["services"] == {"api": "up", "database": "up", "sessions": "up"}


def test_health_degraded_when_session_store_down(client, session_store, monkeypatch):
    monkeypatch.setattr(session_store, "ping", lambda: False)

    response = client.get("/health")

    assert response.status_code == 503
    assert response.json()["status"] == "degraded"
    assert response.json()["services"]["sessions"].startswith("down")
