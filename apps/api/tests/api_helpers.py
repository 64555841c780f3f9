"""Request helpers shared by API tests."""

from typing import Optional

from fastapi.testclient import TestClient

from credman_api.config.env import get_session_cookie_name

SUBJECT_HEADER = "x-user-sub"
EMAIL_HEADER = "x-user-email"


def identity_headers(subject_id: str, email: str) -> dict[str, str]:
    return {SUBJECT_HEADER: subject_id, EMAIL_HEADER: email}


def login(
    client: TestClient,
    subject_id: str,
    email: str,
    org_ids: Optional[list[str]] = None,
    **body,
):
    """POST /v1/users/login as the trusted proxy would forward it."""
    payload = dict(body)
    if org_ids is not None:
        payload["associate_with_org_ids"] = org_ids
    return client.post(
        "/v1/users/login",
        json=payload or None,
        headers=identity_headers(subject_id, email),
    )


def select_org(client: TestClient, org_id: str):
    return client.post("/v1/session/org", json={"organization_id": org_id})


def create_credential(client: TestClient, name: str = "k1", validity_in_days: int = 30):
    return client.post("/v1/credentials", json={"name": name, "validity_in_days": validity_in_days})


def session_cookie(client: TestClient) -> Optional[str]:
    return client.cookies.get(get_session_cookie_name())
