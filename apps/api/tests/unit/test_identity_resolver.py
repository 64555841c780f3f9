"""Tests for request identity resolution."""

import pytest

from credman_api.auth.identity import ContextSource, bind_log_context, resolve_request_context
from credman_api.context import clear_identity_vars, organization_id_var, user_id_var
from credman_api.sessions.store import InMemorySessionStore

HEADERS = {"x-user-sub": "sub-hdr", "x-user-email": "hdr@example.com"}


@pytest.fixture
def store() -> InMemorySessionStore:
    return InMemorySessionStore(idle_timeout_seconds=60)


def test_session_is_authoritative(store):
    session = store.create("u1", "sub-1", "u1@example.com", ["org-a"], {"org-a": "Acme GmbH"})

    ctx = resolve_request_context(store, session.token, HEADERS)

    assert ctx.source is ContextSource.SESSION
    assert ctx.has_session
    assert ctx.subject_id == "sub-1"
    assert ctx.email == "u1@example.com"
    assert ctx.user_id == "u1"
    assert ctx.selected_org_id == "org-a"
    assert ctx.org_selection_required is False
    assert ctx.session_token == session.token


def test_headers_used_without_session(store):
    ctx = resolve_request_context(store, None, HEADERS)

    assert ctx.source is ContextSource.HEADERS
    assert not ctx.has_session
    assert ctx.subject_id == "sub-hdr"
    assert ctx.email == "hdr@example.com"
    assert ctx.user_id is None
    assert ctx.selected_org_id is None
    assert ctx.org_selection_required is True


def test_expired_or_unknown_session_falls_back_to_headers(store):
    ctx = resolve_request_context(store, "stale-token", HEADERS)
    assert ctx.source is ContextSource.HEADERS


@pytest.mark.parametrize(
    "headers",
    [
        {},
        {"x-user-sub": "sub-only"},
        {"x-user-email": "email-only@example.com"},
        {"x-user-sub": "  ", "x-user-email": "blank-sub@example.com"},
    ],
)
def test_no_context_without_complete_identity(store, headers):
    assert resolve_request_context(store, None, headers) is None


def test_custom_header_names(store, monkeypatch):
    monkeypatch.setenv("CREDMAN_TRUSTED_SUBJECT_HEADER", "X-Forwarded-Sub")
    monkeypatch.setenv("CREDMAN_TRUSTED_EMAIL_HEADER", "X-Forwarded-Email")

    ctx = resolve_request_context(
        store, None, {"x-forwarded-sub": "sub-p", "x-forwarded-email": "p@example.com"}
    )

    assert ctx.subject_id == "sub-p"
    assert resolve_request_context(store, None, HEADERS) is None


def test_context_is_immutable(store):
    ctx = resolve_request_context(store, None, HEADERS)
    with pytest.raises(AttributeError):
        ctx.selected_org_id = "org-a"


def test_log_context_bound_and_cleared(store):
    session = store.create("u1", "sub-1", "u1@example.com", ["org-a"], {"org-a": "Acme GmbH"})

    bind_log_context(resolve_request_context(store, session.token, {}))
    assert user_id_var.get() == "u1"
    assert organization_id_var.get() == "org-a"

    clear_identity_vars()
    assert user_id_var.get() == ""
    assert organization_id_var.get() == ""

    bind_log_context(None)
    assert user_id_var.get() == ""
