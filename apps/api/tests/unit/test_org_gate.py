"""Tests for the organization membership gate."""

import logging

import pytest

from credman_api.auth.identity import ContextSource, RequestContext
from credman_api.auth.org_gate import OrganizationGate
from credman_api.db.models import UserOrganization
from credman_api.db.repositories import UserRepository
from credman_api.errors import AuthorizationFailed, AuthorizationReason, problem_status


@pytest.fixture
def users(db_session, organizations) -> UserRepository:
    repo = UserRepository(db_session)
    repo.create("sub-single", "single@example.com", ["org-a"])
    repo.create("sub-multi", "multi@example.com", ["org-a", "org-b"])
    repo.create("sub-none", "none@example.com", [])
    db_session.commit()
    return repo


def _ctx(user, selected_org_id=None) -> RequestContext:
    return RequestContext(
        subject_id=user.subject_id,
        email=user.email,
        source=ContextSource.SESSION,
        user_id=user.id,
        selected_org_id=selected_org_id,
        org_selection_required=selected_org_id is None,
        session_token="tok",
    )


def test_no_context_requires_login(users, caplog):
    with caplog.at_level(logging.WARNING):
        with pytest.raises(AuthorizationFailed) as exc_info:
            OrganizationGate(users).check(None)

    assert exc_info.value.reason is AuthorizationReason.LOGIN_REQUIRED
    assert problem_status(exc_info.value) == 401
    assert any(getattr(r, "event", None) == "gate.denied" for r in caplog.records)


def test_header_only_context_requires_login(users):
    ctx = RequestContext(subject_id="sub-x", email="x@example.com", source=ContextSource.HEADERS)
    with pytest.raises(AuthorizationFailed) as exc_info:
        OrganizationGate(users).check(ctx)
    assert exc_info.value.reason is AuthorizationReason.LOGIN_REQUIRED


def test_multi_org_without_selection_rejected(users):
    user = users.find_by_subject_id("sub-multi")
    with pytest.raises(AuthorizationFailed) as exc_info:
        OrganizationGate(users).check(_ctx(user))

    assert exc_info.value.reason is AuthorizationReason.ORG_SELECTION_REQUIRED
    assert "POST /v1/session/org" in exc_info.value.message
    assert problem_status(exc_info.value) == 403


def test_selected_member_org_allowed(users):
    user = users.find_by_subject_id("sub-multi")
    ctx = _ctx(user, "org-b")
    assert OrganizationGate(users).check(ctx) is ctx


def test_selected_non_member_org_rejected(users):
    user = users.find_by_subject_id("sub-single")
    with pytest.raises(AuthorizationFailed) as exc_info:
        OrganizationGate(users).check(_ctx(user, "org-b"))
    assert exc_info.value.reason is AuthorizationReason.NOT_A_MEMBER


def test_revoked_membership_caught_despite_session(users, db_session):
    user = users.find_by_subject_id("sub-multi")
    ctx = _ctx(user, "org-b")
    OrganizationGate(users).check(ctx)

    db_session.query(UserOrganization).filter_by(user_id=user.id, organization_id="org-b").delete()
    db_session.commit()

    with pytest.raises(AuthorizationFailed) as exc_info:
        OrganizationGate(users).check(ctx)
    assert exc_info.value.reason is AuthorizationReason.NOT_A_MEMBER


def test_zero_memberships_without_selection_passes_gate(users):
    """The gate lets it through; credential operations then demand a selection."""
    user = users.find_by_subject_id("sub-none")
    ctx = _ctx(user)
    assert OrganizationGate(users).check(ctx) is ctx
