"""Tests for the credential lifecycle manager (service level)."""

import logging
from datetime import timedelta

import pytest

from credman_api.auth.identity import ContextSource, RequestContext
from credman_api.db.models import Credential, UserOrganization
from credman_api.db.repositories import UserRepository
from credman_api.errors import (
    AuthorizationFailed,
    AuthorizationReason,
    ErrorKind,
    ResourceNotFound,
    ValidationFailed,
    problem_status,
)
from credman_api.services.credentials import CredentialService


@pytest.fixture
def members(db_session, organizations):
    repo = UserRepository(db_session)
    alice = repo.create("sub-alice", "alice@example.com", ["org-a", "org-b"])
    bob = repo.create("sub-bob", "bob@example.com", ["org-a"])
    db_session.commit()
    return {"alice": alice, "bob": bob}


@pytest.fixture
def service(db_session, codec) -> CredentialService:
    return CredentialService(db_session, codec)


def ctx_for(user, org_id) -> RequestContext:
    return RequestContext(
        subject_id=user.subject_id,
        email=user.email,
        source=ContextSource.SESSION,
        user_id=user.id,
        selected_org_id=org_id,
        org_selection_required=org_id is None,
        session_token="tok",
    )


# ============================================================================
# create
# ============================================================================


def test_create_returns_unmasked_secret_and_stores_ciphertext(service, members, db_session, codec):
    alice = members["alice"]
    view = service.create(ctx_for(alice, "org-a"), "k1", 30)

    assert view.name == "k1"
    assert view.organization_id == "org-a"
    assert "*" not in view.client_secret
    assert len(view.client_secret) == 43

    row = db_session.query(Credential).filter_by(id=view.id).one()
    assert row.client_secret != view.client_secret
    assert view.client_secret not in row.client_secret
    assert codec.decrypt(row.client_secret) == view.client_secret
    assert row.created_by_user_id == alice.id
    assert row.expires_at - row.created_at == timedelta(days=30)


@pytest.mark.parametrize("days", [1, 90])
def test_create_validity_bounds_inclusive(service, members, days):
    view = service.create(ctx_for(members["alice"], "org-a"), "edge", days)
    assert view.expires_at > view.created_at


@pytest.mark.parametrize("days", [0, -1, 91, 365, True])
def test_create_validity_out_of_range(service, members, days, db_session):
    with pytest.raises(ValidationFailed) as exc_info:
        service.create(ctx_for(members["alice"], "org-a"), "k1", days)

    assert "validity_in_days" in exc_info.value.field_errors
    assert problem_status(exc_info.value) == 422
    assert db_session.query(Credential).count() == 0


def test_create_blank_name_rejected(service, members):
    with pytest.raises(ValidationFailed) as exc_info:
        service.create(ctx_for(members["alice"], "org-a"), "   ", 30)
    assert "name" in exc_info.value.field_errors


def test_create_requires_selected_org(service, members):
    with pytest.raises(AuthorizationFailed) as exc_info:
        service.create(ctx_for(members["alice"], None), "k1", 30)
    assert exc_info.value.reason is AuthorizationReason.ORG_SELECTION_REQUIRED


def test_create_unknown_user(service, members):
    ghost = RequestContext(
        subject_id="sub-ghost",
        email="ghost@example.com",
        source=ContextSource.SESSION,
        user_id="no-such-user",
        selected_org_id="org-a",
        org_selection_required=False,
    )
    with pytest.raises(ResourceNotFound) as exc_info:
        service.create(ghost, "k1", 30)
    assert exc_info.value.code == "USER_NOT_FOUND"


def test_create_logs_without_secret(service, members, caplog):
    with caplog.at_level(logging.INFO):
        view = service.create(ctx_for(members["alice"], "org-a"), "k1", 30)

    assert any(getattr(r, "event", None) == "credential.created" for r in caplog.records)
    assert view.client_secret not in caplog.text


# ============================================================================
# get
# ============================================================================


def test_get_masks_secret(service, members):
    ctx = ctx_for(members["alice"], "org-a")
    created = service.create(ctx, "k1", 30)

    fetched = service.get(ctx, created.id)

    assert fetched.client_secret == "*" * (len(created.client_secret) - 4) + created.client_secret[-4:]
    assert fetched.client_id == created.client_id


def test_get_unknown_id_not_found(service, members):
    with pytest.raises(ResourceNotFound) as exc_info:
        service.get(ctx_for(members["alice"], "org-a"), "no-such-credential")
    assert exc_info.value.code == "CREDENTIAL_NOT_FOUND"


def test_credential_invisible_from_other_org(service, members):
    alice = members["alice"]
    created = service.create(ctx_for(alice, "org-a"), "k1", 30)

    with pytest.raises(ResourceNotFound):
        service.get(ctx_for(alice, "org-b"), created.id)
    with pytest.raises(ResourceNotFound):
        service.reset_secret(ctx_for(alice, "org-b"), created.id)
    with pytest.raises(ResourceNotFound):
        service.delete(ctx_for(alice, "org-b"), created.id)


def test_other_member_cannot_view(service, members, caplog):
    created = service.create(ctx_for(members["alice"], "org-a"), "k1", 30)

    with caplog.at_level(logging.WARNING):
        with pytest.raises(AuthorizationFailed) as exc_info:
            service.get(ctx_for(members["bob"], "org-a"), created.id)

    assert exc_info.value.reason is AuthorizationReason.NOT_PERMITTED
    assert problem_status(exc_info.value) == 403
    assert any(getattr(r, "event", None) == "credential.ownership_denied" for r in caplog.records)


# ============================================================================
# reset / delete
# ============================================================================


def test_reset_three_times_yields_distinct_secrets(service, members, db_session, codec):
    ctx = ctx_for(members["alice"], "org-a")
    created = service.create(ctx, "k1", 30)

    secrets = [service.reset_secret(ctx, created.id).client_secret for _ in range(3)]

    assert len(set(secrets + [created.client_secret])) == 4
    row = db_session.query(Credential).filter_by(id=created.id).one()
    assert codec.decrypt(row.client_secret) == secrets[-1]


def test_reset_keeps_other_fields(service, members):
    ctx = ctx_for(members["alice"], "org-a")
    created = service.create(ctx, "k1", 30)

    reset = service.reset_secret(ctx, created.id)

    assert (reset.id, reset.client_id, reset.name, reset.expires_at) == (
        created.id,
        created.client_id,
        created.name,
        created.expires_at,
    )


def test_other_member_cannot_reset_or_delete(service, members, db_session, codec):
    alice_ctx = ctx_for(members["alice"], "org-a")
    bob_ctx = ctx_for(members["bob"], "org-a")
    created = service.create(alice_ctx, "k1", 30)

    with pytest.raises(AuthorizationFailed):
        service.reset_secret(bob_ctx, created.id)
    with pytest.raises(AuthorizationFailed):
        service.delete(bob_ctx, created.id)

    row = db_session.query(Credential).filter_by(id=created.id).one()
    assert codec.decrypt(row.client_secret) == created.client_secret


def test_delete_then_delete_again_not_found(service, members, db_session):
    ctx = ctx_for(members["alice"], "org-a")
    created = service.create(ctx, "k1", 30)

    service.delete(ctx, created.id)
    assert db_session.query(Credential).count() == 0

    with pytest.raises(ResourceNotFound) as exc_info:
        service.delete(ctx, created.id)
    assert exc_info.value.kind is ErrorKind.NOT_FOUND


def test_stale_membership_makes_credential_unreachable(service, members, db_session):
    """After membership removal the gate rejects the org; the service itself still scopes by org."""
    alice = members["alice"]
    created = service.create(ctx_for(alice, "org-b"), "k1", 30)

    db_session.query(UserOrganization).filter_by(user_id=alice.id, organization_id="org-b").delete()
    db_session.commit()

    # From her remaining org the credential does not exist
    with pytest.raises(ResourceNotFound):
        service.get(ctx_for(alice, "org-a"), created.id)
