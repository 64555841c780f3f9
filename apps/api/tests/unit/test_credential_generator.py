"""Tests for client id / secret generation."""

import base64
import re
import uuid

from credman_api.security.credential_generator import generate_client_id, generate_secret

URLSAFE = re.compile(r"^[A-Za-z0-9_-]+$")


def test_secret_has_256_bits_of_entropy():
    secret = generate_secret()
    raw = base64.urlsafe_b64decode(secret + "=" * (-len(secret) % 4))
    assert len(raw) == 32


def test_secret_is_url_and_header_safe():
    for _ in range(50):
        secret = generate_secret()
        assert URLSAFE.match(secret)
        assert "=" not in secret


def test_secrets_are_unique():
    assert len({generate_secret() for _ in range(1000)}) == 1000


def test_client_id_is_uuid4():
    client_id = generate_client_id()
    assert uuid.UUID(client_id).version == 4
    assert generate_client_id() != client_id
