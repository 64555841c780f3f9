"""Client credential generation.

Client identifiers are UUID4 strings; client secrets are opaque random
strings shown to the caller exactly once (at create and at reset).
"""

import base64
import secrets
import uuid

SECRET_ENTROPY_BYTES = 32


def generate_client_id() -> str:
    """Generate a new globally unique client identifier (UUID4 text)."""
    return str(uuid.uuid4())


def generate_secret() -> str:
    """Generate a new client secret.

    Format: base64url(32_random_bytes), no padding (43 characters)

    Security:
    - Uses secrets.token_bytes() for CSPRNG
    - 32 bytes = 256 bits of entropy
    """
    random_bytes = secrets.token_bytes(SECRET_ENTROPY_BYTES)
    return base64.urlsafe_b64encode(random_bytes).decode("ascii").rstrip("=")
