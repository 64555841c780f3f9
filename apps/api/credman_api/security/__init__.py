"""Secret encryption and credential generation."""

from credman_api.security.credential_generator import generate_client_id, generate_secret
from credman_api.security.secret_codec import SecretCodec, mask

__all__ = ["SecretCodec", "generate_client_id", "generate_secret", "mask"]
