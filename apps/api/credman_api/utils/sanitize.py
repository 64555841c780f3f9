"""Log sanitizer for secrets, session tokens and PII.

Strings are handled in three tiers by size:
 1. longer than MAX_STR_LOG        -> replaced by length + sha256 prefix, no regex
 2. longer than MAX_STR_FOR_REGEX  -> only the cheap prefix checks run
 3. otherwise                      -> every redaction pattern is applied

Patterns are pre-compiled and anchored on \\S+ so the size gate is the only
thing standing between a log line and catastrophic backtracking.
"""

import hashlib
import re
import traceback
from functools import lru_cache
from typing import Any

from credman_api.config.env import get_session_cookie_name

MAX_STR_LOG: int = 2048
MAX_STR_FOR_REGEX: int = 512
MAX_DEPTH: int = 6

REDACTED = "[REDACTED]"

# Lower-cased dict keys whose values never reach a log sink
_SENSITIVE_KEYS: frozenset[str] = frozenset({
    "authorization",
    "proxy-authorization",
    "cookie",
    "set-cookie",
    "client_secret",
    "clientsecret",
    "secret",
    "plaintext",
    "ciphertext",
    "encryption_key",
    "session_id",
    "session_token",
    "email",
    "x-user-email",
})

_PATTERNS: list[re.Pattern[str]] = [
    re.compile(r"Bearer \S+"),
    re.compile(r"Basic \S+"),
    re.compile(r"client_secret=\S+"),
    re.compile(r"CREDMAN_ENCRYPTION_KEY_V\d+=\S+"),
]

_UNSAFE_PREFIXES = ("Bearer ", "Basic ")


@lru_cache(maxsize=8)
def _session_cookie_pattern(cookie_name: str) -> re.Pattern[str]:
    return re.compile(rf"{re.escape(cookie_name)}=[^;\s]+")


def sanitize_str(s: str) -> str:
    """Return a redacted / truncated copy of ``s``; never the sensitive original."""
    if not isinstance(s, str):
        return s  # type: ignore[return-value]

    n = len(s)

    if n > MAX_STR_LOG:
        digest = hashlib.sha256(s.encode("utf-8", errors="replace")).hexdigest()[:16]
        return f"[TRUNCATED len={n} sha256={digest}]"

    if n > MAX_STR_FOR_REGEX:
        if s.startswith(_UNSAFE_PREFIXES):
            return REDACTED
        return s

    result = s
    for pattern in _PATTERNS:
        result = pattern.sub(REDACTED, result)
    result = _session_cookie_pattern(get_session_cookie_name()).sub(REDACTED, result)
    return result


def sanitize_obj(obj: Any, depth: int = 0) -> Any:
    """Recursively sanitize a value passed through ``extra={...}``."""
    if depth >= MAX_DEPTH:
        return "[DEPTH_LIMIT]"

    if isinstance(obj, dict):
        cleaned: dict[str, Any] = {}
        for key, value in obj.items():
            if isinstance(key, str) and key.lower() in _SENSITIVE_KEYS:
                cleaned[key] = REDACTED
            else:
                cleaned[key] = sanitize_obj(value, depth + 1)
        return cleaned

    if isinstance(obj, (list, tuple)):
        return [sanitize_obj(item, depth + 1) for item in obj]

    if isinstance(obj, str):
        return sanitize_str(obj)

    return obj


def is_sensitive_key(key: str) -> bool:
    return key.lower() in _SENSITIVE_KEYS


def sanitize_exc(exc_info: tuple) -> str:
    """Format an exc_info tuple without local variables, then sanitize it."""
    _type, value, _tb = exc_info
    if value is None:
        return ""
    try:
        te = traceback.TracebackException.from_exception(value, capture_locals=False)
        return sanitize_str("".join(te.format()))
    except Exception:
        return "[TRACEBACK_FORMAT_ERROR]"
