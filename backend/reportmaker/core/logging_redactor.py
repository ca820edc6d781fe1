from __future__ import annotations

import logging
import re


EMAIL_RE = re.compile(r"[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}")

# Common API key/token patterns (loose on purpose)
TOKEN_LIKE_RE = re.compile(
    r"(?i)"
    r"("
    r"(?:bearer\s+[A-Za-z0-9._~+\-/]+=*)"  # Authorization: Bearer ...
    r"|(?:sk_(?:test|live)_[A-Za-z0-9]{8,})"  # Stripe secret keys
    r"|(?:whsec_[A-Za-z0-9]{8,})"           # Stripe webhook secrets
    r"|(?:api[_-]?key\s*[=:]\s*\w{12,})"
    r"|(?:token\s*[=:]\s*\w{12,})"
    r")"
)

# Authorization header redaction (remove the value part entirely)
AUTH_HEADER_RE = re.compile(r"(?im)^(authorization:\s*)(.+)$")


class RedactionFilter(logging.Filter):
    """Logging filter that redacts sensitive info with ***.

    - Emails
    - Authorization headers values
    - Token-like secrets (bearer, Stripe keys, api_key, token)
    """

    def __init__(self, replacement: str = "***") -> None:
        super().__init__()
        self.replacement = replacement

    def filter(self, record: logging.LogRecord) -> bool:  # always keep record
        msg = record.getMessage()
        redacted = AUTH_HEADER_RE.sub(lambda m: f"{m.group(1)}{self.replacement}", msg)
        redacted = EMAIL_RE.sub(self.replacement, redacted)
        redacted = TOKEN_LIKE_RE.sub(self.replacement, redacted)
        if redacted != msg:
            record.msg = redacted
            record.args = ()
        return True


__all__ = ["RedactionFilter"]
