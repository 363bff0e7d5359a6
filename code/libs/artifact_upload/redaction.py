"""
Redaction utilities for upload log fields and error messages.

Put URLs are usually pre-signed: the query string carries the credential
scope and signature that authorize the write. Those parts, URL userinfo and
bearer tokens are replaced before anything reaches the log stream.
"""

import re

PATTERNS = [
    # Authorization headers (full header pattern)
    r"\bAuthorization:\s+Bearer\s+[A-Za-z0-9._-]+",
    # Bearer tokens (standalone)
    r"\bBearer\s+[A-Za-z0-9._-]+",
    # AWS SigV4 / SigV2 query parameters
    r"(?<=[?&])X-Amz-(Signature|Credential|Security-Token)=[^&\s]+",
    r"(?<=[?&])(Signature|AWSAccessKeyId|sig)=[^&\s]+",
    # URL credentials (user:pass@host)
    r"(?<=://)[^/@\s:]+:[^/@\s]+@",
]

REDACT = re.compile("|".join(f"(?:{p})" for p in PATTERNS), re.IGNORECASE)


def redact_msg(s: str) -> str:
    """
    Redact sensitive information from a message.

    Args:
        s: Message to redact

    Returns:
        Message with sensitive parts replaced by [REDACTED]
    """
    if not s:
        return s
    try:
        return REDACT.sub("[REDACTED]", s)
    except Exception:
        # If any error, better to redact everything than leak
        return "[REDACTED]"
