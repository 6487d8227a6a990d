import hashlib
from typing import Optional


def cookie_fingerprint(cookie: Optional[str]) -> str:
    """Provide a stable, low-leak session cookie identifier for logs."""
    if not cookie:
        return "<empty>"
    digest = hashlib.sha256(cookie.encode("utf-8")).hexdigest()[:12]
    return f"len={len(cookie)} sha256={digest}"
