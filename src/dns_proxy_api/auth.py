from __future__ import annotations

import hmac

__all__ = ["check_bearer"]


def check_bearer(presented: str | None, expected_secret: str) -> bool:
    """
    Compare an ``Authorization`` header value against ``Bearer <secret>``.

    Exact match only: no scheme case-folding and no whitespace trimming.
    The caller gets a bare bool so every failure looks the same.
    """
    if presented is None or expected_secret == "":
        return False
    expected = f"Bearer {expected_secret}"
    return hmac.compare_digest(presented.encode("utf-8"), expected.encode("utf-8"))
