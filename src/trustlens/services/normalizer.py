"""Username canonicalization for cache and quota keys."""

from __future__ import annotations

_MARKER = "@"


def normalize_username(raw: str) -> str:
    """Return the canonical lookup key for a user-supplied handle.

    Surrounding whitespace and any run of leading ``@`` markers are removed and
    the result is lowercased, so ``"@Foo"``, ``"foo"`` and ``"  FOO  "`` all map
    to ``"foo"``. Empty input yields an empty key; callers reject that.
    """
    return raw.strip().lstrip(_MARKER).strip().lower()
