# pr_platform/url_validation.py
# Public URL validation helpers (webhook base URL, OAuth redirect URI).
# Copyright (c) 2025-2026 CrossWatch / Cenodude (https://github.com/cenodude/CrossWatch)
from __future__ import annotations

from urllib.parse import urlparse

# Cloud metadata endpoints that should never be advertised as our own address.
_METADATA_HOSTS = frozenset({
    "169.254.169.254",
    "metadata.google.internal",
    "metadata.google.internal.",
})


def validate_server_url(url: str, field_name: str = "server.base_url") -> list[str]:
    """Return a list of warning strings for *url*.

    Private/RFC-1918 addresses are fine; Plex usually reaches the relay on
    the LAN. Only clearly broken or suspicious values are flagged. Trakt
    compares redirect URIs byte for byte, so a fragment is reported too.
    """
    warnings: list[str] = []
    raw = (url or "").strip()
    if not raw:
        return warnings

    parsed = urlparse(raw)

    if parsed.scheme not in ("http", "https"):
        warnings.append(f"{field_name}: scheme '{parsed.scheme}' is not http or https")

    if not parsed.hostname:
        warnings.append(f"{field_name}: no hostname found in URL")

    if parsed.hostname and parsed.hostname.lower().rstrip(".") in _METADATA_HOSTS:
        warnings.append(f"{field_name}: URL points to a cloud metadata endpoint ({parsed.hostname})")

    if parsed.path and ".." in parsed.path:
        warnings.append(f"{field_name}: URL path contains '..' (path traversal)")

    if parsed.fragment:
        warnings.append(f"{field_name}: URL fragment '#{parsed.fragment}' is not sent to the server")

    return warnings
