"""Domain resolver - derives the tenant lookup key from a request.

Pure string derivation, no I/O. Never raises: when nothing better is
available the raw host is returned.
"""

from enum import Enum


class IdentificationMethod(str, Enum):
    """How tenants are identified from inbound requests."""

    domain = "domain"
    subdomain = "subdomain"
    header = "header"


def host_from_header(raw_host: str | None) -> str:
    """Normalize a Host header value: drop the port and lower-case.

    Handles bracketed IPv6 literals ("[::1]:8000" -> "[::1]").
    """
    if not raw_host:
        return ""
    host = raw_host.strip().lower()
    if host.startswith("["):
        end = host.find("]")
        return host[: end + 1] if end != -1 else host
    if host.count(":") == 1:
        host = host.split(":", 1)[0]
    return host


def extract_subdomain(host: str) -> str:
    """First label when the host has more than two labels, else the host."""
    parts = host.split(".")
    return parts[0] if len(parts) > 2 else host


def resolve_tenant_key(
    host: str,
    header_value: str | None,
    method: IdentificationMethod | str,
) -> str:
    """Derive the canonical tenant key.

    Args:
        host: Request host as presented by the framework
        header_value: Value of the tenant trust header, if any
        method: Configured identification method

    Returns:
        Key used for directory lookup
    """
    try:
        method = IdentificationMethod(method)
    except ValueError:
        method = IdentificationMethod.domain

    if method == IdentificationMethod.subdomain:
        return extract_subdomain(host)
    if method == IdentificationMethod.header:
        value = (header_value or "").strip().lower()
        return value or host
    return host
