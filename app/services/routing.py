"""Map a request hostname to the tenant it serves.

``admin.<base>`` is the operator console, ``<sub>.<base>`` a school and
anything else the root site. Local development hosts select a tenant with
``?tenant=<sub>`` (or the console with ``?admin=1``).
"""

from dataclasses import dataclass
from enum import StrEnum

LOCAL_HOSTS = frozenset({"localhost", "127.0.0.1"})


class HostMode(StrEnum):
    ROOT = "root"
    ADMIN = "admin"
    TENANT = "tenant"


@dataclass(frozen=True)
class HostResolution:
    mode: HostMode
    subdomain: str | None = None


def _strip_port(hostname: str) -> str:
    return (hostname or "").strip().lower().split(":")[0]


def resolve_host(
    hostname: str,
    base_domain: str,
    query: dict[str, str] | None = None,
) -> HostResolution:
    host = _strip_port(hostname)
    base = (base_domain or "").strip().lower()
    query = query or {}

    if not host:
        return HostResolution(HostMode.ROOT)

    if host in LOCAL_HOSTS:
        local_tenant = query.get("tenant")
        if local_tenant:
            return HostResolution(HostMode.TENANT, local_tenant.strip().lower())
        if query.get("admin") == "1":
            return HostResolution(HostMode.ADMIN)
        return HostResolution(HostMode.ROOT)

    if host.startswith("admin."):
        return HostResolution(HostMode.ADMIN)

    if base and host.endswith(f".{base}"):
        subdomain = host[: -(len(base) + 1)]
        # Nested labels (a.b.<base>) are not tenant hosts
        if not subdomain or "." in subdomain:
            return HostResolution(HostMode.ROOT)
        return HostResolution(HostMode.TENANT, subdomain)

    return HostResolution(HostMode.ROOT)
