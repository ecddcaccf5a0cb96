import ipaddress
from typing import Mapping, Optional

from space_together.core.database import is_valid_tenant_id, is_valid_tenant_name, school_db_name
from space_together.schemas.auth.tokens import SchoolClaims


SCHOOL_ID_HEADER = "x-school-id"


def _host_label(host: Optional[str]) -> Optional[str]:
    if not host:
        return None
    host = host.strip().lower()
    if host.startswith("["):
        # bracketed IPv6 literal
        return None
    hostname = host.rsplit(":", 1)[0] if host.count(":") == 1 else host
    if not hostname or hostname == "localhost":
        return None
    try:
        ipaddress.ip_address(hostname)
        return None
    except ValueError:
        pass
    label = hostname.split(".", 1)[0]
    if not label or label == "localhost":
        return None
    return label


class TenantResolver:
    """Maps a request to its tenant database name, or ``None`` for control-plane requests.

    Signals are consulted in order and the first usable one wins:

    1. the ``X-School-ID`` header
    2. a verified school token already attached by the auth middleware
    3. the leading label of the ``Host`` header

    A signal that does not form a valid tenant name is skipped. The resolver
    never raises.
    """

    def resolve(
        self,
        headers: Mapping[str, str],
        school: Optional[SchoolClaims] = None,
    ) -> Optional[str]:
        headers = {key.lower(): value for key, value in headers.items()}
        school_id = (headers.get(SCHOOL_ID_HEADER) or "").strip()
        if is_valid_tenant_id(school_id):
            return school_db_name(school_id)

        if school is not None and is_valid_tenant_name(school.database_name):
            return school.database_name

        label = _host_label(headers.get("host"))
        if is_valid_tenant_id(label):
            return school_db_name(label)

        return None

    def resolve_request(self, request) -> Optional[str]:
        return self.resolve(request.headers, getattr(request.state, "school", None))
