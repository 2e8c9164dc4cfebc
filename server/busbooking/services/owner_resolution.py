"""Resolve who owns a seat lock: a user, a client token or a network origin."""

from dataclasses import dataclass
from enum import Enum
from typing import Collection, Mapping, Optional

from ..core.exceptions import ValidationError


class OwnerKind(str, Enum):
    """Identity source, in order of precedence."""
    USER = "user"
    CLIENT = "client"
    IP = "ip"


@dataclass(frozen=True)
class OwnerIdentity:
    """Identity a seat lock is held under."""

    kind: OwnerKind
    value: str

    @property
    def key(self) -> str:
        """Stored owner key; the kind prefix keeps the three namespaces apart."""
        return f"{self.kind.value}:{self.value}"

    @property
    def user_id(self) -> Optional[str]:
        return self.value if self.kind is OwnerKind.USER else None


def _clean(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    value = str(value).strip()
    return value or None


def resolve_owner(
    user_id: Optional[str] = None,
    client_token: Optional[str] = None,
    remote_addr: Optional[str] = None,
) -> OwnerIdentity:
    """
    Pick the owner identity for a lock operation.

    Precedence is authenticated user, then client token, then network origin.

    Raises:
        ValidationError: If none of the sources yields a non-blank value
    """
    user_id = _clean(user_id)
    if user_id:
        return OwnerIdentity(OwnerKind.USER, user_id)

    client_token = _clean(client_token)
    if client_token:
        return OwnerIdentity(OwnerKind.CLIENT, client_token)

    remote_addr = _clean(remote_addr)
    if remote_addr:
        return OwnerIdentity(OwnerKind.IP, remote_addr)

    raise ValidationError(detail="Unable to identify the lock owner")


def client_ip(
    headers: Mapping[str, str],
    peer: Optional[str] = None,
    trusted_proxies: Collection[str] = (),
) -> Optional[str]:
    """
    Network origin of a request.

    Forwarding headers are only believed when the peer is a trusted proxy;
    then the first X-Forwarded-For hop wins, then X-Real-IP. Otherwise the
    peer address is the origin, so a client cannot claim another's address.
    """
    peer = _clean(peer)
    if peer is None or peer not in trusted_proxies:
        return peer

    forwarded = headers.get("x-forwarded-for")
    if forwarded:
        first_hop = forwarded.split(",")[0].strip()
        if first_hop:
            return first_hop

    real_ip = _clean(headers.get("x-real-ip"))
    if real_ip:
        return real_ip

    return peer
