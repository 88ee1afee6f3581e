"""Admin allow-list policy."""
from typing import Iterable, Optional


class StaticAllowListAdminPolicy:
    """Identities listed in ADMIN_IDENTITIES are admins; everyone else is not."""

    def __init__(self, identities: Iterable[str]):
        self._identities = frozenset(i.strip() for i in identities if i and i.strip())

    def is_admin(self, identity: Optional[str]) -> bool:
        return bool(identity) and identity.strip() in self._identities
