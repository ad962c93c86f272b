"""
Access policy: who may see and act on which borrow records.

The workflow consults an ``AccessPolicy`` instead of branching on roles
itself, so new roles or rules only touch this module.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from typing import Optional

from core.errors import ForbiddenError
from database.models import Role


@dataclass(frozen=True)
class Identity:
    """Authenticated caller as vouched for by the auth layer."""

    id: uuid.UUID
    role: str

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMIN.value


class AccessPolicy:
    def visible_user_id(
        self,
        identity: Optional[Identity],
        requested_user_id: Optional[uuid.UUID],
    ) -> Optional[uuid.UUID]:
        """
        Resolve the ``user_id`` filter for a ledger listing.

        An explicit filter is honoured as given.  Without one, members are
        pinned to their own records and admins see everything.
        """
        if requested_user_id is not None:
            return requested_user_id
        if identity is not None and identity.role == Role.MEMBER.value:
            return identity.id
        return None

    def borrower_for(
        self,
        identity: Identity,
        requested_user_id: Optional[uuid.UUID],
    ) -> uuid.UUID:
        """Admins may borrow on someone's behalf; everyone else borrows for themselves."""
        if requested_user_id is not None and identity.is_admin:
            return requested_user_id
        return identity.id

    def can_view(self, identity: Identity, borrower_id: uuid.UUID) -> bool:
        return identity.is_admin or identity.id == borrower_id

    def can_return(self, identity: Identity, borrower_id: uuid.UUID) -> bool:
        return identity.is_admin or identity.id == borrower_id

    def ensure_can_return(self, identity: Identity, borrower_id: uuid.UUID) -> None:
        if not self.can_return(identity, borrower_id):
            raise ForbiddenError("Only the borrower or an administrator can return this book")
