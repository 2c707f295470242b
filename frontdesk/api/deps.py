from __future__ import annotations

import uuid
from dataclasses import dataclass

from fastapi import Header, HTTPException

from frontdesk.models.enums import StaffRole


@dataclass(frozen=True)
class Requester:
    """Caller identity as forwarded by the upstream auth layer (not verified here)."""

    user_id: uuid.UUID | None
    role: StaffRole | None

    @property
    def is_vet(self) -> bool:
        return self.role == StaffRole.VET


async def get_requester(
    x_user_id: str | None = Header(None, alias="X-User-Id"),
    x_user_role: str | None = Header(None, alias="X-User-Role"),
) -> Requester:
    user_id = None
    if x_user_id:
        try:
            user_id = uuid.UUID(x_user_id)
        except ValueError:
            raise HTTPException(status_code=422, detail="Invalid X-User-Id")

    role = None
    if x_user_role:
        try:
            role = StaffRole(x_user_role.strip().upper())
        except ValueError:
            raise HTTPException(status_code=422, detail="Invalid X-User-Role")

    return Requester(user_id=user_id, role=role)


def acting_vet_id(requested: uuid.UUID | None, requester: Requester) -> uuid.UUID | None:
    """Explicit vet id, else the requester when they are a vet.

    Front desk requests without a vet id stay None so the room's occupant acts.
    """

    if requested is not None:
        return requested
    if requester.is_vet:
        return requester.user_id
    return None
