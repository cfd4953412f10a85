"""Ownership / role rule shared by every edit and delete endpoint."""
from __future__ import annotations

from typing import Union

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from glsbox.models import User

UserRef = Union[User, int]


def _ref_id(ref: UserRef) -> int:
    return ref.id if isinstance(ref, User) else ref


async def editing_allowed(session: AsyncSession, actor: UserRef, owner: UserRef) -> bool:
    """True if ``actor`` may edit items of ``owner``.

    Either side may be a loaded ``User`` or a bare user id. The same identity is
    always allowed; otherwise the actor's role must be strictly more privileged
    (lower ordinal). Unknown ids yield False.
    """
    actor_id = _ref_id(actor)
    owner_id = _ref_id(owner)
    if actor_id == owner_id:
        return True

    missing = [ref for ref in (actor, owner) if not isinstance(ref, User)]
    found: dict[int, User] = {}
    if missing:
        # Both unresolved sides in one round trip
        result = await session.execute(select(User).where(User.id.in_(missing)))
        found = {u.id: u for u in result.scalars().all()}

    actor_user = actor if isinstance(actor, User) else found.get(actor)
    owner_user = owner if isinstance(owner, User) else found.get(owner)
    if actor_user is None or owner_user is None:
        return False
    return actor_user.role < owner_user.role
