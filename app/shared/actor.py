"""Caller identity forwarded by the upstream gateway."""

from __future__ import annotations

from dataclasses import dataclass
from uuid import UUID

from fastapi import Depends, Header

from app.core.enums import ActorTypeEnum
from app.shared.exceptions import UnauthorizedException


@dataclass(frozen=True, slots=True)
class Actor:
    """Authenticated caller as asserted by the gateway."""

    type: ActorTypeEnum
    id: UUID | None = None

    @property
    def is_admin(self) -> bool:
        return self.type == ActorTypeEnum.ADMIN


SYSTEM_ACTOR = Actor(type=ActorTypeEnum.SYSTEM)


async def get_current_actor(
    x_actor_type: str | None = Header(default=None),
    x_actor_id: str | None = Header(default=None),
) -> Actor:
    """Resolve actor from X-Actor-Type / X-Actor-Id headers."""
    if not x_actor_type:
        raise UnauthorizedException("Missing actor identity")
    try:
        actor_type = ActorTypeEnum(x_actor_type.strip().lower())
    except ValueError as exc:
        raise UnauthorizedException(f"Unknown actor type: {x_actor_type}") from exc
    if actor_type == ActorTypeEnum.SYSTEM:
        raise UnauthorizedException("System actor cannot call the API")

    actor_id: UUID | None = None
    if x_actor_id:
        try:
            actor_id = UUID(x_actor_id)
        except ValueError as exc:
            raise UnauthorizedException("Actor id must be a UUID") from exc
    if actor_type == ActorTypeEnum.PROVIDER and actor_id is None:
        raise UnauthorizedException("Provider actor requires an id")
    return Actor(type=actor_type, id=actor_id)


def require_actor_types(*actor_types: ActorTypeEnum):
    """Factory for actor-type based access dependency."""

    async def _checker(actor: Actor = Depends(get_current_actor)) -> Actor:
        if actor.type not in actor_types:
            raise UnauthorizedException("Insufficient permissions")
        return actor

    return _checker
