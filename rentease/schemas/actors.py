from __future__ import annotations

from dataclasses import dataclass

from rentease.models.enums import ActorRole


@dataclass(frozen=True)
class Actor:
    """
    Already-authenticated caller identity supplied by the gateway.

    The core trusts this as given; it only checks that the role and id line up
    with the record being touched.
    """

    id: int
    role: ActorRole

    @property
    def is_admin(self) -> bool:
        return self.role == ActorRole.ADMIN

    @property
    def is_system(self) -> bool:
        return self.role == ActorRole.SYSTEM


SYSTEM_ACTOR = Actor(id=0, role=ActorRole.SYSTEM)
