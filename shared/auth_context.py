"""
AuthContext - the resolved actor passed explicitly into every workflow.

Authentication itself happens elsewhere; workflows only see this value.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class ActorRole(str, Enum):
    PROVIDER = "PROVIDER"
    CONSUMER = "CONSUMER"
    PARENT = "PARENT"  # acts on behalf of delegated consumer ids


@dataclass(frozen=True)
class AuthContext:
    """
    Attributes:
        user_id: Authenticated user id
        role: PROVIDER, CONSUMER or PARENT
        provider_id: Provider id owned by the user (providers only)
        consumer_ids: Consumer ids the user may act for (own or delegated)
    """

    user_id: str
    role: ActorRole
    provider_id: str | None = None
    consumer_ids: tuple[str, ...] = field(default_factory=tuple)

    @property
    def is_provider(self) -> bool:
        return self.role == ActorRole.PROVIDER and self.provider_id is not None

    @property
    def is_consumer(self) -> bool:
        return self.role in (ActorRole.CONSUMER, ActorRole.PARENT) and bool(self.consumer_ids)

    def owns_provider(self, provider_id: str) -> bool:
        return self.is_provider and self.provider_id == provider_id

    def acts_for(self, consumer_id: str) -> bool:
        return consumer_id in self.consumer_ids

    @classmethod
    def from_claims(cls, claims: dict[str, Any]) -> "AuthContext":
        """Build from decoded token claims (sub, role, providerId, consumerIds)."""
        return cls(
            user_id=str(claims["sub"]),
            role=ActorRole(claims["role"]),
            provider_id=claims.get("providerId"),
            consumer_ids=tuple(claims.get("consumerIds") or ()),
        )
