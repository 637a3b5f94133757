"""Boundary to the backend that stores family trees."""

from abc import ABC, abstractmethod
from dataclasses import dataclass

from models import ConnectionOptions, NewMember, Person, RelationType


class GatewayError(Exception):
    """The backend rejected a request; the message is meant for the user."""


@dataclass(frozen=True)
class CreateResult:
    success: bool
    new_node_id: str


class PersistenceGateway(ABC):
    """
    The three backend operations the tree view depends on.

    Implementations raise GatewayError on failure and never return partial
    results. No idempotency key is carried, so callers must not submit the
    same mutation twice.
    """

    @abstractmethod
    async def fetch_graph(self, family_tree_id: str, root_id: str | None = None) -> list[Person]:
        ...

    @abstractmethod
    async def create_member(
        self,
        member: NewMember,
        relation: RelationType,
        selected_id: str,
        options: ConnectionOptions,
    ) -> CreateResult:
        ...

    @abstractmethod
    async def delete_member(self, member_id: str, family_tree_id: str) -> bool:
        ...

    async def resolve_family_tree_id(self, user_id: str) -> str | None:
        """Family tree the user belongs to, or None if there is none."""
        return None
