"""Data classes for kinship graph entities and layout output."""

from dataclasses import dataclass, field
from enum import Enum


class Gender(str, Enum):
    MALE = "male"
    FEMALE = "female"
    OTHER = "other"


class AccountStatus(str, Enum):
    PENDING = "pending"
    ACTIVE = "active"


class RelationType(str, Enum):
    PARENT = "parent"
    SPOUSE = "spouse"
    CHILD = "child"
    SIBLING = "sibling"


@dataclass(frozen=True)
class Attributes:
    display_name: str
    first_name: str | None = None
    last_name: str | None = None
    birth_date: str | None = None  # ISO format YYYY-MM-DD or None
    death_date: str | None = None  # ISO format YYYY-MM-DD or None
    email: str | None = None
    phone: str | None = None
    is_blood_related: bool = True
    family_tree_id: str | None = None
    status: str | None = None  # AccountStatus value, or None when no account exists
    tree_owner_id: str | None = None

    @property
    def has_active_account(self) -> bool:
        return bool(self.status) and self.status != AccountStatus.PENDING.value


@dataclass(frozen=True)
class Person:
    id: str
    gender: Gender
    attributes: Attributes
    parents: tuple[str, ...] = ()
    children: tuple[str, ...] = ()
    spouses: tuple[str, ...] = ()
    siblings: tuple[str, ...] = ()


@dataclass(frozen=True)
class Relationship:
    person1_id: str
    person2_id: str
    relationship_type: str  # PARENT_OF (person1 is the parent), SPOUSE_OF, SIBLING_OF


@dataclass(frozen=True)
class ConnectionOptions:
    connect_to_children: bool = True
    connect_to_spouse: bool = True
    connect_to_existing_parent: bool = True


@dataclass
class NewMember:
    """Core attributes of a member about to be created."""

    first_name: str
    last_name: str
    gender: Gender
    birth_date: str | None = None
    email: str | None = None
    phone: str | None = None

    def validate(self):
        if not self.first_name or not self.first_name.strip():
            raise ValueError("First name is required.")
        if not self.last_name or not self.last_name.strip():
            raise ValueError("Last name is required.")
        if not isinstance(self.gender, Gender):
            raise ValueError("Gender is required.")

    @property
    def display_name(self) -> str:
        return f"{self.first_name.strip()} {self.last_name.strip()}"

    def to_attributes(self, family_tree_id: str | None, tree_owner_id: str | None) -> Attributes:
        return Attributes(
            display_name=self.display_name,
            first_name=self.first_name.strip(),
            last_name=self.last_name.strip(),
            birth_date=self.birth_date,
            email=self.email.strip() if self.email else None,
            phone=self.phone.strip() if self.phone else None,
            family_tree_id=family_tree_id,
            status=AccountStatus.PENDING.value,
            tree_owner_id=tree_owner_id,
        )


@dataclass(frozen=True)
class NodePosition:
    id: str
    col: int
    row: int


@dataclass(frozen=True)
class Connector:
    x1: float
    y1: float
    x2: float
    y2: float
    kind: str  # SPOUSE_OF or PARENT_OF


@dataclass(frozen=True)
class Layout:
    root_id: str
    nodes: tuple[NodePosition, ...]
    connectors: tuple[Connector, ...]
    canvas_width: int
    canvas_height: int
    _index: dict = field(default_factory=dict, compare=False, repr=False)

    def __post_init__(self):
        self._index.update({n.id: n for n in self.nodes})

    def position_of(self, node_id: str) -> NodePosition | None:
        return self._index.get(node_id)
