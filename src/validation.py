"""Snapshot integrity checks and structural rules for adding and deleting members."""

import logging
from dataclasses import dataclass, field
from enum import Enum

import networkx as nx

from graph import GraphModel
from models import ConnectionOptions, RelationType, Relationship

logger = logging.getLogger(__name__)

NEW_MEMBER = "__new__"
MAX_PARENTS = 2


def validate_graph(model: GraphModel) -> list[str]:
    """
    Validate a snapshot for:
    - Asymmetric, self-referencing, duplicate or dangling relationship edges
    - More than two parents
    - Cycles in parent-child relationships
    - Impossible ages (child born before parent, death before birth)

    Returns a list of warning messages.
    """
    warnings: list[str] = []

    for person in model:
        name = person.attributes.display_name
        lists = {
            "parents": person.parents,
            "children": person.children,
            "spouses": person.spouses,
            "siblings": person.siblings,
        }
        for list_name, ids in lists.items():
            if person.id in ids:
                warnings.append(f"Self-reference: {name} lists itself among its {list_name}")
            if len(set(ids)) != len(ids):
                warnings.append(f"Duplicate edge: {name} has repeated entries in {list_name}")
            for other_id in ids:
                if other_id not in model:
                    warnings.append(f"Dangling edge: {name} lists unknown id {other_id} in {list_name}")

        if len(set(person.parents)) > MAX_PARENTS:
            warnings.append(f"Impossible: {name} has {len(set(person.parents))} parents")

        for child_id in person.children:
            child = model.find(child_id)
            if child is not None and person.id not in child.parents:
                warnings.append(
                    f"Asymmetric: {name} lists {child.attributes.display_name} as child "
                    f"but not the other way round"
                )
        for parent_id in person.parents:
            parent = model.find(parent_id)
            if parent is not None and person.id not in parent.children:
                warnings.append(
                    f"Asymmetric: {name} lists {parent.attributes.display_name} as parent "
                    f"but not the other way round"
                )
        for spouse_id in person.spouses:
            spouse = model.find(spouse_id)
            if spouse is not None and person.id not in spouse.spouses:
                warnings.append(
                    f"Asymmetric: {name} lists {spouse.attributes.display_name} as spouse "
                    f"but not the other way round"
                )

    G = model.to_networkx()

    # Create a subgraph with only PARENT_OF edges for cycle detection
    parent_edges = [
        (u, v) for u, v, d in G.edges(data=True) if d.get("relationship_type") == "PARENT_OF"
    ]
    parent_graph = nx.DiGraph(parent_edges)

    try:
        cycle = nx.find_cycle(parent_graph, orientation="original")
        cycle_nodes = [edge[0] for edge in cycle]
        warnings.append(f"Cycle detected in parent-child relationships: {cycle_nodes}")
    except nx.NetworkXNoCycle:
        pass

    # birth_date is ISO format (YYYY-MM-DD) which can be compared as strings
    for parent, child in parent_edges:
        parent_data = G.nodes[parent]
        child_data = G.nodes[child]

        parent_birth = parent_data.get("birth_date")
        child_birth = child_data.get("birth_date")

        if parent_birth and child_birth:
            if child_birth < parent_birth:
                warnings.append(
                    f"Impossible: {child_data.get('person_name')} born before parent "
                    f"{parent_data.get('person_name')}"
                )
            else:
                try:
                    parent_year = int(parent_birth[:4])
                    child_year = int(child_birth[:4])
                    if child_year - parent_year < 12:
                        warnings.append(
                            f"Suspicious: {parent_data.get('person_name')} was less than 12 years "
                            f"old when {child_data.get('person_name')} was born"
                        )
                except (ValueError, IndexError):
                    pass

    for _, data in G.nodes(data=True):
        birth = data.get("birth_date")
        death = data.get("death_date")

        if birth and death and death < birth:
            warnings.append(f"Impossible: {data.get('person_name')} died before being born")

    return warnings


class DeleteRefusal(str, Enum):
    NOT_FOUND = "not_found"
    SELF = "self"
    ACTIVE_ACCOUNT = "active_account"
    HAS_DESCENDANTS = "has_descendants"


DELETE_MESSAGES = {
    DeleteRefusal.NOT_FOUND: "This member is no longer part of the family tree.",
    DeleteRefusal.SELF: "You cannot remove yourself from the family tree.",
    DeleteRefusal.ACTIVE_ACCOUNT: (
        "Cannot delete members with active accounts. "
        "Only the tree owner can remove members with accounts."
    ),
    DeleteRefusal.HAS_DESCENDANTS: (
        "This member has descendants in the family tree. Please remove all descendants first."
    ),
}


class AddRefusal(str, Enum):
    NOT_FOUND = "not_found"
    TOO_MANY_PARENTS = "too_many_parents"


ADD_MESSAGES = {
    AddRefusal.NOT_FOUND: "The selected member is no longer part of the family tree.",
    AddRefusal.TOO_MANY_PARENTS: "This member already has two parents.",
}


@dataclass(frozen=True)
class Decision:
    allowed: bool
    reason: Enum | None = None
    message: str | None = None

    def __bool__(self) -> bool:
        return self.allowed


ALLOWED = Decision(True)


def _refuse(reason: Enum, messages: dict) -> Decision:
    return Decision(False, reason, messages[reason])


@dataclass
class MemberPlan:
    relation: RelationType
    selected_id: str
    edges: list[Relationship] = field(default_factory=list)

    @property
    def collateral(self) -> list[Relationship]:
        return self.edges[1:]


def can_delete(model: GraphModel, node_id: str, actor_id: str | None) -> Decision:
    """
    Decide whether node_id may be deleted by actor_id. Rules, first failure wins:
    the actor's own node is never deletable; a member with an active account
    can only be removed by the tree owner; a member with any descendant must
    wait until the descendants are gone.
    """
    if node_id == actor_id:
        return _refuse(DeleteRefusal.SELF, DELETE_MESSAGES)

    person = model.find(node_id)
    if person is None:
        return _refuse(DeleteRefusal.NOT_FOUND, DELETE_MESSAGES)

    attributes = person.attributes
    if attributes.has_active_account and actor_id != attributes.tree_owner_id:
        return _refuse(DeleteRefusal.ACTIVE_ACCOUNT, DELETE_MESSAGES)

    if not model.is_leaf(node_id):
        return _refuse(DeleteRefusal.HAS_DESCENDANTS, DELETE_MESSAGES)

    return ALLOWED


def check_add(model: GraphModel, relation: RelationType, selected_id: str) -> Decision:
    person = model.find(selected_id)
    if person is None:
        return _refuse(AddRefusal.NOT_FOUND, ADD_MESSAGES)
    if relation == RelationType.PARENT and len(model.parent_ids(selected_id)) >= MAX_PARENTS:
        return _refuse(AddRefusal.TOO_MANY_PARENTS, ADD_MESSAGES)
    return ALLOWED


def plan_add(
    model: GraphModel,
    relation: RelationType,
    selected_id: str,
    options: ConnectionOptions = ConnectionOptions(),
    new_id: str = NEW_MEMBER,
) -> MemberPlan:
    """
    Edges implied by adding a new member related to selected_id.

    The first edge is always the requested relationship; any further edges
    come from the connection options. Raises ValueError if check_add refuses.
    """
    decision = check_add(model, relation, selected_id)
    if not decision:
        raise ValueError(decision.message)

    plan = MemberPlan(relation, selected_id)
    edges = plan.edges

    if relation == RelationType.PARENT:
        existing_parents = [p for p in model.parent_ids(selected_id) if p in model]
        edges.append(Relationship(new_id, selected_id, "PARENT_OF"))
        if options.connect_to_existing_parent:
            for parent_id in existing_parents:
                edges.append(Relationship(new_id, parent_id, "SPOUSE_OF"))

    elif relation == RelationType.SPOUSE:
        edges.append(Relationship(selected_id, new_id, "SPOUSE_OF"))
        if options.connect_to_children:
            for child_id in model.child_ids(selected_id):
                if child_id not in model:
                    continue
                if len(model.parent_ids(child_id)) >= MAX_PARENTS:
                    logger.info("Child %s already has two parents, not linking new spouse", child_id)
                    continue
                edges.append(Relationship(new_id, child_id, "PARENT_OF"))

    elif relation == RelationType.CHILD:
        edges.append(Relationship(selected_id, new_id, "PARENT_OF"))
        spouses = [s for s in model.find(selected_id).spouses if s in model]
        if options.connect_to_spouse and spouses:
            edges.append(Relationship(spouses[0], new_id, "PARENT_OF"))

    elif relation == RelationType.SIBLING:
        parents = [p for p in model.parent_ids(selected_id) if p in model]
        if parents:
            for parent_id in parents:
                edges.append(Relationship(parent_id, new_id, "PARENT_OF"))
        else:
            edges.append(Relationship(selected_id, new_id, "SIBLING_OF"))

    return plan
