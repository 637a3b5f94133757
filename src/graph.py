"""In-memory kinship graph built from an immutable snapshot of people."""

import itertools
import logging
from collections import deque
from dataclasses import dataclass
from typing import Iterable

import networkx as nx

from models import Person

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Degree:
    parents: int
    children: int
    spouses: int


class GraphModel:
    """
    Arena of Person records indexed by id.

    Relationships are stored as id references only. The model is rebuilt from
    scratch for every fetched snapshot and never mutated afterwards; lookups
    of unknown ids return None.
    """

    def __init__(self, persons: dict[str, Person]):
        self._persons = persons
        self._descendants: dict[str, frozenset[str]] = {}

    @classmethod
    def from_snapshot(cls, persons: Iterable[Person]) -> "GraphModel":
        arena: dict[str, Person] = {}
        for person in persons:
            if person.id in arena:
                logger.warning("Duplicate person id %s in snapshot, keeping first", person.id)
                continue
            arena[person.id] = person
        return cls(arena)

    def __contains__(self, node_id) -> bool:
        return node_id in self._persons

    def __len__(self) -> int:
        return len(self._persons)

    def __iter__(self):
        return iter(self._persons.values())

    @property
    def ids(self) -> list[str]:
        return list(self._persons)

    def find(self, node_id: str) -> Person | None:
        return self._persons.get(node_id)

    def degree(self, node_id: str) -> Degree | None:
        person = self.find(node_id)
        if person is None:
            return None
        return Degree(
            parents=len(person.parents),
            children=len(person.children),
            spouses=len(person.spouses),
        )

    def siblings(self, node_id: str) -> list[str] | None:
        """Stored siblings plus the other children of this node's parents."""
        person = self.find(node_id)
        if person is None:
            return None
        result = list(person.siblings)
        for parent_id in person.parents:
            parent = self.find(parent_id)
            if parent is None:
                continue
            result.extend(parent.children)
        return [s for s in dict.fromkeys(result) if s != node_id]

    def child_ids(self, node_id: str) -> list[str] | None:
        # Children are taken from the node's own list and from every node that
        # names it as a parent, so a one-sided edge still counts.
        person = self.find(node_id)
        if person is None:
            return None
        found = list(person.children)
        for other in self._persons.values():
            if node_id in other.parents:
                found.append(other.id)
        return list(dict.fromkeys(found))

    def parent_ids(self, node_id: str) -> list[str] | None:
        person = self.find(node_id)
        if person is None:
            return None
        found = list(person.parents)
        for other in self._persons.values():
            if node_id in other.children:
                found.append(other.id)
        return list(dict.fromkeys(found))

    def descendants(self, node_id: str) -> frozenset[str] | None:
        if node_id not in self._persons:
            return None
        cached = self._descendants.get(node_id)
        if cached is not None:
            return cached

        seen: set[str] = set()
        stack = [node_id]
        while stack:
            current = stack.pop()
            if current not in self._persons:
                # Dangling child id: counted as a descendant, not expanded.
                continue
            for child_id in self.child_ids(current):
                if child_id not in seen and child_id != node_id:
                    seen.add(child_id)
                    stack.append(child_id)

        result = frozenset(seen)
        self._descendants[node_id] = result
        return result

    def is_leaf(self, node_id: str) -> bool | None:
        """True iff the node has no descendants, direct or indirect."""
        descendants = self.descendants(node_id)
        if descendants is None:
            return None
        return not descendants

    def neighbours(self, node_id: str) -> list[str] | None:
        """Parents, spouses and children of a node that exist in the snapshot, in that order."""
        person = self.find(node_id)
        if person is None:
            return None
        ordered = itertools.chain(person.parents, person.spouses, person.children)
        return [n for n in dict.fromkeys(ordered) if n in self._persons and n != node_id]

    def reachable_from(self, root_id: str) -> list[str]:
        """Ids reachable from root over parent/child/spouse edges, in breadth-first order."""
        if root_id not in self._persons:
            return []
        order = [root_id]
        seen = {root_id}
        queue = deque([root_id])
        while queue:
            current = queue.popleft()
            for neighbour in self.neighbours(current):
                if neighbour not in seen:
                    seen.add(neighbour)
                    order.append(neighbour)
                    queue.append(neighbour)
        return order

    def to_networkx(self) -> nx.DiGraph:
        """Build a NetworkX directed graph with PARENT_OF and SPOUSE_OF edges."""
        G = nx.DiGraph()

        # Note: use 'person_name' instead of 'name' to avoid conflict with pydot
        for person in self._persons.values():
            G.add_node(
                person.id,
                person_name=person.attributes.display_name,
                gender=person.gender.value,
                birth_date=person.attributes.birth_date,
                death_date=person.attributes.death_date,
            )

        for person in self._persons.values():
            for child_id in person.children:
                if child_id in self._persons:
                    G.add_edge(person.id, child_id, relationship_type="PARENT_OF")
            for parent_id in person.parents:
                if parent_id in self._persons:
                    G.add_edge(parent_id, person.id, relationship_type="PARENT_OF")
            for spouse_id in person.spouses:
                if spouse_id in self._persons and not G.has_edge(spouse_id, person.id):
                    G.add_edge(person.id, spouse_id, relationship_type="SPOUSE_OF")

        return G

    def subgraph(self, node_ids: Iterable[str]) -> "GraphModel":
        keep = set(node_ids)
        return GraphModel({pid: p for pid, p in self._persons.items() if pid in keep})


def build_union_graph(G: nx.DiGraph) -> nx.DiGraph:
    """
    Build a graph using the union-node model for family tree drawing.

    Creates "family nodes" that connect spouse pairs to their children, so
    that all children of a couple hang from one point and siblings align.

    Args:
        G: Graph with PARENT_OF and SPOUSE_OF edges (see GraphModel.to_networkx)

    Returns:
        A new graph with person and family nodes
    """
    H = nx.DiGraph()

    for n, data in G.nodes(data=True):
        H.add_node(n, node_type="person", **data)

    # Collect spouse pairs (avoid duplicates by sorting)
    spouse_pairs: list[tuple] = []
    for u, v, edata in G.edges(data=True):
        if edata.get("relationship_type") == "SPOUSE_OF":
            pair = tuple(sorted([u, v], key=str))
            if pair not in spouse_pairs:
                spouse_pairs.append(pair)

    fam_for_pair: dict[tuple, str] = {}
    for a, b in spouse_pairs:
        fam_id = f"FAM_{a}_{b}"
        fam_for_pair[(a, b)] = fam_id
        H.add_node(fam_id, node_type="family", spouses=(a, b))
        H.add_edge(a, fam_id, edge_type="spouse_to_family")
        H.add_edge(b, fam_id, edge_type="spouse_to_family")

    parents_by_child: dict[str, list[str]] = {}
    for u, v, edata in G.edges(data=True):
        if edata.get("relationship_type") == "PARENT_OF":
            parents_by_child.setdefault(v, []).append(u)

    for child, parents in parents_by_child.items():
        parents = sorted(dict.fromkeys(parents), key=str)

        fam_id = None

        # Prefer the family node of a married pair among the parents
        if len(parents) >= 2:
            for p1, p2 in itertools.combinations(parents, 2):
                if (p1, p2) in fam_for_pair:
                    fam_id = fam_for_pair[(p1, p2)]
                    break

        # Otherwise a single-parent (or unmarried) family node
        if fam_id is None:
            fam_id = f"FAM_{'_'.join(map(str, parents))}"
            if fam_id not in H:
                H.add_node(fam_id, node_type="family", spouses=tuple(parents))
                for p in parents:
                    H.add_edge(p, fam_id, edge_type="spouse_to_family")

        H.add_edge(fam_id, child, edge_type="family_to_child")

    return H
