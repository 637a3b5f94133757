"""Generational grid layout of a kinship graph around a chosen root."""

import logging
import math
from collections import deque

from graph import GraphModel, build_union_graph
from models import Connector, Layout, NodePosition

logger = logging.getLogger(__name__)


def _round_half_up(value: float) -> int:
    return math.floor(value + 0.5)


def assign_generations(model: GraphModel, root_id: str, reachable: list[str]) -> dict[str, int]:
    """
    Assign a generation number to every reachable node (root is 0).

    Ancestors of the root are numbered first by walking parent edges upwards,
    then descendants by walking child edges downwards. Everybody else (in-laws,
    cousins, ...) takes the generation of whichever placed relative reaches
    them first in breadth-first order: a spouse shares it, a parent is one
    less, a child one more.
    """
    allowed = set(reachable)
    generation = {root_id: 0}

    queue = deque([root_id])
    while queue:
        current = queue.popleft()
        for parent_id in model.parent_ids(current):
            if parent_id in allowed and parent_id not in generation:
                generation[parent_id] = generation[current] - 1
                queue.append(parent_id)

    queue = deque([root_id])
    while queue:
        current = queue.popleft()
        for child_id in model.child_ids(current):
            if child_id in allowed and child_id not in generation:
                generation[child_id] = generation[current] + 1
                queue.append(child_id)

    queue = deque(n for n in reachable if n in generation)
    while queue:
        current = queue.popleft()
        person = model.find(current)
        related = (
            [(s, 0) for s in person.spouses]
            + [(p, -1) for p in model.parent_ids(current)]
            + [(c, 1) for c in model.child_ids(current)]
        )
        for other, offset in related:
            if other in allowed and other not in generation:
                generation[other] = generation[current] + offset
                queue.append(other)

    return generation


def _family_units(model: GraphModel, row_nodes: list[str], discovery: dict[str, int]) -> list[list[str]]:
    """Group the nodes of one row into units of spouses sharing that row."""
    in_row = set(row_nodes)
    unit_of: dict[str, int] = {}
    units: list[list[str]] = []
    for node_id in sorted(row_nodes, key=discovery.__getitem__):
        if node_id in unit_of:
            continue
        members = []
        stack = [node_id]
        unit_of[node_id] = len(units)
        while stack:
            current = stack.pop()
            members.append(current)
            for spouse_id in model.find(current).spouses:
                if spouse_id in in_row and spouse_id not in unit_of:
                    unit_of[spouse_id] = len(units)
                    stack.append(spouse_id)
        units.append(sorted(members, key=discovery.__getitem__))
    return units


def _place_row(units: list[list[str]], desired: list[float | None], columns: dict[str, int]):
    """Assign consecutive columns to units left to right, never moving left of the cursor."""
    cursor = 0
    for unit, target in zip(units, desired):
        width = len(unit)
        if target is None:
            start = max(cursor, columns.get(unit[0], cursor))
        else:
            start = max(cursor, _round_half_up(target - (width - 1) / 2))
        for offset, node_id in enumerate(unit):
            columns[node_id] = start + offset
        cursor = start + width


def _mean_column(ids: list[str], columns: dict[str, int]) -> float | None:
    placed = [columns[i] for i in ids if i in columns]
    if not placed:
        return None
    return sum(placed) / len(placed)


def _connectors(model: GraphModel, positions: dict[str, NodePosition]) -> list[Connector]:
    def centre(node_id):
        pos = positions[node_id]
        return pos.col + 0.5, pos.row + 0.5

    H = build_union_graph(model.to_networkx())
    connectors: list[Connector] = []

    for node, data in H.nodes(data=True):
        if data.get("node_type") != "family":
            continue

        parents = [p for p in data.get("spouses", ()) if p in positions]
        if len(parents) == 2:
            (ax, ay), (bx, by) = sorted(centre(p) for p in parents)
            connectors.append(Connector(ax, ay, bx, by, "SPOUSE_OF"))

        children = [c for c in H.successors(node) if c in positions]
        if not parents or not children:
            continue

        parent_centres = [centre(p) for p in parents]
        anchor_x = sum(x for x, _ in parent_centres) / len(parent_centres)
        anchor_y = sum(y for _, y in parent_centres) / len(parent_centres)
        bar_y = max(anchor_y, min(positions[c].row for c in children))

        if bar_y > anchor_y:
            connectors.append(Connector(anchor_x, anchor_y, anchor_x, bar_y, "PARENT_OF"))

        child_xs = [centre(c)[0] for c in children]
        left, right = min(child_xs + [anchor_x]), max(child_xs + [anchor_x])
        if right > left:
            connectors.append(Connector(left, bar_y, right, bar_y, "PARENT_OF"))

        for child_id in children:
            cx, cy = centre(child_id)
            connectors.append(Connector(cx, bar_y, cx, cy, "PARENT_OF"))

    return connectors


def compute_layout(model: GraphModel, root_id: str) -> Layout | None:
    """
    Lay out every node reachable from root_id on an integer grid.

    Rows are generations (ancestors above the root, descendants below),
    spouses share a row and sit next to each other, and no two nodes share a
    cell. Returns None when root_id is not in the snapshot.
    """
    if root_id not in model:
        logger.debug("Root %s not in snapshot, nothing to lay out", root_id)
        return None

    reachable = model.reachable_from(root_id)
    discovery = {node_id: index for index, node_id in enumerate(reachable)}
    generation = assign_generations(model, root_id, reachable)

    top = min(generation.values())
    rows: dict[int, list[str]] = {}
    for node_id in reachable:
        rows.setdefault(generation[node_id] - top, []).append(node_id)
    row_numbers = sorted(rows)

    units_by_row = {r: _family_units(model, rows[r], discovery) for r in row_numbers}
    columns: dict[str, int] = {}

    # Top-down: centre each unit under its members' parents.
    for r in row_numbers:
        units = units_by_row[r]
        desired = [_mean_column([p for m in unit for p in model.parent_ids(m)], columns) for unit in units]
        keyed = sorted(
            range(len(units)),
            key=lambda i: (desired[i] is None, desired[i] or 0.0, discovery[units[i][0]]),
        )
        units_by_row[r] = [units[i] for i in keyed]
        _place_row(units_by_row[r], [desired[i] for i in keyed], columns)

    # Bottom-up: pull parents over their children, keeping each row's order.
    lower = set()
    for r in reversed(row_numbers):
        units = units_by_row[r]
        desired = []
        for unit in units:
            kids = [c for m in unit for c in model.child_ids(m) if c in lower]
            desired.append(_mean_column(kids, columns))
        _place_row(units, desired, columns)
        lower.update(rows[r])

    shift = min(columns.values())
    positions = {
        node_id: NodePosition(node_id, columns[node_id] - shift, generation[node_id] - top)
        for node_id in reachable
    }

    nodes = tuple(positions[n] for n in reachable)
    connectors = tuple(_connectors(model.subgraph(reachable), positions))
    canvas_width = max(p.col for p in nodes) + 1
    canvas_height = max(p.row for p in nodes) + 1

    logger.debug(
        "Laid out %d of %d nodes around %s on a %dx%d grid",
        len(nodes), len(model), root_id, canvas_width, canvas_height,
    )
    return Layout(
        root_id=root_id,
        nodes=nodes,
        connectors=connectors,
        canvas_width=canvas_width,
        canvas_height=canvas_height,
    )
