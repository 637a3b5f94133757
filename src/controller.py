"""Tree view orchestrator: user commands in, observable state out."""

import logging
from dataclasses import dataclass, replace
from enum import Enum
from typing import Callable

from config import settings
from gateway import GatewayError, PersistenceGateway
from graph import GraphModel
from layout import compute_layout
from models import ConnectionOptions, Layout, NewMember, RelationType
from validation import Decision, can_delete, check_add
from viewport import Point, ViewportController, ViewportSize

logger = logging.getLogger(__name__)


class TreeStatus(str, Enum):
    LOADING = "loading"
    READY = "ready"
    EMPTY = "empty"
    NO_TREE = "no_tree"
    ERROR = "error"


@dataclass(frozen=True)
class TreeState:
    layout: Layout | None = None
    scale: float = 1.0
    position: Point = Point(0, 0)
    selected_node_id: str | None = None
    root_id: str | None = None
    loading: bool = False
    error: str | None = None
    status: TreeStatus = TreeStatus.LOADING
    pending: frozenset = frozenset()
    refusal: Decision | None = None


class TreeController:
    """
    Owns the snapshot, layout and viewport of one tree view.

    Every change of state goes through a named command and is published to
    subscribers as a new TreeState. Snapshots are never patched locally: a
    confirmed mutation triggers a full re-fetch and re-layout.
    """

    def __init__(
        self,
        gateway: PersistenceGateway,
        actor_id: str,
        viewport_size: ViewportSize | None = None,
        family_tree_id: str | None = None,
    ):
        self.gateway = gateway
        self.actor_id = actor_id
        self.family_tree_id = family_tree_id
        self.viewport_size = viewport_size or ViewportSize.from_window(
            settings.VIEWPORT_WIDTH, settings.VIEWPORT_HEIGHT, settings.HEADER_HEIGHT
        )
        self.viewport = ViewportController(min_top_margin=settings.MIN_TOP_MARGIN)
        self.model: GraphModel | None = None
        self.state = TreeState(root_id=actor_id)
        self._generation = 0
        self._subscribers: list[Callable[[TreeState], None]] = []

    def subscribe(self, callback: Callable[[TreeState], None]) -> Callable[[], None]:
        self._subscribers.append(callback)
        return lambda: self._subscribers.remove(callback)

    def _update(self, **changes):
        self.state = replace(self.state, **changes)
        for callback in list(self._subscribers):
            callback(self.state)

    def _view(self) -> dict:
        return {"scale": self.viewport.scale, "position": self.viewport.position}

    # ------------------------------------------------------------------
    # Fetching
    # ------------------------------------------------------------------

    async def load(self, root_id: str | None = None):
        """
        Fetch a fresh snapshot and lay it out, replacing all prior state.

        A load started later supersedes this one: if its response arrives
        after a newer request was issued, it is dropped.
        """
        self._generation += 1
        token = self._generation
        self._update(loading=True)

        if self.family_tree_id is None:
            try:
                self.family_tree_id = await self.gateway.resolve_family_tree_id(self.actor_id)
            except GatewayError as e:
                if token != self._generation:
                    logger.info("Ignoring failure of superseded tree lookup: %s", e)
                    return
                logger.exception("Failed to resolve family tree for %s", self.actor_id)
                self._update(loading=False, error=str(e), status=TreeStatus.ERROR)
                return
        if token != self._generation:
            return
        if self.family_tree_id is None:
            self.model = None
            self._update(loading=False, layout=None, status=TreeStatus.NO_TREE, error=None)
            return

        root = root_id or self.state.root_id or self.actor_id
        try:
            persons = await self.gateway.fetch_graph(self.family_tree_id, root)
        except GatewayError as e:
            if token != self._generation:
                logger.info("Ignoring failure of superseded fetch: %s", e)
                return
            logger.exception("Failed to load family tree %s", self.family_tree_id)
            self._update(loading=False, error=str(e), status=TreeStatus.ERROR)
            return

        if token != self._generation:
            logger.info("Dropping superseded snapshot for tree %s", self.family_tree_id)
            return
        self._apply_snapshot(persons, root)

    def _apply_snapshot(self, persons, preferred_root: str):
        model = GraphModel.from_snapshot(persons)
        self.model = model

        if not len(model):
            self._update(
                layout=None, selected_node_id=None, loading=False, error=None, status=TreeStatus.EMPTY
            )
            return

        candidates = [preferred_root, self.actor_id, model.ids[0]]
        root = next(c for c in candidates if c in model)
        layout = compute_layout(model, root)
        self.viewport.fit(layout, self.viewport_size, root)

        selected = self.state.selected_node_id
        if selected not in model:
            selected = None

        self._update(
            layout=layout,
            root_id=root,
            selected_node_id=selected,
            loading=False,
            error=None,
            status=TreeStatus.READY,
            **self._view(),
        )

    # ------------------------------------------------------------------
    # Selection and viewport commands
    # ------------------------------------------------------------------

    def select_node(self, node_id: str):
        """Select a node and re-root the layout on it; selecting it again deselects."""
        if self.model is None or node_id not in self.model:
            logger.debug("Ignoring selection of unknown node %s", node_id)
            return

        if node_id == self.state.selected_node_id:
            self._update(selected_node_id=None)
            return

        layout = compute_layout(self.model, node_id)
        self.viewport.fit(layout, self.viewport_size, node_id)
        self._update(selected_node_id=node_id, root_id=node_id, layout=layout, refusal=None, **self._view())

    def zoom_in(self):
        self.viewport.zoom_in()
        self._update(scale=self.viewport.scale)

    def zoom_out(self):
        self.viewport.zoom_out()
        self._update(scale=self.viewport.scale)

    def pan(self, dx: float, dy: float):
        self.viewport.pan(dx, dy)
        self._update(position=self.viewport.position)

    def wheel(self, delta_x: float, delta_y: float):
        """Scrolling moves the tree against the wheel direction."""
        self.pan(-delta_x, -delta_y)

    def recenter(self, node_id: str | None = None):
        if self.viewport.recenter(self.state.layout, self.viewport_size, node_id):
            self._update(position=self.viewport.position)

    def resize(self, viewport_size: ViewportSize):
        self.viewport_size = viewport_size
        if self.state.layout is not None:
            self.viewport.fit(self.state.layout, viewport_size, self.state.root_id)
            self._update(**self._view())

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def is_pending(self, node_id: str) -> bool:
        return node_id in self.state.pending

    def _refuse(self, decision: Decision):
        logger.warning("Refused edit: %s", decision.message)
        self._update(error=decision.message, refusal=decision)

    async def request_add(
        self,
        relation: RelationType,
        member: NewMember,
        options: ConnectionOptions = ConnectionOptions(),
    ) -> str | None:
        """Create a relative of the selected node. Returns the new id, or None if nothing was created."""
        selected = self.state.selected_node_id
        if selected is None or self.model is None or self.is_pending(selected):
            return None

        try:
            member.validate()
        except ValueError as e:
            self._update(error=str(e))
            return None

        decision = check_add(self.model, relation, selected)
        if not decision:
            self._refuse(decision)
            return None

        self._update(pending=self.state.pending | {selected}, error=None, refusal=None)
        try:
            result = await self.gateway.create_member(member, relation, selected, options)
        except GatewayError as e:
            logger.exception("Failed to add %s to %s", relation.value, selected)
            self._update(pending=self.state.pending - {selected}, error=str(e))
            return None

        self._update(pending=self.state.pending - {selected}, selected_node_id=None)
        await self.load()
        return result.new_node_id

    async def request_delete(self) -> bool:
        """Delete the selected node if the validator allows it."""
        selected = self.state.selected_node_id
        if selected is None or self.model is None or self.is_pending(selected):
            return False

        decision = can_delete(self.model, selected, self.actor_id)
        if not decision:
            self._refuse(decision)
            return False

        person = self.model.find(selected)
        tree_id = person.attributes.family_tree_id or self.family_tree_id
        if tree_id is None:
            self._update(error="Family tree ID not found")
            return False

        self._update(pending=self.state.pending | {selected}, error=None, refusal=None)
        try:
            await self.gateway.delete_member(selected, tree_id)
        except GatewayError as e:
            logger.exception("Failed to delete member %s", selected)
            self._update(pending=self.state.pending - {selected}, error=str(e))
            return False

        self._update(pending=self.state.pending - {selected}, selected_node_id=None)
        await self.load()
        return True
