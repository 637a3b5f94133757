"""Viewport math: fit-to-screen zoom, centring and pan/zoom state."""

import logging
from dataclasses import dataclass

from models import Layout

logger = logging.getLogger(__name__)

# Pixel size of one grid unit
WIDTH = 150
HEIGHT = 150

MIN_FIT_SCALE = 0.1
MAX_FIT_SCALE = 1.0
MIN_SCALE = 0.1
MAX_SCALE = 2.0
ZOOM_STEP = 0.1
FIT_RATIO = 0.9
MIN_TOP_MARGIN = 100


@dataclass(frozen=True)
class ViewportSize:
    width: float
    height: float

    @classmethod
    def from_window(cls, width: float, height: float, header_height: float = 0) -> "ViewportSize":
        """Usable area of a window whose top is covered by a fixed header."""
        return cls(width, max(height - header_height, 0))


@dataclass(frozen=True)
class Point:
    x: float
    y: float


def canvas_pixels(layout: Layout) -> tuple[float, float]:
    return layout.canvas_width * WIDTH, layout.canvas_height * HEIGHT


def compute_optimal_zoom(layout: Layout | None, viewport: ViewportSize) -> float:
    """
    Largest scale in [0.1, 1.0] at which the whole tree fits in 90% of the
    viewport. Each axis gives its own limit and the smaller one wins.
    """
    if layout is None or not layout.nodes:
        return MAX_FIT_SCALE

    tree_width, tree_height = canvas_pixels(layout)
    scale_x = viewport.width * FIT_RATIO / tree_width
    scale_y = viewport.height * FIT_RATIO / tree_height
    optimal = min(scale_x, scale_y)

    return min(max(optimal, MIN_FIT_SCALE), MAX_FIT_SCALE)


def center_on(
    node_id: str | None,
    layout: Layout | None,
    viewport: ViewportSize,
    scale: float,
    min_top_margin: float = MIN_TOP_MARGIN,
) -> Point | None:
    """
    Translation that puts a node's centre (or the whole tree, when node_id is
    None) at the centre of the viewport. The vertical offset is then pushed
    down as needed so the top edge stays at least min_top_margin pixels below
    the top of the viewport.

    Returns None if the layout is missing or the node is not laid out.
    """
    if layout is None:
        return None

    if node_id is None:
        tree_width, tree_height = canvas_pixels(layout)
        x = (viewport.width - tree_width * scale) / 2
        y = (viewport.height - tree_height * scale) / 2
        # The tree's top edge sits at y on screen
        if y < min_top_margin:
            y = min_top_margin
        return Point(x, y)

    target = layout.position_of(node_id)
    if target is None:
        logger.debug("Node %s is not part of the layout, cannot centre on it", node_id)
        return None

    node_x = (target.col + 0.5) * WIDTH
    node_y = (target.row + 0.5) * HEIGHT
    x = viewport.width / 2 - node_x * scale
    y = viewport.height / 2 - node_y * scale

    node_top = target.row * HEIGHT * scale + y
    if node_top < min_top_margin:
        y += min_top_margin - node_top

    return Point(x, y)


class ViewportController:
    """Owns scale and translation; all changes go through the methods below."""

    def __init__(self, scale: float = 1.0, position: Point = Point(0, 0), min_top_margin: float = MIN_TOP_MARGIN):
        self.scale = scale
        self.position = position
        self.min_top_margin = min_top_margin

    def zoom_in(self) -> float:
        self.scale = min(self.scale + ZOOM_STEP, MAX_SCALE)
        return self.scale

    def zoom_out(self) -> float:
        self.scale = max(self.scale - ZOOM_STEP, MIN_SCALE)
        return self.scale

    def pan(self, dx: float, dy: float) -> Point:
        # Unbounded: the tree may be dragged arbitrarily far off screen.
        self.position = Point(self.position.x + dx, self.position.y + dy)
        return self.position

    def fit(self, layout: Layout | None, viewport: ViewportSize, node_id: str | None = None):
        """Reset zoom to the optimal fit and centre on node_id (or the tree)."""
        self.scale = compute_optimal_zoom(layout, viewport)
        self.recenter(layout, viewport, node_id)

    def recenter(self, layout: Layout | None, viewport: ViewportSize, node_id: str | None = None) -> bool:
        position = center_on(node_id, layout, viewport, self.scale, self.min_top_margin)
        if position is None:
            return False
        self.position = position
        return True
