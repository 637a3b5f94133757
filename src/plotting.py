"""Rendering of a computed layout: PNG/SVG/PDF via matplotlib, DOT via pydot."""

from pathlib import Path

import pydot
from matplotlib.figure import Figure
from matplotlib.patches import FancyBboxPatch

from graph import GraphModel
from models import Gender, Layout
from viewport import HEIGHT, WIDTH

FILL_COLORS = {
    Gender.MALE: "lightblue",
    Gender.FEMALE: "lightpink",
    Gender.OTHER: "lightgray",
}

# Fraction of a grid cell left empty around each node box
NODE_PADDING = 0.1


def node_label(model: GraphModel, node_id: str) -> str:
    person = model.find(node_id)
    if person is None:
        return node_id
    a = person.attributes
    birth_year = a.birth_date[:4] if a.birth_date else ""
    death_year = a.death_date[:4] if a.death_date else ""
    if birth_year or death_year:
        return f"{a.display_name}\n{birth_year}-{death_year}"
    return a.display_name


def plot_layout(layout: Layout, model: GraphModel, output_path: Path, selected_id: str | None = None):
    """
    Draw a laid-out tree in pixel space (grid units times WIDTH/HEIGHT).

    Nodes are rounded boxes coloured by gender; the selected node gets a
    thicker outline. The image format follows the file extension.
    """
    width_px = layout.canvas_width * WIDTH
    height_px = layout.canvas_height * HEIGHT

    # No pyplot: saving works without a GUI backend
    fig = Figure(figsize=(max(width_px / 100, 2), max(height_px / 100, 2)))
    ax = fig.subplots()
    ax.set_xlim(0, width_px)
    ax.set_ylim(height_px, 0)  # screen coordinates: y grows downwards
    ax.set_aspect("equal")
    ax.axis("off")

    for c in layout.connectors:
        ax.plot(
            [c.x1 * WIDTH, c.x2 * WIDTH],
            [c.y1 * HEIGHT, c.y2 * HEIGHT],
            color="darkgray",
            linewidth=1,
            zorder=1,
        )

    pad_x, pad_y = NODE_PADDING * WIDTH, NODE_PADDING * HEIGHT
    for pos in layout.nodes:
        person = model.find(pos.id)
        gender = person.gender if person else Gender.OTHER
        ax.add_patch(
            FancyBboxPatch(
                (pos.col * WIDTH + pad_x, pos.row * HEIGHT + pad_y),
                WIDTH - 2 * pad_x,
                HEIGHT - 2 * pad_y,
                boxstyle="round,pad=0,rounding_size=12",
                facecolor=FILL_COLORS[gender],
                edgecolor="black",
                linewidth=2.5 if pos.id == selected_id else 0.8,
                zorder=2,
            )
        )
        ax.text(
            (pos.col + 0.5) * WIDTH,
            (pos.row + 0.5) * HEIGHT,
            node_label(model, pos.id),
            ha="center",
            va="center",
            fontsize=8,
            zorder=3,
        )

    fig.tight_layout()
    fig.savefig(output_path, dpi=100)


def layout_to_dot(layout: Layout, model: GraphModel) -> pydot.Dot:
    """
    Build a pydot graph with node positions pinned to the layout.

    Render with `neato -n` so Graphviz keeps the given coordinates. Graphviz
    puts y=0 at the bottom, so rows are flipped.
    """
    P = pydot.Dot(graph_type="graph")
    P.set("splines", "false")
    P.set("outputorder", "edgesfirst")

    height_pt = layout.canvas_height * HEIGHT
    for pos in layout.nodes:
        person = model.find(pos.id)
        gender = person.gender if person else Gender.OTHER
        x = (pos.col + 0.5) * WIDTH
        y = height_pt - (pos.row + 0.5) * HEIGHT
        P.add_node(
            pydot.Node(
                str(pos.id),
                label=node_label(model, pos.id),
                shape="box",
                style="rounded,filled",
                fillcolor=FILL_COLORS[gender],
                fontsize="10",
                pos=f"{x:.1f},{y:.1f}!",
            )
        )

    # Connectors become edges between invisible points at their end coordinates
    for i, c in enumerate(layout.connectors):
        ends = []
        for j, (gx, gy) in enumerate(((c.x1, c.y1), (c.x2, c.y2))):
            name = f"c{i}_{j}"
            P.add_node(
                pydot.Node(
                    name,
                    shape="point",
                    width="0.01",
                    label="",
                    pos=f"{gx * WIDTH:.1f},{height_pt - gy * HEIGHT:.1f}!",
                )
            )
            ends.append(name)
        P.add_edge(pydot.Edge(ends[0], ends[1], color="darkgray"))

    return P


def write_layout(layout: Layout, model: GraphModel, output_path: Path, selected_id: str | None = None):
    """Write a layout to output_path; .dot files get DOT source, anything else an image."""
    ext = output_path.suffix.lower().lstrip(".")
    if ext == "dot":
        output_path.write_text(layout_to_dot(layout, model).to_string())
        return

    if ext not in ("png", "svg", "pdf"):
        output_path = output_path.with_suffix(".png")
    plot_layout(layout, model, output_path, selected_id)
