"""
Command line entry point.

    kinship-tree import seay.ged --tree-id seay --owner I1
    kinship-tree render --tree-id seay --root I1 --output tree.png
    kinship-tree check --tree-id seay
"""

import argparse
import asyncio
import logging
import sys
from pathlib import Path

from config import settings
from controller import TreeController, TreeStatus
from database import SqliteGateway, create_database, create_family_tree, load_snapshot, store_data
from graph import GraphModel
from parsing import claim_account, normalize_data, parse_gedcom
from plotting import write_layout
from validation import validate_graph
from viewport import ViewportSize


def cmd_import(args) -> int:
    db_path = Path(args.db)
    print(f"Parsing GEDCOM file: {args.gedcom}")
    reader = parse_gedcom(Path(args.gedcom))

    print("Normalizing data...")
    persons, relationships = normalize_data(reader, args.tree_id, args.owner)
    if args.owner:
        persons = claim_account(persons, args.owner)
    print(f"  Found {len(persons)} persons and {len(relationships)} relationships")

    print(f"Storing data in SQLite: {db_path}")
    conn = create_database(db_path)
    create_family_tree(conn, args.tree_id, args.owner or "", name=args.name or args.tree_id)
    store_data(conn, args.tree_id, persons, relationships)
    conn.close()
    print("Done!")
    return 0


def cmd_render(args) -> int:
    gateway = SqliteGateway.open(args.db)
    viewport_size = ViewportSize.from_window(args.width, args.height, settings.HEADER_HEIGHT)
    controller = TreeController(gateway, args.actor or args.root or "", viewport_size, args.tree_id)

    try:
        asyncio.run(controller.load(args.root))
    finally:
        gateway.close()

    state = controller.state
    if state.status == TreeStatus.NO_TREE:
        print("No family tree found")
        return 1
    if state.status == TreeStatus.ERROR:
        print(f"Error: {state.error}")
        return 1
    if state.layout is None:
        print("The family tree has no members yet")
        return 1

    layout = state.layout
    print(f"Laid out {len(layout.nodes)} of {len(controller.model)} people around {layout.root_id}")
    print(f"  Canvas: {layout.canvas_width} x {layout.canvas_height} grid units")
    print(f"  Zoom: {state.scale:.2f}, position: ({state.position.x:.0f}, {state.position.y:.0f})")

    output = Path(args.output)
    write_layout(layout, controller.model, output, selected_id=layout.root_id)
    print(f"Tree saved to {output}")
    return 0


def cmd_check(args) -> int:
    conn = create_database(args.db)
    model = GraphModel.from_snapshot(load_snapshot(conn, args.tree_id))
    conn.close()

    print(f"Validating {len(model)} people...")
    warnings = validate_graph(model)
    if not warnings:
        print("  No validation issues found")
        return 0

    print(f"  Found {len(warnings)} validation warnings:")
    for w in warnings[: args.limit]:
        print(f"    - {w}")
    if len(warnings) > args.limit:
        print(f"    ... and {len(warnings) - args.limit} more")
    return 1


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="kinship-tree", description="Family tree layout tools")
    parser.add_argument("--db", default=settings.FAMILY_TREE_DB, help="SQLite database path")
    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("import", help="Import a GEDCOM file into a family tree")
    p.add_argument("gedcom")
    p.add_argument("--tree-id", required=True)
    p.add_argument("--owner", help="Person id of the tree owner")
    p.add_argument("--name")
    p.set_defaults(func=cmd_import)

    p = sub.add_parser("render", help="Lay out a family tree and write it to a file")
    p.add_argument("--tree-id", required=True)
    p.add_argument("--root", help="Person id to anchor the layout on")
    p.add_argument("--actor", help="Person id of the viewing user")
    p.add_argument("--output", default="family_tree.png")
    p.add_argument("--width", type=int, default=settings.VIEWPORT_WIDTH)
    p.add_argument("--height", type=int, default=settings.VIEWPORT_HEIGHT)
    p.set_defaults(func=cmd_render)

    p = sub.add_parser("check", help="Report integrity problems in a family tree")
    p.add_argument("--tree-id", required=True)
    p.add_argument("--limit", type=int, default=10)
    p.set_defaults(func=cmd_check)

    return parser


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(level=settings.LOG_LEVEL, format="%(levelname)s %(name)s: %(message)s")
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
