"""SQLite storage for family trees and a local persistence gateway on top of it."""

import logging
import sqlite3
import uuid
from pathlib import Path

from gateway import CreateResult, GatewayError, PersistenceGateway
from graph import GraphModel
from models import (
    Attributes,
    ConnectionOptions,
    Gender,
    NewMember,
    Person,
    RelationType,
    Relationship,
)
from validation import plan_add

logger = logging.getLogger(__name__)

PERSON_COLUMNS = (
    "id, tree_id, display_name, first_name, last_name, gender, birth_date, death_date, "
    "email, phone, is_blood_related, status"
)


def create_database(db_path: Path | str) -> sqlite3.Connection:
    """Create SQLite database with family_tree, person and relationship tables."""
    conn = sqlite3.connect(db_path)
    cursor = conn.cursor()

    cursor.execute("""
        CREATE TABLE IF NOT EXISTS family_tree (
            id TEXT PRIMARY KEY,
            name TEXT,
            owner_id TEXT
        )
    """)

    cursor.execute("""
        CREATE TABLE IF NOT EXISTS person (
            id TEXT PRIMARY KEY,
            tree_id TEXT NOT NULL,
            display_name TEXT NOT NULL,
            first_name TEXT,
            last_name TEXT,
            gender TEXT NOT NULL,
            birth_date TEXT,
            death_date TEXT,
            email TEXT,
            phone TEXT,
            is_blood_related INTEGER NOT NULL DEFAULT 1,
            status TEXT,
            FOREIGN KEY (tree_id) REFERENCES family_tree(id)
        )
    """)

    cursor.execute("""
        CREATE TABLE IF NOT EXISTS relationship (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            person1_id TEXT NOT NULL,
            person2_id TEXT NOT NULL,
            relationship_type TEXT NOT NULL,
            FOREIGN KEY (person1_id) REFERENCES person(id),
            FOREIGN KEY (person2_id) REFERENCES person(id)
        )
    """)

    conn.commit()
    return conn


def create_family_tree(conn: sqlite3.Connection, tree_id: str, owner_id: str, name: str = ""):
    conn.execute(
        "INSERT OR REPLACE INTO family_tree (id, name, owner_id) VALUES (?, ?, ?)",
        (tree_id, name, owner_id),
    )
    conn.commit()


def _person_row(tree_id: str, person: Person) -> tuple:
    a = person.attributes
    return (
        person.id,
        tree_id,
        a.display_name,
        a.first_name,
        a.last_name,
        person.gender.value,
        a.birth_date,
        a.death_date,
        a.email,
        a.phone,
        int(a.is_blood_related),
        a.status,
    )


def _insert_relationships(cursor: sqlite3.Cursor, relationships: list[Relationship]):
    cursor.executemany(
        """
        INSERT INTO relationship (person1_id, person2_id, relationship_type)
        VALUES (?, ?, ?)
        """,
        [(r.person1_id, r.person2_id, r.relationship_type) for r in relationships],
    )


def store_data(
    conn: sqlite3.Connection,
    tree_id: str,
    persons: list[Person],
    relationships: list[Relationship],
):
    """Insert persons and relationships into the database under one family tree."""
    cursor = conn.cursor()

    cursor.executemany(
        f"INSERT OR REPLACE INTO person ({PERSON_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
        [_person_row(tree_id, p) for p in persons],
    )
    _insert_relationships(cursor, relationships)

    conn.commit()


def tree_exists(conn: sqlite3.Connection, tree_id: str) -> bool:
    row = conn.execute("SELECT 1 FROM family_tree WHERE id = ?", (tree_id,)).fetchone()
    return row is not None


def load_snapshot(conn: sqlite3.Connection, tree_id: str) -> list[Person]:
    """
    Read every person of a tree with relationship lists derived from the
    relationship table. Each stored row feeds both endpoints, so the
    resulting lists are symmetric by construction.
    """
    owner = conn.execute("SELECT owner_id FROM family_tree WHERE id = ?", (tree_id,)).fetchone()
    owner_id = owner[0] if owner else None

    rows = conn.execute(
        f"SELECT {PERSON_COLUMNS} FROM person WHERE tree_id = ? ORDER BY rowid", (tree_id,)
    ).fetchall()
    ids = [row[0] for row in rows]
    members = set(ids)
    links: dict[str, dict[str, list[str]]] = {
        pid: {"parents": [], "children": [], "spouses": [], "siblings": []} for pid in ids
    }

    def link(person_id, list_name, other_id):
        target = links[person_id][list_name]
        if other_id != person_id and other_id not in target:
            target.append(other_id)

    cursor = conn.execute(
        "SELECT person1_id, person2_id, relationship_type FROM relationship ORDER BY id"
    )
    for a, b, relationship_type in cursor.fetchall():
        if a not in members or b not in members:
            continue
        if relationship_type == "PARENT_OF":
            link(a, "children", b)
            link(b, "parents", a)
        elif relationship_type == "SPOUSE_OF":
            link(a, "spouses", b)
            link(b, "spouses", a)
        elif relationship_type == "SIBLING_OF":
            link(a, "siblings", b)
            link(b, "siblings", a)

    persons = []
    for row in rows:
        (pid, tid, display_name, first_name, last_name, gender, birth_date, death_date,
         email, phone, is_blood_related, status) = row
        persons.append(
            Person(
                id=pid,
                gender=Gender(gender),
                attributes=Attributes(
                    display_name=display_name,
                    first_name=first_name,
                    last_name=last_name,
                    birth_date=birth_date,
                    death_date=death_date,
                    email=email,
                    phone=phone,
                    is_blood_related=bool(is_blood_related),
                    family_tree_id=tid,
                    status=status,
                    tree_owner_id=owner_id,
                ),
                parents=tuple(links[pid]["parents"]),
                children=tuple(links[pid]["children"]),
                spouses=tuple(links[pid]["spouses"]),
                siblings=tuple(links[pid]["siblings"]),
            )
        )
    return persons


class SqliteGateway(PersistenceGateway):
    """
    Persistence gateway backed by a local SQLite file.

    The coroutines call sqlite3 directly and block the event loop while a
    query runs. Fine for the CLI and tests; not a non-blocking backend.
    """

    def __init__(self, conn: sqlite3.Connection):
        self.conn = conn

    @classmethod
    def open(cls, db_path: Path | str) -> "SqliteGateway":
        return cls(create_database(db_path))

    def close(self):
        self.conn.close()

    def _tree_of(self, person_id: str) -> str | None:
        row = self.conn.execute("SELECT tree_id FROM person WHERE id = ?", (person_id,)).fetchone()
        return row[0] if row else None

    async def resolve_family_tree_id(self, user_id: str) -> str | None:
        tree_id = self._tree_of(user_id)
        if tree_id is not None:
            return tree_id
        row = self.conn.execute(
            "SELECT id FROM family_tree WHERE owner_id = ? ORDER BY rowid", (user_id,)
        ).fetchone()
        return row[0] if row else None

    async def fetch_graph(self, family_tree_id: str, root_id: str | None = None) -> list[Person]:
        # The whole tree is returned; root_id only matters to the layout.
        if not tree_exists(self.conn, family_tree_id):
            raise GatewayError(f"Family tree {family_tree_id} not found")
        return load_snapshot(self.conn, family_tree_id)

    async def create_member(
        self,
        member: NewMember,
        relation: RelationType,
        selected_id: str,
        options: ConnectionOptions,
    ) -> CreateResult:
        tree_id = self._tree_of(selected_id)
        if tree_id is None:
            raise GatewayError("Selected member not found")

        try:
            member.validate()
        except ValueError as e:
            raise GatewayError(str(e)) from e

        snapshot = load_snapshot(self.conn, tree_id)
        model = GraphModel.from_snapshot(snapshot)
        new_id = str(uuid.uuid4())
        try:
            plan = plan_add(model, relation, selected_id, options, new_id=new_id)
        except ValueError as e:
            raise GatewayError(str(e)) from e

        owner_id = snapshot[0].attributes.tree_owner_id if snapshot else None
        person = Person(
            id=new_id,
            gender=member.gender,
            attributes=member.to_attributes(tree_id, owner_id),
        )
        with self.conn:
            cursor = self.conn.cursor()
            cursor.execute(
                f"INSERT INTO person ({PERSON_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
                _person_row(tree_id, person),
            )
            _insert_relationships(cursor, plan.edges)

        logger.info(
            "Created %s %s for %s with %d collateral edge(s)",
            relation.value, new_id, selected_id, len(plan.collateral),
        )
        return CreateResult(success=True, new_node_id=new_id)

    async def delete_member(self, member_id: str, family_tree_id: str) -> bool:
        if self._tree_of(member_id) != family_tree_id:
            raise GatewayError("Member not found in this family tree")

        with self.conn:
            self.conn.execute(
                "DELETE FROM relationship WHERE person1_id = ? OR person2_id = ?",
                (member_id, member_id),
            )
            self.conn.execute("DELETE FROM person WHERE id = ?", (member_id,))

        logger.info("Deleted member %s from tree %s", member_id, family_tree_id)
        return True
