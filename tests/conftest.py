"""Shared fixtures: a small three-generation family plus an unrelated person."""

import pytest

from graph import GraphModel
from models import Attributes, Gender, Person, Relationship

TREE_ID = "tree-1"
OWNER_ID = "me"

GENDERS = {
    "me": Gender.MALE,
    "dad": Gender.MALE,
    "mom": Gender.FEMALE,
    "wife": Gender.FEMALE,
    "kid": Gender.OTHER,
    "gf": Gender.MALE,
    "gm": Gender.FEMALE,
    "sis": Gender.FEMALE,
    "mgf": Gender.MALE,
    "mgm": Gender.FEMALE,
    "uncle": Gender.MALE,
    "stranger": Gender.OTHER,
}

RELATIONSHIPS = [
    Relationship("gf", "gm", "SPOUSE_OF"),
    Relationship("gf", "dad", "PARENT_OF"),
    Relationship("gm", "dad", "PARENT_OF"),
    Relationship("gf", "uncle", "PARENT_OF"),
    Relationship("gm", "uncle", "PARENT_OF"),
    Relationship("mgf", "mgm", "SPOUSE_OF"),
    Relationship("mgf", "mom", "PARENT_OF"),
    Relationship("mgm", "mom", "PARENT_OF"),
    Relationship("dad", "mom", "SPOUSE_OF"),
    Relationship("dad", "me", "PARENT_OF"),
    Relationship("mom", "me", "PARENT_OF"),
    Relationship("dad", "sis", "PARENT_OF"),
    Relationship("mom", "sis", "PARENT_OF"),
    Relationship("me", "wife", "SPOUSE_OF"),
    Relationship("me", "kid", "PARENT_OF"),
    Relationship("wife", "kid", "PARENT_OF"),
]


def make_people(genders, relationships, statuses=None, owner_id=OWNER_ID, tree_id=TREE_ID):
    """Person records with symmetric relationship lists, in the order of `genders`."""
    statuses = statuses or {}
    links = {pid: {"parents": [], "children": [], "spouses": []} for pid in genders}
    for r in relationships:
        if r.relationship_type == "PARENT_OF":
            links[r.person1_id]["children"].append(r.person2_id)
            links[r.person2_id]["parents"].append(r.person1_id)
        elif r.relationship_type == "SPOUSE_OF":
            links[r.person1_id]["spouses"].append(r.person2_id)
            links[r.person2_id]["spouses"].append(r.person1_id)

    return [
        Person(
            id=pid,
            gender=gender,
            attributes=Attributes(
                display_name=pid.title(),
                family_tree_id=tree_id,
                status=statuses.get(pid),
                tree_owner_id=owner_id,
            ),
            parents=tuple(links[pid]["parents"]),
            children=tuple(links[pid]["children"]),
            spouses=tuple(links[pid]["spouses"]),
        )
        for pid, gender in genders.items()
    ]


@pytest.fixture
def people():
    return make_people(GENDERS, RELATIONSHIPS, statuses={"me": "active", "wife": "active"})


@pytest.fixture
def model(people):
    return GraphModel.from_snapshot(people)
