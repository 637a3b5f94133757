"""GEDCOM import: turn individuals and families into people and relationships."""

import logging
import re
from dataclasses import replace
from pathlib import Path

from ged4py import GedcomReader

from models import AccountStatus, Attributes, Gender, Person, Relationship

logger = logging.getLogger(__name__)

MONTHS = {
    "JAN": 1, "FEB": 2, "MAR": 3, "APR": 4, "MAY": 5, "JUN": 6,
    "JUL": 7, "AUG": 8, "SEP": 9, "OCT": 10, "NOV": 11, "DEC": 12,
}

QUALIFIERS = re.compile(
    r"^(ABT\.?|ABOUT|BEF\.?|BEFORE|AFT\.?|AFTER|EST\.?|CAL\.?|FROM|TO|BET\.?|CIRCA|CA\.?|AROUND):?\s*",
    re.IGNORECASE,
)

SEX_TO_GENDER = {"M": Gender.MALE, "F": Gender.FEMALE}


def _month(name: str) -> int | None:
    # First three letters identify the month: "Sept." -> SEP, "November" -> NOV
    return MONTHS.get(name.upper().rstrip(".")[:3])


def _iso(year: int, month: int | None, day: int | None) -> str | None:
    month = month or 1
    day = day or 1
    if not (1 <= month <= 12 and 1 <= day <= 31):
        return None
    return f"{year:04d}-{month:02d}-{day:02d}"


def parse_date_string(date_str: str | None) -> str | None:
    """
    Parse a GEDCOM date string into ISO format (YYYY-MM-DD).
    Returns None if the date cannot be parsed.

    Handles "25 NOV 1954", "NOV 1954", "1698", "ABT 1905", "(1839-08-29)",
    "01/27/1920" and "April 17, 1850". Missing month or day default to 1.
    """
    if not date_str:
        return None

    s = date_str.strip().strip("()").rstrip("?")
    s = QUALIFIERS.sub("", s).strip()
    if not s:
        return None

    match = re.match(r"^(\d{4})-(\d{2})-(\d{2})$", s)
    if match:
        year, month, day = (int(g) for g in match.groups())
        return _iso(year, month, day)

    match = re.match(r"^(\d{1,2})\s+([A-Za-z]+)\.?\s*(\d{4})$", s)
    if match:
        month = _month(match.group(2))
        if month:
            return _iso(int(match.group(3)), month, int(match.group(1)))

    match = re.match(r"^([A-Za-z]+)\.?,?\s*(\d{4})$", s)
    if match:
        month = _month(match.group(1))
        if month:
            return _iso(int(match.group(2)), month, None)

    match = re.match(r"^(\d{4})$", s)
    if match:
        return _iso(int(match.group(1)), None, None)

    match = re.match(r"^(\d{1,2})[-/](\d{1,2})[-/](\d{4})$", s)
    if match:
        return _iso(int(match.group(3)), int(match.group(1)), int(match.group(2)))

    match = re.match(r"^([A-Za-z]+)\.?\s*(\d{1,2}),?\s*(\d{4})$", s)
    if match:
        month = _month(match.group(1))
        if month:
            return _iso(int(match.group(3)), month, int(match.group(2)))

    return None


def extract_person_id(xref_id: str) -> str:
    """Person id from a GEDCOM xref like '@I_347421849@' -> 'I347421849'."""
    ident = re.sub(r"[^0-9A-Za-z]", "", xref_id)
    if not ident:
        raise ValueError(f"No usable ID in: {xref_id}")
    return ident


def parse_gedcom(filepath: Path) -> GedcomReader:
    """Open a GEDCOM file and return the reader object."""
    return GedcomReader(str(filepath))


def extract_name_parts(indi) -> tuple[str, str | None, str | None]:
    """Extract full name, given name, and surname from an individual record."""
    name_rec = indi.sub_tag("NAME")
    if name_rec is None or name_rec.value is None:
        return ("Unknown", None, None)

    name_value = name_rec.value

    # ged4py returns NAME as tuple: (given, surname, suffix)
    if isinstance(name_value, tuple):
        given, surname, suffix = name_value
        parts = [p for p in (given, surname, suffix) if p]
        return (" ".join(parts) or "Unknown", given or None, surname or None)

    full_name = str(name_value).replace("/", "").strip() or "Unknown"
    givn = name_rec.sub_tag("GIVN")
    surn = name_rec.sub_tag("SURN")
    return (full_name, givn.value if givn else None, surn.value if surn else None)


def extract_event_date(indi, tag: str) -> str | None:
    """ISO date of an event tag (BIRT, DEAT, ...) or None."""
    event = indi.sub_tag(tag)
    if event is None:
        return None
    date_rec = event.sub_tag("DATE")
    if date_rec is None or not date_rec.value:
        return None
    # ged4py may return DateValue objects
    return parse_date_string(str(date_rec.value))


def extract_gender(indi) -> Gender:
    sex_rec = indi.sub_tag("SEX")
    return SEX_TO_GENDER.get(sex_rec.value if sex_rec else None, Gender.OTHER)


def normalize_data(
    reader: GedcomReader, tree_id: str, owner_id: str | None = None
) -> tuple[list[Person], list[Relationship]]:
    """
    Extract persons and relationships from parsed GEDCOM data.

    Imported people have no account; spouses are recorded once per family and
    each child gets a PARENT_OF edge from every listed parent.
    """
    persons: list[Person] = []
    relationships: list[Relationship] = []

    for rec in reader.records0("INDI"):
        if rec.xref_id is None:
            continue

        full_name, given_name, surname = extract_name_parts(rec)
        persons.append(
            Person(
                id=extract_person_id(rec.xref_id),
                gender=extract_gender(rec),
                attributes=Attributes(
                    display_name=full_name,
                    first_name=given_name,
                    last_name=surname,
                    birth_date=extract_event_date(rec, "BIRT"),
                    death_date=extract_event_date(rec, "DEAT"),
                    family_tree_id=tree_id,
                    status=None,
                    tree_owner_id=owner_id,
                ),
            )
        )

    for rec in reader.records0("FAM"):
        if rec.xref_id is None:
            continue

        parents = []
        for tag in ("HUSB", "WIFE"):
            sub = rec.sub_tag(tag)
            if sub is not None and sub.xref_id:
                parents.append(extract_person_id(sub.xref_id))

        if len(parents) == 2:
            relationships.append(Relationship(parents[0], parents[1], "SPOUSE_OF"))

        for child in rec.sub_tags("CHIL"):
            if not child.xref_id:
                continue
            child_id = extract_person_id(child.xref_id)
            for parent_id in parents:
                relationships.append(Relationship(parent_id, child_id, "PARENT_OF"))

    logger.debug("GEDCOM import: %d people, %d relationships", len(persons), len(relationships))
    return persons, relationships


def claim_account(persons: list[Person], person_id: str) -> list[Person]:
    """Mark one imported person as holding an active account (the importing user)."""
    claimed = []
    for person in persons:
        if person.id == person_id:
            person = replace(person, attributes=replace(person.attributes, status=AccountStatus.ACTIVE.value))
        claimed.append(person)
    return claimed
