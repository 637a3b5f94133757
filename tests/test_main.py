"""End-to-end tests of the command line."""

from test_parsing import GEDCOM

from main import main


def test_import_render_check(tmp_path, capsys):
    gedcom = tmp_path / "family.ged"
    gedcom.write_text(GEDCOM, encoding="utf-8")
    db = str(tmp_path / "family.db")

    assert main(["--db", db, "import", str(gedcom), "--tree-id", "smith", "--owner", "I1"]) == 0
    assert main(["--db", db, "check", "--tree-id", "smith"]) == 0

    output = tmp_path / "tree.png"
    assert main(["--db", db, "render", "--tree-id", "smith", "--root", "I3", "--output", str(output)]) == 0
    assert output.exists()

    out = capsys.readouterr().out
    assert "Found 3 persons and 3 relationships" in out
    assert "Laid out 3 of 3 people around I3" in out


def test_render_unknown_tree(tmp_path, capsys):
    db = str(tmp_path / "empty.db")
    assert main(["--db", db, "render", "--tree-id", "missing", "--output", str(tmp_path / "x.png")]) == 1
    assert "Error" in capsys.readouterr().out
