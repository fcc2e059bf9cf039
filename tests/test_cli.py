import json

from donorsync.cli import main


def test_check_incompatible(capsys):
    assert main(["check", "AB-", "O+"]) == 1
    assert "Incompatible (ABO blood group incompatibility)" in capsys.readouterr().out


def test_check_compatible(capsys):
    assert main(["check", "O-", "AB+"]) == 0
    assert "Compatible" in capsys.readouterr().out


def test_donors_for(capsys):
    main(["donors-for", "A-"])
    assert capsys.readouterr().out.strip() == "O-, A-"


def test_matrix(capsys):
    main(["matrix"])
    lines = capsys.readouterr().out.strip().splitlines()
    assert len(lines) == 9
    assert lines[1].split()[0] == "O-"
    assert lines[1].count("ok") == 8
    assert lines[-1].count("ok") == 1


def test_database_commands(tmp_path, capsys):
    db = str(tmp_path / "bank.db")
    assert main(["--db", db, "seed-demo", "--seed", "1"]) == 0
    assert "demo units" in capsys.readouterr().out
    assert main(["--db", db, "seed-demo", "--seed", "1"]) == 0
    assert "demo units" in capsys.readouterr().out

    main(["--db", db, "levels"])
    out = capsys.readouterr().out.splitlines()
    assert len(out) == 9

    main(["--db", db, "alerts"])
    capsys.readouterr()

    assert main(["--db", db, "ack", "O-", "critical-stock"]) == 0
    assert "Acknowledged" in capsys.readouterr().out
    assert main(["--db", db, "ack", "O-", "bogus"]) == 2

    path = tmp_path / "units.json"
    assert main(["--db", db, "export", "units", str(path)]) == 0
    assert len(json.loads(path.read_text(encoding="utf-8"))) > 0

    pdf = tmp_path / "levels.pdf"
    assert main(["--db", db, "report", str(pdf)]) == 0
    assert pdf.read_bytes().startswith(b"%PDF")
