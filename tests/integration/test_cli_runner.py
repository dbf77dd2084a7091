import json

from dropcheck_agent.archive import ArchiveNotFoundError
from dropcheck_agent.cli import main


def test_cli_prints_json_result(fake_source_cls, capsys, tmp_path) -> None:
    domain_file = tmp_path / "domains.txt"
    domain_file.write_text("# expired last week\nspammy.example\n\ngone.example  # whois says free\n", encoding="utf-8")
    source = fake_source_cls(
        {
            "clean.example": ["plain words"],
            "spammy.example": ["cheap replica watches replica bags replica"],
            "gone.example": ArchiveNotFoundError("no record"),
        }
    )

    code = main(["clean.example", "--file", str(domain_file), "--json", "--max-snapshots", "3"], source=source)

    assert code == 0
    out, err = capsys.readouterr()
    payload = json.loads(out)
    assert [r["domain"] for r in payload["results"]] == ["clean.example", "spammy.example", "gone.example"]
    assert [r["status"] for r in payload["results"]] == ["CLEAN", "SPAM", "UNAVAILABLE"]
    assert payload["summary"]["total"] == 3
    assert "Starting spam analysis for 3 domain(s)" in err


def test_cli_custom_stop_words_only(fake_source_cls, capsys) -> None:
    source = fake_source_cls({"shop.example": ["casino night fundraiser", "bake sale"]})

    code = main(["shop.example", "--stop-words", "bake", "--no-default-stop-words"], source=source)

    assert code == 0
    out, _ = capsys.readouterr()
    assert "SUSPICIOUS" in out
    assert "bake=1" in out
    assert "1 suspicious" in out


def test_cli_rejects_empty_input(fake_source_cls, capsys) -> None:
    code = main([], source=fake_source_cls({}))

    assert code == 2
    assert "domains array is required" in capsys.readouterr().err


def test_cli_rejects_bad_threshold(fake_source_cls) -> None:
    assert main(["a.example", "--threshold", "0"], source=fake_source_cls({})) == 2
