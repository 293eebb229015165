from __future__ import annotations

import json
from pathlib import Path

import pytest

from pkgmap.cli import main


def _write(path: Path, text: str) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")
    return path


def _structured(directory: Path, *names: str) -> Path:
    return _write(
        directory / ".dart_tool" / "package_config.json",
        json.dumps(
            {
                "configVersion": 2,
                "packages": [{"name": n, "rootUri": f"../{n}/"} for n in names],
            }
        ),
    )


def test_main_without_command_prints_friendly_help(capsys) -> None:
    main([])

    captured = capsys.readouterr()
    assert "usage: pkgmap" in captured.out
    assert "Quick start examples:" in captured.out
    assert "pkgmap show .packages" in captured.out


def test_main_version_flag_prints_version(capsys) -> None:
    with pytest.raises(SystemExit) as exc:
        main(["--version"])
    assert exc.value.code == 0

    captured = capsys.readouterr()
    assert captured.out.startswith("pkgmap ")


def test_show_prints_mapping(tmp_path: Path, capsys) -> None:
    path = _write(tmp_path / ".packages", "foo:lib/\n")

    main(["show", str(path)])

    captured = capsys.readouterr()
    assert f"foo -> {(tmp_path / 'lib').as_uri()}/" in captured.out
    assert captured.err == ""


def test_show_prefers_structured_sibling(tmp_path: Path, capsys) -> None:
    path = _write(tmp_path / ".packages", "foo:lib/\n")
    _structured(tmp_path, "bar")

    main(["show", str(path), "--json"])
    data = json.loads(capsys.readouterr().out)
    assert data["version"] == 2
    assert [p["name"] for p in data["packages"]] == ["bar"]

    main(["show", str(path), "--no-prefer-newest", "--json"])
    data = json.loads(capsys.readouterr().out)
    assert [p["name"] for p in data["packages"]] == ["foo"]


def test_show_respects_config_preference(tmp_path: Path, capsys) -> None:
    path = _write(tmp_path / ".packages", "foo:lib/\n")
    _structured(tmp_path, "bar")
    _write(tmp_path / "pkgmap.toml", "[pkgmap]\nprefer_newest = false\n")

    main(["show", str(path)])

    assert "foo -> " in capsys.readouterr().out


def test_show_missing_file_fails(tmp_path: Path, capsys) -> None:
    with pytest.raises(SystemExit) as exc:
        main(["show", str(tmp_path / ".packages")])
    assert exc.value.code == 1
    assert ".packages" in capsys.readouterr().err


def test_check_reports_diagnostics_with_positions(tmp_path: Path, capsys) -> None:
    path = _write(tmp_path / ".packages", "ok:lib/\nbad-name:lib/\n")

    with pytest.raises(SystemExit) as exc:
        main(["check", str(path)])
    assert exc.value.code == 1

    captured = capsys.readouterr()
    assert ":2:4: Not a valid package name" in captured.err
    assert "1 of 1 mapping file(s) have problems." in captured.out


def test_check_directory_ok(tmp_path: Path, capsys) -> None:
    _write(tmp_path / "a" / ".packages", "x:lib/\n")
    _structured(tmp_path / "b", "y", "z")

    main(["check", str(tmp_path)])

    captured = capsys.readouterr()
    assert "OK: 2 mapping file(s), 3 package(s)." in captured.out


def test_check_strict_requires_existing_roots(tmp_path: Path, capsys) -> None:
    path = _write(tmp_path / ".packages", "x:lib/\n")

    main(["check", str(path)])
    assert "OK:" in capsys.readouterr().out

    with pytest.raises(SystemExit) as exc:
        main(["check", str(path), "--strict"])
    assert exc.value.code == 1
    assert "does not exist" in capsys.readouterr().err

    (tmp_path / "lib").mkdir()
    main(["check", str(path), "--strict"])
    assert "OK:" in capsys.readouterr().out


def test_check_empty_directory_is_usage_error(tmp_path: Path) -> None:
    with pytest.raises(SystemExit) as exc:
        main(["check", str(tmp_path)])
    assert exc.value.code == 2


def test_convert_legacy_to_structured(tmp_path: Path, capsys) -> None:
    source = _write(tmp_path / ".packages", "foo:lib/\n")
    out = tmp_path / ".dart_tool" / "package_config.json"

    main(["convert", str(source), "-o", str(out), "--no-prefer-newest"])

    data = json.loads(out.read_text(encoding="utf-8"))
    assert data["packages"] == [{"name": "foo", "rootUri": "../lib/"}]
    assert "Wrote 1 package(s)" in capsys.readouterr().out


def test_convert_structured_to_legacy_absolute(tmp_path: Path) -> None:
    source = _structured(tmp_path, "foo")
    out = tmp_path / "out" / "mapping.txt"

    main(
        [
            "convert",
            str(source),
            "-o",
            str(out),
            "--no-relative",
            "--comment",
            "converted",
        ]
    )

    assert out.read_text(encoding="utf-8") == (
        f"# converted\nfoo:{(tmp_path / 'foo').as_uri()}/\n"
    )


def test_find_reports_governing_file(tmp_path: Path, capsys) -> None:
    _write(tmp_path / ".packages", "a:lib/\nb:lib2/\n")
    nested = tmp_path / "src" / "deep"
    nested.mkdir(parents=True)

    main(["find", str(nested)])

    captured = capsys.readouterr()
    assert captured.out.splitlines() == [
        (tmp_path / ".packages").absolute().as_posix(),
        "- format: legacy",
        "- packages: 2",
    ]


def test_find_no_recurse_fails(tmp_path: Path, capsys) -> None:
    with pytest.raises(SystemExit) as exc:
        main(["find", str(tmp_path), "--no-recurse"])
    assert exc.value.code == 1
    assert "No package mapping found" in capsys.readouterr().err
