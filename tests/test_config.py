from __future__ import annotations

from pathlib import Path

from pkgmap.config import Config, load_config


def test_config_defaults() -> None:
    """Test that Config has correct default values."""
    cfg = Config()
    assert cfg.prefer_newest is True
    assert cfg.relative is True
    assert cfg.comment is None
    assert cfg.respect_gitignore is True
    assert cfg.exclude == []
    assert cfg.strict is False


def test_load_config_missing_file(tmp_path: Path) -> None:
    cfg = load_config(tmp_path)
    assert cfg == Config()


def test_load_config_empty_file(tmp_path: Path) -> None:
    (tmp_path / "pkgmap.toml").write_text("", encoding="utf-8")
    assert load_config(tmp_path) == Config()


def test_load_config_custom_values(tmp_path: Path) -> None:
    (tmp_path / "pkgmap.toml").write_text(
        """[pkgmap]
prefer_newest = false
relative = false
comment = "managed by ci"
respect_gitignore = false
exclude = ["third_party/**"]
strict = true
""",
        encoding="utf-8",
    )

    cfg = load_config(tmp_path)
    assert cfg.prefer_newest is False
    assert cfg.relative is False
    assert cfg.comment == "managed by ci"
    assert cfg.respect_gitignore is False
    assert cfg.exclude == ["third_party/**"]
    assert cfg.strict is True


def test_load_config_invalid_types_keep_defaults(tmp_path: Path) -> None:
    (tmp_path / "pkgmap.toml").write_text(
        """[pkgmap]
comment = 12
exclude = "not a list"
""",
        encoding="utf-8",
    )

    cfg = load_config(tmp_path)
    assert cfg.comment is None
    assert cfg.exclude == []


def test_load_config_dotfile_takes_precedence(tmp_path: Path) -> None:
    """If both config files exist, .pkgmap.toml should win."""
    (tmp_path / "pkgmap.toml").write_text(
        "[pkgmap]\nstrict = false\n", encoding="utf-8"
    )
    (tmp_path / ".pkgmap.toml").write_text(
        "[pkgmap]\nstrict = true\n", encoding="utf-8"
    )
    assert load_config(tmp_path).strict is True


def test_load_config_supports_pyproject_tool_section(tmp_path: Path) -> None:
    (tmp_path / "pyproject.toml").write_text(
        "[project]\nname = 'x'\n\n[tool.pkgmap]\nprefer_newest = false\n",
        encoding="utf-8",
    )
    assert load_config(tmp_path).prefer_newest is False


def test_pyproject_ignores_top_level_section(tmp_path: Path) -> None:
    (tmp_path / "pyproject.toml").write_text(
        "[pkgmap]\nprefer_newest = false\n", encoding="utf-8"
    )
    assert load_config(tmp_path).prefer_newest is True


def test_dotfile_falls_back_to_tool_section(tmp_path: Path) -> None:
    (tmp_path / ".pkgmap.toml").write_text(
        "[tool.pkgmap]\nrelative = false\n", encoding="utf-8"
    )
    assert load_config(tmp_path).relative is False


def test_own_section_wins_over_tool_section(tmp_path: Path) -> None:
    (tmp_path / "pkgmap.toml").write_text(
        "[pkgmap]\nstrict = true\n\n[tool.pkgmap]\nstrict = false\n",
        encoding="utf-8",
    )
    assert load_config(tmp_path).strict is True


def test_first_existing_file_is_the_only_one_read(tmp_path: Path) -> None:
    (tmp_path / "pkgmap.toml").write_text("title = 'no settings'\n", encoding="utf-8")
    (tmp_path / "pyproject.toml").write_text(
        "[tool.pkgmap]\nstrict = true\n", encoding="utf-8"
    )
    assert load_config(tmp_path).strict is False
