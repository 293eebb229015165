from __future__ import annotations

import argparse
import importlib.metadata as importlib_metadata
import json
import sys
import warnings
from pathlib import Path
from typing import Any

from .config import load_config
from .discover import discover_config_files, locate_package_config
from .errors import ErrorCollector, PackageConfigError, PackageConfigFormatError
from .formats import ConfigFormat, sniff_format
from .legacy import write_packages_file
from .model import PackageConfig
from .resolver import read_any_config_file
from .structured import write_package_config_json
from .uris import has_scheme, uri_to_path


def _pkgmap_version() -> str:
    try:
        return importlib_metadata.version("pkgmap")
    except importlib_metadata.PackageNotFoundError:
        return "0+unknown"


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="pkgmap",
        description="Read, check and convert package location mappings "
        "(.packages and package_config.json).",
    )
    p.add_argument(
        "--version",
        action="version",
        version=f"pkgmap {_pkgmap_version()}",
    )
    sub = p.add_subparsers(dest="cmd", required=True)

    show = sub.add_parser("show", help="Print the package mapping read from a file.")
    show.add_argument("file", type=Path, help="A .packages or package_config.json")
    show.add_argument(
        "--prefer-newest",
        action=argparse.BooleanOptionalAction,
        default=None,
        help=(
            "For a .packages file, read the adjacent .dart_tool/package_config.json "
            "instead when it exists (default: true via config)"
        ),
    )
    show.add_argument("--json", action="store_true", help="Print the mapping as JSON")

    check = sub.add_parser(
        "check",
        help="Validate one mapping file, or every mapping file under a directory.",
    )
    check.add_argument("path", type=Path, help="Mapping file or directory to scan")
    check.add_argument(
        "--strict",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="Also require every file: package root to exist on disk",
    )
    check.add_argument(
        "--respect-gitignore",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="Skip projects in gitignored directories (default: true via config)",
    )

    convert = sub.add_parser(
        "convert", help="Read a mapping in either format and write it out."
    )
    convert.add_argument("file", type=Path, help="Input mapping file")
    convert.add_argument("-o", "--output", type=Path, required=True, help="Output file")
    convert.add_argument(
        "--to",
        choices=["legacy", "structured"],
        default=None,
        help="Output format (default: structured for *.json outputs, else legacy)",
    )
    convert.add_argument(
        "--relative",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="Write locations relative to the output file (default: true via config)",
    )
    convert.add_argument(
        "--comment", default=None, help="Comment block for legacy output"
    )
    convert.add_argument(
        "--prefer-newest",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="Prefer an adjacent package_config.json when reading .packages",
    )

    find = sub.add_parser(
        "find", help="Locate the mapping file that governs a directory."
    )
    find.add_argument("root", type=Path, nargs="?", default=Path("."))
    find.add_argument(
        "--recurse",
        action=argparse.BooleanOptionalAction,
        default=True,
        help="Search parent directories too (default: true)",
    )

    return p


def _print_top_level_help(parser: argparse.ArgumentParser) -> None:
    parser.print_help()
    print()
    print("Quick start examples:")
    print("  pkgmap show .packages")
    print("  pkgmap check . --strict")
    print("  pkgmap convert .packages -o .dart_tool/package_config.json")
    print("  pkgmap find")


def format_diagnostic(path: Path, error: Exception) -> str:
    if isinstance(error, PackageConfigFormatError) and error.line is not None:
        return f"{path.as_posix()}:{error.line}:{error.column}: {error.message}"
    return f"{path.as_posix()}: {error}"


def _print_diagnostics(path: Path, errors: list[Exception]) -> None:
    for err in errors:
        print(format_diagnostic(path, err), file=sys.stderr)


def _read(path: Path, prefer_newest: bool) -> tuple[PackageConfig, ErrorCollector]:
    collector = ErrorCollector()
    with warnings.catch_warnings():
        # Sibling load failures also reach the collector; print them once.
        warnings.simplefilter("ignore", RuntimeWarning)
        config = read_any_config_file(path, prefer_newest, collector)
    return config, collector


def _config_json(config: PackageConfig) -> dict[str, Any]:
    return {
        "version": config.version,
        "packages": [
            {
                "name": p.name,
                "root": p.root,
                "package_uri_root": p.package_uri_root,
                "language_version": p.language_version,
            }
            for p in config
        ],
    }


def _missing_roots(config: PackageConfig) -> list[str]:
    missing: list[str] = []
    for p in config:
        if has_scheme(p.root, "file") and not uri_to_path(p.root).is_dir():
            missing.append(f"Package root of {p.name!r} does not exist: {p.root}")
    return missing


def _output_format(output: Path, requested: str | None) -> ConfigFormat:
    if requested == "structured":
        return "structured"
    if requested == "legacy":
        return "legacy"
    return "structured" if output.suffix == ".json" else "legacy"


def _run_show(args: argparse.Namespace) -> None:
    cfg = load_config(args.file.parent)
    prefer = cfg.prefer_newest if args.prefer_newest is None else args.prefer_newest
    config, errors = _read(args.file, prefer)
    _print_diagnostics(args.file, errors.errors)
    if errors and not len(config):
        raise SystemExit(1)
    if args.json:
        print(json.dumps(_config_json(config), indent=2))
        return
    for p in config:
        print(f"{p.name} -> {p.root}")


def _run_check(args: argparse.Namespace, parser: argparse.ArgumentParser) -> None:
    root = args.path if args.path.is_dir() else args.path.parent
    cfg = load_config(root)
    strict = cfg.strict if args.strict is None else args.strict
    respect_gitignore = (
        cfg.respect_gitignore
        if args.respect_gitignore is None
        else args.respect_gitignore
    )

    if args.path.is_dir():
        files = discover_config_files(
            args.path, exclude=cfg.exclude, respect_gitignore=respect_gitignore
        ).files
        if not files:
            parser.error(f"check: no mapping files found under {args.path}")
    elif args.path.is_file():
        files = [args.path]
    else:
        parser.error(f"check: no such file or directory: {args.path}")

    failed = 0
    package_count = 0
    for path in files:
        config, errors = _read(path, False)
        _print_diagnostics(path, errors.errors)
        problems = len(errors)
        if strict:
            missing = _missing_roots(config)
            for msg in missing:
                print(f"{path.as_posix()}: {msg}", file=sys.stderr)
            problems += len(missing)
        if problems:
            failed += 1
        package_count += len(config)

    if failed:
        print(f"{failed} of {len(files)} mapping file(s) have problems.")
        raise SystemExit(1)
    print(f"OK: {len(files)} mapping file(s), {package_count} package(s).")


def _run_convert(args: argparse.Namespace, parser: argparse.ArgumentParser) -> None:
    cfg = load_config(args.file.parent)
    prefer = cfg.prefer_newest if args.prefer_newest is None else args.prefer_newest
    relative = cfg.relative if args.relative is None else args.relative
    comment = cfg.comment if args.comment is None else args.comment

    if not args.file.is_file():
        parser.error(f"convert: no such file: {args.file}")
    config, errors = _read(args.file, prefer)
    _print_diagnostics(args.file, errors.errors)

    fmt = _output_format(args.output, args.to)
    base = args.output.absolute() if relative else None
    args.output.parent.mkdir(parents=True, exist_ok=True)
    try:
        with args.output.open("w", encoding="utf-8", newline="\n") as fh:
            if fmt == "structured":
                write_package_config_json(fh, config, base_uri=base)
            else:
                write_packages_file(fh, config, base_uri=base, comment=comment)
    except PackageConfigError as e:
        parser.error(f"convert: {e}")
    print(f"Wrote {len(config)} package(s) to {args.output.as_posix()} ({fmt}).")


def _run_find(args: argparse.Namespace) -> None:
    path = locate_package_config(args.root, recurse=bool(args.recurse))
    if path is None:
        print(f"No package mapping found for {args.root.as_posix()}", file=sys.stderr)
        raise SystemExit(1)
    config, errors = _read(path, False)
    _print_diagnostics(path, errors.errors)
    fmt = sniff_format(path.read_bytes())
    print(path.as_posix())
    print(f"- format: {fmt}")
    print(f"- packages: {len(config)}")


def main(argv: list[str] | None = None) -> None:
    parser = build_parser()
    raw_argv = list(sys.argv[1:] if argv is None else argv)
    if not raw_argv:
        _print_top_level_help(parser)
        return

    args = parser.parse_args(raw_argv)

    if args.cmd == "show":
        _run_show(args)
    elif args.cmd == "check":
        _run_check(args, parser)
    elif args.cmd == "convert":
        _run_convert(args, parser)
    elif args.cmd == "find":
        _run_find(args)


if __name__ == "__main__":
    main()
