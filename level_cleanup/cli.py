"""Console entry point for the level cleanup suite."""
from __future__ import annotations

import argparse
import sys
from pathlib import Path
from typing import List

from loguru import logger

from .config import AppConfig, load_config
from .io import LevelReadError
from .pipeline import run_cleanup, run_duplicates, run_scan


def _configure_logging(verbose: bool) -> None:
    logger.remove()
    level = "DEBUG" if verbose else "INFO"
    logger.add(sys.stderr, level=level)


def _load_config(path: Path) -> AppConfig:
    if not path.exists():
        logger.info("Using default configuration; no {} found", path)
    return load_config(path)


def _apply_common(config: AppConfig, args: argparse.Namespace) -> None:
    if args.level:
        config.paths.level_dir = Path(args.level)
    if args.levels_root:
        config.paths.levels_root = Path(args.levels_root)
    if args.summary_dir:
        config.paths.summary_dir = Path(args.summary_dir)
    if args.no_report:
        config.cleanup.write_report = False


def cmd_scan(config: AppConfig, args: argparse.Namespace) -> None:
    if args.game_log:
        config.paths.game_log = Path(args.game_log)
    if args.sweep_materials:
        config.cleanup.sweep_unreferenced_materials = True
    outcome = run_scan(config)
    plan = outcome.reachability.plan
    for path in plan.all_to_delete():
        print(path)
    logger.info("{} file(s) would be deleted", len(plan.all_to_delete()))


def cmd_clean(config: AppConfig, args: argparse.Namespace) -> None:
    if args.dry_run:
        config.cleanup.dry_run = True
    if args.game_log:
        config.paths.game_log = Path(args.game_log)
    if args.remove_duplicates:
        config.cleanup.remove_duplicate_materials = True
    if args.sweep_materials:
        config.cleanup.sweep_unreferenced_materials = True
    if args.allow_unknown_materials:
        config.cleanup.allow_unknown_mesh_materials = True
    outcome = run_cleanup(config)
    for name, value in outcome.sweep.counts().items():
        logger.info("{}: {}", name, value)


def cmd_duplicates(config: AppConfig, args: argparse.Namespace) -> None:
    if args.dry_run:
        config.cleanup.dry_run = True
    removal = run_duplicates(config, remove=args.remove)
    logger.info("{} duplicate group(s), {} entr(ies) removable", len(removal.groups), removal.removed_count)


def _add_common(sub_parser: argparse.ArgumentParser) -> None:
    sub_parser.add_argument("--level", help="Level folder, e.g. <unpacked>/levels/my_level")
    sub_parser.add_argument(
        "--levels-root",
        help="Base for level references (default: parent of --level, which must be a 'levels' folder)",
    )
    sub_parser.add_argument("--summary-dir", help="Where summaries and the report are written")
    sub_parser.add_argument("--no-report", action="store_true", help="Do not write cleanup_report.json/.md")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="levelclean", description="Remove unreferenced assets from a game level")
    parser.add_argument("--config", default="config.yaml", help="Path to YAML configuration file")
    parser.add_argument("--verbose", action="store_true", help="Enable debug logging")
    sub = parser.add_subparsers(dest="command", required=True)

    scan_p = sub.add_parser("scan", help="List files nothing in the level references")
    _add_common(scan_p)
    scan_p.add_argument("--game-log", help="Game log to read 'Missing source texture' lines from")
    scan_p.add_argument("--sweep-materials", action="store_true", help="Treat unreferenced catalog materials as orphans")
    scan_p.set_defaults(func=cmd_scan)

    clean_p = sub.add_parser("clean", help="Delete unreferenced meshes and textures")
    _add_common(clean_p)
    clean_p.add_argument("--dry-run", action="store_true", help="Write summaries without deleting")
    clean_p.add_argument("--game-log")
    clean_p.add_argument("--remove-duplicates", action="store_true", help="Also rewrite duplicate materials away")
    clean_p.add_argument("--sweep-materials", action="store_true")
    clean_p.add_argument(
        "--allow-unknown-materials",
        action="store_true",
        help="Delete orphan textures even if some used meshes could not be read",
    )
    clean_p.set_defaults(func=cmd_clean)

    dup_p = sub.add_parser("duplicates", help="Report materials declared more than once")
    _add_common(dup_p)
    dup_p.add_argument("--remove", action="store_true", help="Rewrite material files to drop the losers")
    dup_p.add_argument("--dry-run", action="store_true")
    dup_p.set_defaults(func=cmd_duplicates)

    return parser


def main(argv: List[str] | None = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)
    _configure_logging(args.verbose)
    config = _load_config(Path(args.config))
    if not hasattr(args, "func"):
        parser.print_help()
        return
    _apply_common(config, args)
    if config.paths.level_dir is None:
        parser.error("no level given: pass --level or set paths.level_dir in the config")
    try:
        args.func(config, args)
    except LevelReadError as exc:
        logger.error("Cannot read level: {}", exc)
        sys.exit(2)


if __name__ == "__main__":
    main()
