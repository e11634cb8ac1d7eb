"""trackerops CLI.

Subcommands:
  milestones -> normalize milestone titles to M<n> (dry-run unless --apply)
  labels     -> sync repository labels against the catalog
  assign     -> assign open issues to one person
  seed       -> create milestones, labels and issues from a roadmap YAML
"""

from __future__ import annotations

import argparse
import os
import sys
from pathlib import Path
from typing import Any

from trackerops.assign import IssueAssigner
from trackerops.config import ConfigError, TrackerConfig
from trackerops.labels import LabelCatalog, LabelSynchronizer, load_catalog
from trackerops.milestones import MilestoneNormalizer, NormalizeOptions
from trackerops.runtime import build_client, execute_command, prepare_config
from trackerops.seed import TrackerSeeder, load_roadmap
from trackerops.ux import print_error, print_summary_box, spinner_enabled

REPO_HELP = "Target repository (owner/repo); defaults to config, GH_REPO, then git origin"

_MAX_HELP_WIDTH = 100


class _HelpFormatter(argparse.HelpFormatter):
    def __init__(self, prog: str) -> None:
        super().__init__(prog, max_help_position=30, width=_MAX_HELP_WIDTH)


class _FormatterArgumentParser(argparse.ArgumentParser):
    def __init__(self, *args: Any, **kwargs: Any) -> None:
        kwargs.setdefault("formatter_class", _HelpFormatter)
        super().__init__(*args, **kwargs)


def _build_parser() -> argparse.ArgumentParser:
    """Construct top-level CLI parser with subcommands."""
    p = _FormatterArgumentParser(
        prog="trackerops", description="GitHub milestone, label and issue housekeeping"
    )
    p.add_argument(
        "--quiet",
        action="store_true",
        help="Suppress informational output (env: TRACKEROPS_QUIET=1)",
    )
    p.add_argument(
        "--config",
        default=None,
        help="YAML config file (default: trackerops.config.yaml when present)",
    )
    p.add_argument("--json-logs", action="store_true", help="Emit structured JSON log lines")
    sub = p.add_subparsers(
        dest="cmd",
        required=True,
        parser_class=_FormatterArgumentParser,
        metavar="<command>",
    )

    pm = sub.add_parser("milestones", help="Normalize milestone titles to M<n>")
    pm.add_argument("-R", "--repo", help=REPO_HELP)
    pm.add_argument("--apply", action="store_true", help="Apply the planned changes")
    state = pm.add_mutually_exclusive_group()
    state.add_argument(
        "--only-open", dest="state", action="store_const", const="open", help="Open milestones"
    )
    state.add_argument(
        "--only-closed",
        dest="state",
        action="store_const",
        const="closed",
        help="Closed milestones",
    )
    state.add_argument("--state", choices=("open", "closed", "all"), help="Milestone state")
    pm.add_argument("--plan-json", help="Write the planned changes to a JSON file")
    pm.add_argument("--no-spinner", action="store_true", help="Disable the progress spinner")
    pm.add_argument("--debug", action="store_true", help="Verbose debug logging")

    pl = sub.add_parser("labels", help="Sync labels to the catalog")
    pl.add_argument("-R", "--repo", help=REPO_HELP)
    pl.add_argument("-n", "--dry-run", action="store_true", help="Show actions without changes")
    pl.add_argument(
        "-f", "--force", action="store_true", help="Update catalog labels even when unchanged"
    )
    pl.add_argument(
        "--delete-unknown",
        action="store_true",
        help="Delete labels that are neither in the catalog nor the legacy map",
    )
    pl.add_argument("--catalog", help="Label catalog YAML (overrides labels.catalog_file)")

    pa = sub.add_parser("assign", help="Assign open issues to one person")
    pa.add_argument("-R", "--repo", help=REPO_HELP)
    pa.add_argument(
        "--milestone",
        action="append",
        default=[],
        metavar="NAME",
        help="Only issues in this milestone (title or number, repeatable)",
    )
    pa.add_argument("--assignee", help="GitHub login (default: the authenticated user)")
    pa.add_argument("--dry-run", action="store_true")

    psd = sub.add_parser("seed", help="Create milestones, labels and issues from a roadmap")
    psd.add_argument("-R", "--repo", help=REPO_HELP)
    psd.add_argument("--roadmap", required=True, help="Roadmap YAML file")
    psd.add_argument("--dry-run", action="store_true")

    return p


def _cmd_milestones(cfg: TrackerConfig, args: argparse.Namespace) -> int:
    quiet = bool(args.quiet)
    options = NormalizeOptions(
        state=cfg.milestone_state,
        apply=bool(args.apply),
        per_page=cfg.milestone_per_page,
        quiet=quiet,
        spinner=spinner_enabled(not args.no_spinner, quiet, sys.stdout),
        plan_json=Path(args.plan_json) if args.plan_json else None,
    )
    with build_client(cfg) as client:
        outcome = MilestoneNormalizer(client, options).run()
    if outcome.result is not None and not quiet:
        print_summary_box(
            "Milestone normalization",
            [
                ("Snapshot", len(outcome.snapshot)),
                ("Planned", len(outcome.plan) if outcome.plan else 0),
                ("Updated", outcome.result.updated),
                ("Failed", outcome.result.failed),
            ],
        )
    return outcome.exit_code


def _catalog_for(cfg: TrackerConfig, args: argparse.Namespace) -> LabelCatalog:
    path = args.catalog or cfg.label_catalog_file
    if path:
        return load_catalog(path)
    return LabelCatalog()


def _cmd_labels(cfg: TrackerConfig, args: argparse.Namespace) -> int:
    catalog = _catalog_for(cfg, args)
    with build_client(cfg) as client:
        syncer = LabelSynchronizer(client, catalog, dry_run=args.dry_run, quiet=args.quiet)
        result = syncer.run(force=args.force, delete_unknown=args.delete_unknown)
    return 3 if result.failed else 0


def _cmd_assign(cfg: TrackerConfig, args: argparse.Namespace) -> int:
    with build_client(cfg) as client:
        assigner = IssueAssigner(client, dry_run=args.dry_run, quiet=args.quiet)
        result = assigner.run(args.milestone, args.assignee)
    return 3 if result.failed else 0


def _cmd_seed(cfg: TrackerConfig, args: argparse.Namespace) -> int:
    roadmap = load_roadmap(args.roadmap)
    with build_client(cfg) as client:
        result = TrackerSeeder(client, dry_run=args.dry_run, quiet=args.quiet).run(roadmap)
    return 3 if result.failed else 0


def _build_handlers(args: argparse.Namespace, cfg: TrackerConfig) -> dict[str, Any]:
    return {
        "milestones": lambda: _cmd_milestones(cfg, args),
        "labels": lambda: _cmd_labels(cfg, args),
        "assign": lambda: _cmd_assign(cfg, args),
        "seed": lambda: _cmd_seed(cfg, args),
    }


def main(argv: list[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)
    if not getattr(args, "quiet", False) and os.environ.get("TRACKEROPS_QUIET") == "1":
        args.quiet = True
    try:
        cfg = prepare_config(args)
    except ConfigError as exc:
        print_error(str(exc))
        return 1
    handlers = _build_handlers(args, cfg)
    handler = handlers.get(args.cmd)
    if handler is None:  # pragma: no cover - argparse enforces valid choices
        parser.print_help()
        return 1
    return execute_command(handler, args, cfg, args.cmd)


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
