from __future__ import annotations

import argparse

from ..core import *  # noqa: F401,F403
from .common import load_command_config, resolve_repo_root, write_requested_reports


def command_build(args: argparse.Namespace) -> int:
    repo_root = resolve_repo_root(args)
    config = load_command_config(args, repo_root)
    result = run_build(
        repo_root=repo_root,
        config=config,
        record_paths=list(args.records or []),
        baseline_override=args.baseline,
        output_dir_override=args.output_dir,
        version_override=args.version_override,
        check_generated=bool(args.check_generated),
        dry_run=bool(args.dry_run),
        print_diff=bool(args.print_diff),
    )
    if result["exit_code"] == 0:
        write_requested_reports(args, build_result_report_payload(result))
    return int(result["exit_code"])
