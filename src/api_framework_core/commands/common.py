from __future__ import annotations

import argparse

from ..core import *  # noqa: F401,F403


def resolve_repo_root(args: argparse.Namespace) -> Path:
    return Path(getattr(args, "repo_root", None) or ".").resolve()


def load_command_config(args: argparse.Namespace, repo_root: Path) -> dict[str, Any]:
    value = getattr(args, "config", None)
    if not value:
        return {}
    return load_config(ensure_relative_path(repo_root, value).resolve())


def write_requested_reports(args: argparse.Namespace, payload: dict[str, Any]) -> None:
    if getattr(args, "report_json", None):
        write_json(Path(args.report_json).resolve(), payload)
    if getattr(args, "markdown_report", None):
        write_markdown_report(Path(args.markdown_report).resolve(), payload)
