from __future__ import annotations

import argparse

from ..core import *  # noqa: F401,F403
from .common import load_command_config, resolve_repo_root, write_requested_reports


def command_validate(args: argparse.Namespace) -> int:
    repo_root = resolve_repo_root(args)
    config = load_command_config(args, repo_root)
    component = get_component_name(config)
    builder, module = build_module_from_records(
        repo_root=repo_root,
        config=config,
        record_paths=list(args.records or []),
    )
    type_count = sum(1 for _ in module.iter_types())
    if builder.issues:
        print_validation_issues(builder.issues)
        print(f"[{component}] validate: fail ({len(builder.issues)} error(s), {type_count} type(s))")
        return 1
    print(f"[{component}] validate: pass ({type_count} type(s), hash={module.hash})")
    return 0


def command_snapshot(args: argparse.Namespace) -> int:
    repo_root = resolve_repo_root(args)
    config = load_command_config(args, repo_root)
    component = get_component_name(config)
    builder, module = build_module_from_records(
        repo_root=repo_root,
        config=config,
        record_paths=list(args.records or []),
    )
    if builder.issues:
        print_validation_issues(builder.issues)
        return 1

    version = parse_version_label(args.version) if args.version else None
    output_path = ensure_relative_path(repo_root, args.output).resolve()
    store_snapshot(output_path, replace(module, version=version))
    print(f"[{component}] snapshot: {to_repo_relative(output_path, repo_root)} (version {version_label(version)})")
    return 0


def command_diff(args: argparse.Namespace) -> int:
    repo_root = resolve_repo_root(args)
    config = load_command_config(args, repo_root)
    component = get_component_name(config)
    classification = diff_snapshots(
        baseline_path=ensure_relative_path(repo_root, args.baseline).resolve(),
        current_path=ensure_relative_path(repo_root, args.current).resolve(),
        initial_version=get_initial_version(config),
        component=component,
    )
    for warning in classification.warnings:
        print(f"[{component}] warning: {warning}")
    print_report(component, classification.report)

    payload = build_report_payload(
        classification,
        component=component,
        new_version_label=str(classification.new_version),
        report=classification.report,
        warnings=classification.warnings,
    )
    write_requested_reports(args, payload)
    if args.fail_on_breaking and classification.breaking:
        return 1
    return 0
