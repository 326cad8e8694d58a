from __future__ import annotations

import argparse

from ..core import *  # noqa: F401,F403
from .common import load_command_config, resolve_repo_root


def command_generate(args: argparse.Namespace) -> int:
    repo_root = resolve_repo_root(args)
    config = load_command_config(args, repo_root)
    component = get_component_name(config)
    if not is_facade_enabled(config):
        raise ApiFrameworkError("Facade generation is not configured (config.facade is missing or disabled).")

    documents = load_record_documents(repo_root, list(args.records or []))
    builder = make_builder(repo_root, config)
    builder.add_pass(documents[0].get("records", []))
    result = generate_facade(
        repo_root=repo_root,
        config=config,
        types=builder.build_types().values(),
        dry_run=bool(args.dry_run),
        check=bool(args.check),
    )
    print(
        f"[{component}] generate: facade={result['status']} services={result['service_count']} "
        f"extensions={result['extension_count']} ({result['path']})"
    )
    if args.print_diff and result["diff"]:
        print(result["diff"])

    if args.report_json:
        write_json(Path(args.report_json).resolve(), {"generated_at_utc": utc_timestamp_now(), "facade": result})
    if args.check and result["status"] == "drift":
        return 1
    return 0
