from __future__ import annotations

import argparse
import sys

from .core import ApiFrameworkError
from .commands import (
    command_build,
    command_diff,
    command_generate,
    command_snapshot,
    command_validate,
)


def add_common_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--repo-root",
        default=".",
        help="Repository root used to resolve relative paths (default: current directory).",
    )
    parser.add_argument("--config", help="Path to API framework config JSON.")


def add_records_argument(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--records",
        action="append",
        required=True,
        help="Declaration records JSON, one per extraction pass (repeatable, in pass order).",
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="api_framework",
        description="API surface snapshot, compatibility classification and facade generation.",
    )

    sub = parser.add_subparsers(dest="command", required=True)

    build = sub.add_parser("build", help="Generate facade, snapshot the API, classify changes and persist.")
    add_common_arguments(build)
    add_records_argument(build)
    build.add_argument("--baseline", help="Previous snapshot blob (default: <output-dir>/api-blob).")
    build.add_argument("--output-dir", help="Directory for api-blob, version.txt, message.txt and source lists.")
    build.add_argument(
        "--version-override",
        help="Skip API checks and record this version verbatim (MAJOR.MINOR.PATCH or SNAPSHOT).",
    )
    build.add_argument("--report-json", help="Write compatibility report JSON to path.")
    build.add_argument("--markdown-report", help="Write compatibility report markdown to path.")
    build.add_argument("--check-generated", action="store_true", help="Fail when the generated facade is stale.")
    build.add_argument("--dry-run", action="store_true", help="Do not write any file.")
    build.add_argument("--print-diff", action="store_true", help="Print unified diff of the generated facade.")
    build.set_defaults(func=command_build)

    snapshot = sub.add_parser("snapshot", help="Build an API snapshot blob from declaration records.")
    add_common_arguments(snapshot)
    add_records_argument(snapshot)
    snapshot.add_argument("--output", required=True, help="Write snapshot blob to path.")
    snapshot.add_argument("--version", help="Version recorded in the snapshot (default: SNAPSHOT).")
    snapshot.set_defaults(func=command_snapshot)

    diff = sub.add_parser("diff", help="Compare two snapshot blobs.")
    add_common_arguments(diff)
    diff.add_argument("--baseline", required=True, help="Baseline snapshot blob.")
    diff.add_argument("--current", required=True, help="Current snapshot blob.")
    diff.add_argument("--report-json", help="Write compatibility report JSON to path.")
    diff.add_argument("--markdown-report", help="Write compatibility report markdown to path.")
    diff.add_argument("--fail-on-breaking", action="store_true", help="Exit 1 when breaking changes are found.")
    diff.set_defaults(func=command_diff)

    generate = sub.add_parser("generate", help="Render the facade source from the first declaration pass.")
    add_common_arguments(generate)
    add_records_argument(generate)
    generate.add_argument("--check", action="store_true", help="Fail when the facade on disk is out of date.")
    generate.add_argument("--dry-run", action="store_true", help="Do not write the facade.")
    generate.add_argument("--print-diff", action="store_true", help="Print unified diff of the facade.")
    generate.add_argument("--report-json", help="Write generation report JSON to path.")
    generate.set_defaults(func=command_generate)

    validate = sub.add_parser("validate", help="Validate declaration records against the API rules.")
    add_common_arguments(validate)
    add_records_argument(validate)
    validate.set_defaults(func=command_validate)

    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        return int(args.func(args))
    except ApiFrameworkError as exc:
        print(f"api_framework error: {exc}", file=sys.stderr)
        return 2


if __name__ == "__main__":
    raise SystemExit(main())
