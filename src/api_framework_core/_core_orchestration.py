from __future__ import annotations

from ._core_base import *  # noqa: F401,F403
from ._core_model import *  # noqa: F401,F403
from ._core_snapshot import *  # noqa: F401,F403
from ._core_collector import *  # noqa: F401,F403
from ._core_compare import *  # noqa: F401,F403
from ._core_codegen import *  # noqa: F401,F403

BLOB_FILE_NAME = "api-blob"
VERSION_FILE_NAME = "version.txt"
MESSAGE_FILE_NAME = "message.txt"
LEGACY_SOURCES_FILE_NAME = "legacy-sources.txt"
DEFAULT_OUTPUT_DIR = "build/api"


def make_builder(repo_root: Path, config: dict[str, Any]) -> ApiBuilder:
    collector = get_section(config, "collector")
    return ApiBuilder(
        repo_root=repo_root,
        root_type=str(collector.get("root_type") or DEFAULT_ROOT_TYPE),
        module_descriptor=str(collector.get("module_descriptor") or DEFAULT_MODULE_DESCRIPTOR),
    )


def resolve_output_dir(repo_root: Path, config: dict[str, Any], override: str | None) -> Path:
    if override:
        return ensure_relative_path(repo_root, override).resolve()
    value = get_section(config, "snapshot").get("output_dir")
    if isinstance(value, str) and value:
        return ensure_relative_path(repo_root, value).resolve()
    return ensure_relative_path(repo_root, DEFAULT_OUTPUT_DIR).resolve()


def resolve_baseline_path(repo_root: Path, config: dict[str, Any], override: str | None, output_dir: Path) -> Path:
    if override:
        return ensure_relative_path(repo_root, override).resolve()
    value = get_section(config, "snapshot").get("baseline_path")
    if isinstance(value, str) and value:
        return ensure_relative_path(repo_root, value).resolve()
    return output_dir / BLOB_FILE_NAME


def load_record_documents(repo_root: Path, record_paths: Iterable[str]) -> list[dict[str, Any]]:
    documents = [load_records_document(ensure_relative_path(repo_root, value).resolve()) for value in record_paths]
    if not documents:
        raise ApiFrameworkError("At least one declaration records document (--records) is required.")
    return documents


def collect_passes(
    *,
    builder: ApiBuilder,
    documents: list[dict[str, Any]],
    on_first_pass: Callable[[ApiBuilder], None] | None = None,
) -> ApiModule:
    """Feed declaration passes into the builder and finalize on the final one.

    A document without an explicit ``final`` flag is final only when it is the
    last one supplied.
    """
    last_index = len(documents) - 1
    for index, document in enumerate(documents):
        builder.add_pass(document.get("records", []))
        if index == 0 and on_first_pass is not None:
            on_first_pass(builder)
        if bool(document.get("final", index == last_index)):
            if index != last_index:
                raise ApiStateError(f"Declaration pass {index + 2} follows the final pass.")
            return builder.finalize()
    raise ApiStateError("No final declaration pass was supplied; the API snapshot cannot be finalized.")


def print_validation_issues(issues: Iterable[ValidationIssue]) -> None:
    for issue in issues:
        print(f"error: {issue}", file=sys.stderr)


def write_build_output(*, path: Path, content: str, dry_run: bool) -> str:
    if dry_run:
        return "would_write"
    write_text(path, content)
    return "updated"


def run_build(
    *,
    repo_root: Path,
    config: dict[str, Any],
    record_paths: list[str],
    baseline_override: str | None = None,
    output_dir_override: str | None = None,
    version_override: str | None = None,
    check_generated: bool = False,
    dry_run: bool = False,
    print_diff: bool = False,
) -> dict[str, Any]:
    """Run one build: generate the facade, finalize, classify and persist.

    Nothing is written to the output directory when declaration validation
    fails, when ``check_generated`` detects facade drift, or when any step
    raises.
    """
    component = get_component_name(config)
    output_dir = resolve_output_dir(repo_root, config, output_dir_override)
    baseline_path = resolve_baseline_path(repo_root, config, baseline_override, output_dir)
    documents = load_record_documents(repo_root, record_paths)
    builder = make_builder(repo_root, config)

    result: dict[str, Any] = {
        "component": component,
        "generated_at_utc": utc_timestamp_now(),
        "pass_count": len(documents),
        "issues": [],
        "facade": None,
        "classification": None,
        "version": None,
        "report": "",
        "warnings": [],
        "outputs": {},
        "persisted": False,
        "exit_code": 0,
    }

    def generate_on_first_pass(first: ApiBuilder) -> None:
        if not is_facade_enabled(config):
            return
        facade = generate_facade(
            repo_root=repo_root,
            config=config,
            types=first.build_types().values(),
            dry_run=dry_run,
            check=check_generated,
        )
        print(f"[{component}] facade: {facade['status']} ({facade['path']})")
        if print_diff and facade["diff"]:
            print(facade["diff"])
        result["facade"] = facade

    module = collect_passes(builder=builder, documents=documents, on_first_pass=generate_on_first_pass)

    if builder.issues:
        print_validation_issues(builder.issues)
        print(f"[{component}] {len(builder.issues)} API validation error(s); baseline not updated")
        result["issues"] = [str(issue) for issue in builder.issues]
        result["exit_code"] = 1
        return result

    facade = result["facade"]
    if check_generated and facade is not None and facade["status"] == "drift":
        print(f"[{component}] generated facade is out of date; baseline not updated")
        result["exit_code"] = 1
        return result

    warnings: list[str] = []
    if version_override is not None:
        new_version = parse_version_label(version_override)
        report = render_override_report(version_label(new_version))
        classification = None
    else:
        baseline = load_snapshot(baseline_path)
        if baseline is None:
            print(f"[{component}] no baseline at {to_repo_relative(baseline_path, repo_root)}; first publication")
        classification = classify(
            baseline,
            module,
            initial_version=get_initial_version(config),
            name=component,
        )
        new_version = classification.new_version
        report = classification.report
        warnings.extend(classification.warnings)

    for warning in warnings:
        print(f"[{component}] warning: {warning}")
    print_report(component, report)

    published = replace(module, version=new_version)
    label = version_label(new_version)
    outputs: dict[str, str] = {}
    blob_path = output_dir / BLOB_FILE_NAME
    if dry_run:
        outputs[BLOB_FILE_NAME] = "would_write"
    else:
        store_snapshot(blob_path, published)
        if baseline_path != blob_path:
            store_snapshot(baseline_path, published)
        outputs[BLOB_FILE_NAME] = "updated"
    outputs[VERSION_FILE_NAME] = write_build_output(
        path=output_dir / VERSION_FILE_NAME, content=label, dry_run=dry_run
    )
    outputs[MESSAGE_FILE_NAME] = write_build_output(
        path=output_dir / MESSAGE_FILE_NAME, content=report, dry_run=dry_run
    )
    legacy_sources = builder.legacy_source_paths()
    outputs[LEGACY_SOURCES_FILE_NAME] = write_build_output(
        path=output_dir / LEGACY_SOURCES_FILE_NAME,
        content="".join(f"{path}\n" for path in legacy_sources),
        dry_run=dry_run,
    )
    print(f"[{component}] version: {label}")

    result.update(
        {
            "classification": classification,
            "module": published,
            "version": label,
            "report": report,
            "warnings": warnings,
            "outputs": outputs,
            "persisted": not dry_run,
        }
    )
    return result


def build_result_report_payload(result: dict[str, Any]) -> dict[str, Any]:
    return build_report_payload(
        result.get("classification"),
        component=str(result["component"]),
        new_version_label=str(result["version"]),
        report=str(result.get("report") or ""),
        warnings=result.get("warnings") or [],
    )


def build_module_from_records(
    *,
    repo_root: Path,
    config: dict[str, Any],
    record_paths: list[str],
) -> tuple[ApiBuilder, ApiModule]:
    builder = make_builder(repo_root, config)
    module = collect_passes(builder=builder, documents=load_record_documents(repo_root, record_paths))
    return builder, module


def diff_snapshots(
    *,
    baseline_path: Path,
    current_path: Path,
    initial_version: ApiVersion,
    component: str,
) -> Classification:
    current = load_snapshot(current_path)
    if current is None:
        raise ApiFrameworkError(f"Current snapshot not found: {current_path}")
    return classify(load_snapshot(baseline_path), current, initial_version=initial_version, name=component)
