from __future__ import annotations

from ._core_base import *  # noqa: F401,F403
from ._core_model import *  # noqa: F401,F403

GENERATED_METHODS_PLACEHOLDER = "/*GENERATED_METHODS*/"
KNOWN_EXTENSIONS_PLACEHOLDER = "/*KNOWN_EXTENSIONS*/"
KNOWN_PROXIES_PLACEHOLDER = "/*KNOWN_PROXIES*/"
KNOWN_SERVICES_PLACEHOLDER = "/*KNOWN_SERVICES*/"

DEFAULT_FACADE_TEMPLATE = "Facade.java"
DEFAULT_ACCESSOR_TEMPLATE = "service-getter.txt"
DEFAULT_EXTENSION_ENTRY_FORMAT = "KNOWN_EXTENSIONS.put(Extensions.{name}, new Class[] {{{classes}}});"
DEFAULT_CLASS_LITERAL_FORMAT = "{name}.class"

DEPRECATION_ANNOTATIONS = {
    Deprecation.NONE: "",
    Deprecation.DEPRECATED: "\n@Deprecated",
    Deprecation.FOR_REMOVAL: '\n@SuppressWarnings("removal")\n@Deprecated(forRemoval = true)',
}


@dataclass(frozen=True)
class FacadeModel:
    """Write-once registries rendered into the generated dispatcher."""

    services: tuple[ApiType, ...]
    service_names: tuple[str, ...]
    proxy_names: tuple[str, ...]
    extensions: Mapping[str, tuple[str, ...]]


def get_templates_dir() -> Path:
    return Path(__file__).resolve().parent / "templates"


def load_template(path: Path) -> str:
    if not path.exists():
        raise TemplateError(f"Facade template not found: {path}")
    try:
        return path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        raise TemplateError(f"Unable to read facade template '{path}': {exc}") from exc


def indent_statement(statement: str, width: int) -> str:
    # Whitespace-only lines stay unindented, unlike String.indent in the Java
    # generator, so blank lines inside multi-line accessors carry no trailing spaces.
    return textwrap.indent(statement.rstrip("\n") + "\n", " " * width)


def replace_template(source: str, placeholder: str, statements: Iterable[str], space: bool) -> str:
    """Replace the whole placeholder line with statements at the placeholder's column.

    The indentation is the run of spaces directly before the placeholder.
    With ``space`` set, consecutive statements are separated by a blank line.
    """
    index = source.find(placeholder)
    if index < 0:
        raise TemplateError(f"Placeholder {placeholder} not found in facade template")
    indent = 0
    while index - indent >= 1 and source[index - indent - 1] == " ":
        indent += 1
    next_line = source.find("\n", index + len(placeholder)) + 1
    if next_line == 0:
        next_line = index + len(placeholder)

    parts = [source[: index - indent]]
    for position, statement in enumerate(statements):
        if position and space:
            parts.append("\n")
        parts.append(indent_statement(statement, indent))
    parts.append(source[next_line:])
    return "".join(parts)


def replace_inline(source: str, placeholder: str, value: str) -> str:
    if placeholder not in source:
        raise TemplateError(f"Placeholder {placeholder} not found in facade template")
    return source.replace(placeholder, value)


def render_javadoc(doc_comment: str | None) -> str:
    if doc_comment is None:
        return ""
    return "\n *" + doc_comment.replace("\n", "\n *")


def render_accessor(template: str, api_type: ApiType) -> str:
    fallback = f"{canonical_name(api_type.fallback)}::new" if api_type.fallback else "null"
    # '$' is substituted before the javadoc goes in, so doc text keeps its dollars.
    return (
        template.replace("<FALLBACK>", fallback)
        .replace("$", api_type.simple_name)
        .replace("<JAVADOC>", render_javadoc(api_type.doc_comment))
        .replace("<DEPRECATED>", DEPRECATION_ANNOTATIONS[api_type.deprecation])
    )


def quote_names(names: Iterable[str]) -> str:
    return ", ".join(f'"{name}"' for name in names)


def iter_all_types(types: Iterable[ApiType]) -> Iterable[ApiType]:
    for api_type in types:
        yield from api_type.iter_types()


def build_facade_model(types: Iterable[ApiType]) -> FacadeModel:
    all_types = sorted(iter_all_types(types), key=lambda item: item.qualified_name)
    services = tuple(
        item
        for item in all_types
        if "Service" in item.annotations and item.is_top_level and "public" in item.modifiers
    )
    extensions: dict[str, set[str]] = {}
    for api_type in all_types:
        for method in api_type.methods.values():
            if method.extension is not None:
                extensions.setdefault(method.extension, set()).add(api_type.qualified_name)
    return FacadeModel(
        services=services,
        service_names=tuple(item.qualified_name for item in all_types if "Service" in item.annotations),
        proxy_names=tuple(item.qualified_name for item in all_types if "Provided" in item.annotations),
        extensions=freeze_mapping({name: tuple(sorted(owners)) for name, owners in sorted(extensions.items())}),
    )


def render_extension_entries(
    model: FacadeModel,
    *,
    entry_format: str = DEFAULT_EXTENSION_ENTRY_FORMAT,
    class_literal_format: str = DEFAULT_CLASS_LITERAL_FORMAT,
) -> list[str]:
    entries: list[str] = []
    for name, owners in model.extensions.items():
        classes = ", ".join(class_literal_format.format(name=canonical_name(owner)) for owner in owners)
        entries.append(entry_format.format(name=name, classes=classes))
    return entries


def render_facade(
    model: FacadeModel,
    *,
    skeleton: str,
    accessor_template: str,
    entry_format: str = DEFAULT_EXTENSION_ENTRY_FORMAT,
    class_literal_format: str = DEFAULT_CLASS_LITERAL_FORMAT,
) -> str:
    accessors = [render_accessor(accessor_template, item) for item in model.services]
    entries = render_extension_entries(model, entry_format=entry_format, class_literal_format=class_literal_format)
    content = replace_template(skeleton, GENERATED_METHODS_PLACEHOLDER, accessors, True)
    content = replace_template(content, KNOWN_EXTENSIONS_PLACEHOLDER, entries, False)
    content = replace_inline(content, KNOWN_PROXIES_PLACEHOLDER, quote_names(model.proxy_names))
    content = replace_inline(content, KNOWN_SERVICES_PLACEHOLDER, quote_names(model.service_names))
    return content


def normalized_lines(value: str) -> list[str]:
    return value.replace("\r\n", "\n").splitlines()


def compute_unified_diff(old_content: str, new_content: str, old_label: str, new_label: str) -> str:
    diff_lines = difflib.unified_diff(
        normalized_lines(old_content),
        normalized_lines(new_content),
        fromfile=old_label,
        tofile=new_label,
        lineterm="",
    )
    return "\n".join(diff_lines)


def write_artifact_if_changed(
    *,
    path: Path,
    content: str,
    dry_run: bool,
    check: bool,
) -> tuple[str, str]:
    old_content = read_text_if_exists(path)
    if old_content == content:
        return "unchanged", ""
    if check:
        return "drift", compute_unified_diff(old_content, content, f"a/{path}", f"b/{path}")
    if dry_run:
        return "would_write", compute_unified_diff(old_content, content, f"a/{path}", f"b/{path}")
    write_text(path, content)
    return "updated", compute_unified_diff(old_content, content, f"a/{path}", f"b/{path}")


def is_facade_enabled(config: dict[str, Any]) -> bool:
    facade = config.get("facade")
    return isinstance(facade, dict) and bool(facade.get("enabled", True))


def resolve_facade_paths(repo_root: Path, config: dict[str, Any]) -> tuple[Path, Path, Path]:
    facade = get_section(config, "facade")
    output_path = facade.get("output_path")
    if not isinstance(output_path, str) or not output_path:
        raise ApiFrameworkError("config.facade.output_path is required when the facade generator is enabled")

    template_value = facade.get("template_path")
    accessor_value = facade.get("accessor_template_path")
    template_path = (
        ensure_relative_path(repo_root, template_value)
        if isinstance(template_value, str) and template_value
        else get_templates_dir() / DEFAULT_FACADE_TEMPLATE
    )
    accessor_path = (
        ensure_relative_path(repo_root, accessor_value)
        if isinstance(accessor_value, str) and accessor_value
        else get_templates_dir() / DEFAULT_ACCESSOR_TEMPLATE
    )
    return template_path.resolve(), accessor_path.resolve(), ensure_relative_path(repo_root, output_path).resolve()


def generate_facade(
    *,
    repo_root: Path,
    config: dict[str, Any],
    types: Iterable[ApiType],
    dry_run: bool,
    check: bool,
) -> dict[str, Any]:
    template_path, accessor_path, output_path = resolve_facade_paths(repo_root, config)
    facade = get_section(config, "facade")
    model = build_facade_model(types)
    content = render_facade(
        model,
        skeleton=load_template(template_path),
        accessor_template=load_template(accessor_path),
        entry_format=str(facade.get("extension_entry_format") or DEFAULT_EXTENSION_ENTRY_FORMAT),
        class_literal_format=str(facade.get("class_literal_format") or DEFAULT_CLASS_LITERAL_FORMAT),
    )
    status, diff = write_artifact_if_changed(path=output_path, content=content, dry_run=dry_run, check=check)
    return {
        "path": to_repo_relative(output_path, repo_root),
        "status": status,
        "diff": diff,
        "service_count": len(model.services),
        "extension_count": len(model.extensions),
    }
