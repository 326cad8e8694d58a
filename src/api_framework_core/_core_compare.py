from __future__ import annotations

import functools

from ._core_base import *  # noqa: F401,F403
from ._core_model import *  # noqa: F401,F403


@functools.total_ordering
class Compatibility(enum.Enum):
    SAME = 0
    PATCH = 1
    MINOR = 2
    MAJOR = 3

    def __lt__(self, other: object) -> bool:
        if not isinstance(other, Compatibility):
            return NotImplemented
        return self.value < other.value

    @staticmethod
    def max(a: "Compatibility", b: "Compatibility") -> "Compatibility":
        return a if a.value >= b.value else b

    def increment_version(self, version: ApiVersion) -> ApiVersion:
        if self is Compatibility.MAJOR:
            return ApiVersion(version.major + 1, 0, 0)
        if self is Compatibility.MINOR:
            return ApiVersion(version.major, version.minor + 1, 0)
        if self is Compatibility.PATCH:
            return ApiVersion(version.major, version.minor, version.patch + 1)
        return version


COMPATIBILITY_GLYPHS = {
    Compatibility.MAJOR: "\U0001F92F",
    Compatibility.MINOR: "\U0001F527",
    Compatibility.PATCH: "\U0001F485",
    Compatibility.SAME: "",
}


class DiffKind(enum.Enum):
    NONE = " "
    MODIFIED = "*"
    ADDED = "+"
    REMOVED = "-"

    @property
    def marker(self) -> str:
        return self.value


class Message(enum.Enum):
    BREAKING_CHANGES = (
        "❗ There are breaking changes which require extra attention.",
        "❗",
        "!!!",
    )
    NON_EXTENSION_METHOD_ADDED = (
        "❕ Non-extension methods added to existing types. "
        "It is generally advised to add methods to existing types as @Extension methods.",
        "❕",
        "!!",
    )

    def __init__(self, text: str, mark: str, simple_mark: str) -> None:
        self.text = text
        self.mark = mark
        self.simple_mark = simple_mark


MESSAGE_ORDER = {message: index for index, message in enumerate(Message)}


def ordered_messages(messages: Iterable[Message]) -> list[Message]:
    return sorted(set(messages), key=MESSAGE_ORDER.__getitem__)


@dataclass
class ChangeNode:
    name: str
    diff: DiffKind
    compatibility: Compatibility = Compatibility.SAME
    note: str | None = None
    messages: set[Message] = field(default_factory=set)
    children: list["ChangeNode"] = field(default_factory=list)

    def check(self, change: bool, note: str) -> None:
        if not change:
            return
        if self.diff is DiffKind.NONE:
            self.diff = DiffKind.MODIFIED
        self.note = note if self.note is None else f"{self.note}, {note}"

    def mark_breaking(self) -> None:
        self.compatibility = Compatibility.MAJOR
        self.messages.add(Message.BREAKING_CHANGES)

    @property
    def changed(self) -> bool:
        return self.diff is not DiffKind.NONE

    def as_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "diff": self.diff.name.lower(),
            "compatibility": self.compatibility.name,
            "note": self.note,
            "messages": [message.name for message in ordered_messages(self.messages)],
            "children": [child.as_dict() for child in self.children],
        }


@dataclass(frozen=True)
class Digest:
    compatibility: Compatibility
    diff: str
    messages: tuple[Message, ...]

    @property
    def breaking(self) -> bool:
        return Message.BREAKING_CHANGES in self.messages


def _node_for(old: Any, new: Any) -> ChangeNode:
    if new is None:
        return ChangeNode(name=old.display_name, diff=DiffKind.REMOVED)
    if old is None:
        return ChangeNode(name=new.display_name, diff=DiffKind.ADDED)
    return ChangeNode(name=new.display_name, diff=DiffKind.NONE)


def _same_value(a: Any, b: Any) -> bool:
    return type(a) is type(b) and a == b


def compare_collections(
    old: Mapping[Any, Any] | None,
    new: Mapping[Any, Any] | None,
    comparator: Callable[[Any, Any], ChangeNode],
) -> list[ChangeNode]:
    """Reconcile two keyed collections into added, removed and compared nodes."""
    old_items = dict(old or {})
    nodes: list[ChangeNode] = []
    for key, new_item in (new or {}).items():
        nodes.append(comparator(old_items.pop(key, None), new_item))
    for old_item in old_items.values():
        nodes.append(comparator(old_item, None))
    return sorted(nodes, key=lambda node: node.name)


def compare_modifiers(node: ChangeNode, old: frozenset[str], new: frozenset[str]) -> bool:
    """Apply the shared modifier rules; return True when the node is classified."""
    if node.changed:
        return True

    node.check("public" in old and "public" not in new, "decreased visibility")
    node.check(
        ("abstract" not in old and "abstract" in new) or ("default" in old and "default" not in new),
        "made abstract",
    )
    node.check("final" not in old and "final" in new, "made final")
    node.check(("static" in old) != ("static" in new), "changed static")
    if node.changed:
        node.mark_breaking()
        return True

    node.check("public" not in old and "public" in new, "increased visibility")
    node.check(
        ("abstract" in old and "abstract" not in new) or ("default" not in old and "default" in new),
        "made non-abstract",
    )
    node.check("final" in old and "final" not in new, "made non-final")
    if node.changed:
        node.compatibility = Compatibility.MINOR
        return True
    return False


def compare_fields(old: ApiField | None, new: ApiField | None) -> ChangeNode:
    node = _node_for(old, new)
    if node.diff is DiffKind.ADDED:
        node.compatibility = Compatibility.MINOR
        return node
    if node.diff is DiffKind.REMOVED:
        node.mark_breaking()
        return node

    node.check(old.type != new.type, "changed type")
    node.check(not _same_value(old.constant_value, new.constant_value), "changed value")
    if node.changed:
        node.mark_breaking()
        return node

    if compare_modifiers(node, old.modifiers, new.modifiers):
        return node

    node.check(old.deprecation is not new.deprecation, "changed deprecation state")
    if node.changed:
        node.compatibility = Compatibility.MINOR
    return node


def compare_methods(old: ApiMethod | None, new: ApiMethod | None, owner: ApiType) -> ChangeNode:
    node = _node_for(old, new)
    if node.diff is DiffKind.ADDED:
        if owner.usage.inheritable_by_client and "abstract" in new.modifiers:
            # Every client implementation of the callback stops compiling.
            node.mark_breaking()
            return node
        node.compatibility = Compatibility.MINOR
        if (
            new.extension is None
            and owner.usage.inheritable_by_backend
            and "abstract" in new.modifiers
            and "static" not in new.modifiers
            and "final" not in new.modifiers
        ):
            node.messages.add(Message.NON_EXTENSION_METHOD_ADDED)
        return node
    if node.diff is DiffKind.REMOVED:
        node.mark_breaking()
        return node

    node.check(old.return_type != new.return_type, "changed return type")
    node.check(old.thrown_types != new.thrown_types, "changed thrown types")
    node.check(old.type_parameters != new.type_parameters, "changed type parameters")
    if node.changed:
        node.mark_breaking()
        return node

    if compare_modifiers(node, old.modifiers, new.modifiers):
        return node

    node.check(old.deprecation is not new.deprecation, "changed deprecation state")
    node.check(old.extension != new.extension, "changed extension")
    if node.changed:
        node.compatibility = Compatibility.MINOR
    return node


def compare_types(old: ApiType | None, new: ApiType | None) -> ChangeNode:
    node = _node_for(old, new)
    if node.diff is DiffKind.ADDED:
        node.compatibility = Compatibility.MINOR
        return node
    if node.diff is DiffKind.REMOVED:
        node.mark_breaking()
        return node

    node.children.extend(compare_collections(old.types, new.types, compare_types))
    node.children.extend(compare_collections(old.fields, new.fields, compare_fields))
    node.children.extend(
        compare_collections(old.methods, new.methods, lambda a, b: compare_methods(a, b, owner=new))
    )

    node.check(old.kind is not new.kind, "changed kind")
    node.check(not new.supertypes.issuperset(old.supertypes), "contracted supertype set")
    node.check(old.type_parameters != new.type_parameters, "changed type parameters")
    node.check(
        old.usage.inheritable_by_backend and not new.usage.inheritable_by_backend,
        "prohibited inheritance by backend",
    )
    node.check(
        old.usage.inheritable_by_client and not new.usage.inheritable_by_client,
        "prohibited inheritance by client",
    )
    if node.changed:
        node.mark_breaking()
        return node

    if compare_modifiers(node, old.modifiers, new.modifiers):
        return node

    node.check(old.supertypes != new.supertypes, "expanded supertype set")
    node.check(old.deprecation is not new.deprecation, "changed deprecation state")
    node.check(
        not old.usage.inheritable_by_backend and new.usage.inheritable_by_backend,
        "allowed inheritance by backend",
    )
    node.check(
        not old.usage.inheritable_by_client and new.usage.inheritable_by_client,
        "allowed inheritance by client",
    )
    if node.changed:
        node.compatibility = Compatibility.MINOR
    return node


def compare_modules(old: ApiModule | None, new: ApiModule | None, name: str = "api") -> ChangeNode:
    """Diff two module snapshots; the returned root is not itself a declaration."""
    if old is None or new is None:
        root = ChangeNode(name=name, diff=DiffKind.MODIFIED)
        root.note = "first publication" if old is None else "current snapshot unavailable"
        root.mark_breaking()
        return root

    root = ChangeNode(name=name, diff=DiffKind.NONE)
    root.children.extend(compare_collections(old.types, new.types, compare_types))
    if old.hash != new.hash:
        root.compatibility = Compatibility.PATCH
    return root


def _marks(node: ChangeNode, ascii_marks: bool) -> str:
    return "".join(
        f" {message.simple_mark if ascii_marks else message.mark}" for message in ordered_messages(node.messages)
    )


def _node_line(node: ChangeNode, depth: int, ascii_marks: bool) -> str:
    line = f"{'  ' * depth}{node.diff.marker} {node.name}"
    if node.note is not None:
        line += f" - {node.note}"
    return line + _marks(node, ascii_marks)


def _render_node(
    node: ChangeNode,
    depth: int,
    out: list[str],
    messages: set[Message],
    ascii_marks: bool,
) -> Compatibility:
    messages.update(node.messages)
    compatibility = node.compatibility
    child_lines: list[str] = []
    for child in node.children:
        compatibility = Compatibility.max(
            compatibility, _render_node(child, depth + 1, child_lines, messages, ascii_marks)
        )
    if compatibility is not Compatibility.SAME or node.note is not None or node.messages:
        out.append(_node_line(node, depth, ascii_marks))
    out.extend(child_lines)
    return compatibility


def build_digest(root: ChangeNode, ascii_marks: bool = False) -> Digest:
    """Fold the change tree into its total compatibility and rendered diff."""
    lines: list[str] = []
    messages: set[Message] = set(root.messages)
    compatibility = root.compatibility
    if root.note is not None:
        lines.append(_node_line(root, 0, ascii_marks))
    for child in root.children:
        compatibility = Compatibility.max(compatibility, _render_node(child, 0, lines, messages, ascii_marks))
    diff = "".join(f"{line}\n" for line in lines)
    return Digest(compatibility=compatibility, diff=diff, messages=tuple(ordered_messages(messages)))


def render_report(digest: Digest, old_version: ApiVersion, new_version: ApiVersion) -> str:
    if digest.compatibility is Compatibility.SAME:
        return ""
    parts: list[str] = []
    if digest.diff:
        parts.append(f"```\n{digest.diff}```\n")
    for message in digest.messages:
        parts.append(f"{message.text}\n")
    glyph = COMPATIBILITY_GLYPHS[digest.compatibility]
    parts.append(f"Compatibility status of API changes: {digest.compatibility.name} {glyph}\n")
    parts.append(f"Version increment: {old_version} -> {new_version}\n")
    return "".join(parts)


def render_override_report(override: str) -> str:
    return f"{Message.BREAKING_CHANGES.mark} Skipping API checks, version override specified: {override}\n"


def simplify_report(report: str) -> str:
    """Console form of a report: ASCII marks, no other non-ASCII, no code fences."""
    simple = report
    for message in Message:
        simple = simple.replace(message.mark, message.simple_mark)
    simple = re.sub(r"[^\x00-\x7F]", "", simple)
    simple = simple.replace("```\n", "")
    return simple.rstrip()


@dataclass(frozen=True)
class Classification:
    root: ChangeNode
    digest: Digest
    baseline_version: ApiVersion
    new_version: ApiVersion
    report: str
    warnings: tuple[str, ...] = ()

    @property
    def compatibility(self) -> Compatibility:
        return self.digest.compatibility

    @property
    def breaking(self) -> bool:
        return self.digest.breaking


def classify(
    old: ApiModule | None,
    new: ApiModule,
    *,
    initial_version: ApiVersion = ApiVersion(0, 0, 0),
    name: str = "api",
) -> Classification:
    warnings: list[str] = []
    if old is None:
        baseline_version = initial_version
    elif old.version is None:
        baseline_version = initial_version
        warnings.append(
            f"Baseline snapshot has version {SNAPSHOT_VERSION_LABEL}; incrementing from {initial_version}."
        )
    else:
        baseline_version = old.version

    root = compare_modules(old, new, name=name)
    digest = build_digest(root)
    new_version = digest.compatibility.increment_version(baseline_version)
    return Classification(
        root=root,
        digest=digest,
        baseline_version=baseline_version,
        new_version=new_version,
        report=render_report(digest, baseline_version, new_version),
        warnings=tuple(warnings),
    )


def build_report_payload(
    classification: Classification | None,
    *,
    component: str,
    new_version_label: str,
    report: str,
    warnings: Iterable[str] = (),
) -> dict[str, Any]:
    payload: dict[str, Any] = {
        "component": component,
        "generated_at_utc": utc_timestamp_now(),
        "checked": classification is not None,
        "new_version": new_version_label,
        "report": report,
        "warnings": list(warnings),
    }
    if classification is not None:
        payload.update(
            {
                "compatibility": classification.compatibility.name,
                "breaking": classification.breaking,
                "baseline_version": str(classification.baseline_version),
                "messages": [message.name for message in classification.digest.messages],
                "diff": classification.digest.diff,
                "changes": classification.root.as_dict(),
            }
        )
    validate_with_jsonschema("report", payload, "compatibility report")
    return payload


def print_report(component: str, report: str) -> None:
    if not report:
        print(f"[{component}] API unchanged")
        return
    print(simplify_report(report))


def write_markdown_report(path: Path, payload: dict[str, Any]) -> None:
    lines: list[str] = []
    lines.append(f"# API Report ({payload.get('component', 'api')})")
    lines.append("")
    if payload.get("checked"):
        lines.append(f"- Compatibility: `{payload.get('compatibility')}`")
        lines.append(f"- Breaking changes: `{'yes' if payload.get('breaking') else 'no'}`")
        lines.append(f"- Version: `{payload.get('baseline_version')}` -> `{payload.get('new_version')}`")
    else:
        lines.append(f"- Version override: `{payload.get('new_version')}` (checks skipped)")
    lines.append("")

    diff = payload.get("diff")
    if isinstance(diff, str) and diff:
        lines.append("## Changes")
        lines.append("")
        lines.append("```")
        lines.append(diff.rstrip("\n"))
        lines.append("```")
        lines.append("")

    messages = payload.get("messages")
    if isinstance(messages, list) and messages:
        lines.append("## Messages")
        for name in messages:
            lines.append(f"- {Message[name].text}")
        lines.append("")

    warnings = payload.get("warnings")
    if isinstance(warnings, list) and warnings:
        lines.append("## Warnings")
        for warning in warnings:
            lines.append(f"- {warning}")
        lines.append("")

    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text("\n".join(lines) + "\n", encoding="utf-8")
