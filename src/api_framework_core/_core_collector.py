from __future__ import annotations

from ._core_base import *  # noqa: F401,F403
from ._core_model import *  # noqa: F401,F403
from ._core_snapshot import compute_module_hash, string_hash

USAGE_ANNOTATIONS = ("Service", "Provided", "Provides")


@dataclass(frozen=True)
class ValidationIssue:
    declaration: str
    message: str

    def __str__(self) -> str:
        return f"{self.declaration}: {self.message}"


def load_records_document(path: Path) -> dict[str, Any]:
    payload = load_json(path)
    validate_with_jsonschema("records", payload, f"declaration records '{path}'")
    return payload


def _deprecation(record: dict[str, Any]) -> Deprecation:
    return Deprecation(record.get("deprecation", "none"))


def _type_parameters(record: dict[str, Any]) -> tuple[TypeParameter, ...]:
    return tuple(
        TypeParameter(name=str(item["name"]), bounds=frozenset(item.get("bounds", [])))
        for item in record.get("type_parameters", [])
    )


def _is_api(modifiers: Iterable[str]) -> bool:
    mods = set(modifiers)
    return "public" in mods or "protected" in mods


def derive_simple_name(qualified_name: str) -> str:
    return re.split(r"[.$]", qualified_name)[-1]


class ApiBuilder:
    """Accumulates declaration records over one or more extraction passes.

    Records from every pass are merged into mutable drafts; ``finalize`` turns
    them into an immutable :class:`ApiModule` and computes the content hash.
    Validation problems are collected in ``issues`` instead of being raised, so
    one build reports every violation at once.
    """

    def __init__(
        self,
        *,
        repo_root: Path | None = None,
        root_type: str = DEFAULT_ROOT_TYPE,
        module_descriptor: str = DEFAULT_MODULE_DESCRIPTOR,
    ) -> None:
        self.repo_root = repo_root
        self.root_type = canonical_name(root_type)
        self.module_descriptor = module_descriptor
        self.issues: list[ValidationIssue] = []
        self.pass_count = 0
        self._finalized = False
        self._types: dict[str, dict[str, Any]] = {}
        self._fields: dict[str, dict[str, ApiField]] = {}
        self._methods: dict[str, dict[MethodKey, ApiMethod]] = {}
        self._skipped_types: set[str] = set()
        self._direct_supertypes: dict[str, list[str]] = {}
        self._encountered_supertypes: set[str] = set()
        self._unit_name_hashes: dict[str, int] = {}
        self._unit_contents: dict[str, str] = {}

    @property
    def finalized(self) -> bool:
        return self._finalized

    def _ensure_open(self, action: str) -> None:
        if self._finalized:
            raise ApiStateError(f"Cannot {action}: the API snapshot has already been finalized.")

    def _report(self, declaration: str, message: str) -> None:
        self.issues.append(ValidationIssue(declaration=declaration, message=message))

    def add_pass(self, records: Iterable[dict[str, Any]]) -> None:
        self._ensure_open("add declaration records")
        self.pass_count += 1
        for record in records:
            kind = record.get("record")
            if kind == "source":
                self._add_source(record)
            elif kind == "type":
                self._add_type(record)
            elif kind == "field":
                self._add_field(record)
            elif kind == "method":
                self._add_method(record)
            else:
                raise ApiFrameworkError(f"Unknown declaration record kind '{kind}'")

    def _add_source(self, record: dict[str, Any]) -> None:
        path = str(record["path"])
        self._unit_name_hashes.setdefault(path, 0)
        content = record.get("content")
        if isinstance(content, str):
            self._unit_contents[path] = content

    def _check_modifiers(self, declaration: str, modifiers: Iterable[str]) -> None:
        if not ALLOWED_MODIFIERS.issuperset(modifiers):
            allowed = ", ".join(sorted(ALLOWED_MODIFIERS))
            self._report(declaration, f"Only some modifiers are allowed in public API: [{allowed}]")

    def _add_type(self, record: dict[str, Any]) -> None:
        qualified_name = str(record["qualified_name"])
        enclosing = record.get("enclosing")
        modifiers = frozenset(record.get("modifiers", []))
        supertypes = [str(item) for item in record.get("supertypes", [])]
        annotations = frozenset(item for item in record.get("annotations", []) if item in USAGE_ANNOTATIONS)
        kind = TypeKind(record["kind"])

        self._direct_supertypes[canonical_name(qualified_name)] = supertypes
        self._encountered_supertypes.update(canonical_name(item) for item in supertypes)

        source = record.get("source")
        if enclosing is None and isinstance(source, str) and source:
            previous = self._unit_name_hashes.get(source, 0)
            self._unit_name_hashes[source] = previous ^ string_hash(qualified_name)

        self._check_annotations(qualified_name, kind, modifiers, annotations)

        if enclosing is not None and enclosing not in self._types:
            if enclosing in self._skipped_types:
                self._skipped_types.add(qualified_name)
                return
            raise ApiFrameworkError(
                f"Type '{qualified_name}' was declared before its enclosing type '{enclosing}'."
            )
        if not _is_api(modifiers):
            self._skipped_types.add(qualified_name)
            return
        if qualified_name in self._types:
            raise ApiFrameworkError(f"Type '{qualified_name}' was declared more than once.")

        self._check_modifiers(qualified_name, modifiers)
        self._types[qualified_name] = {
            "qualified_name": qualified_name,
            "simple_name": str(record.get("simple_name") or derive_simple_name(qualified_name)),
            "enclosing": enclosing,
            "kind": kind,
            "modifiers": modifiers,
            "type_parameters": _type_parameters(record),
            "deprecation": _deprecation(record),
            "usage": Usage.from_annotations(annotations),
            "annotations": annotations,
            "fallback": record.get("fallback"),
            "doc_comment": record.get("doc_comment"),
        }
        self._fields[qualified_name] = {}
        self._methods[qualified_name] = {}

    def _check_annotations(
        self,
        qualified_name: str,
        kind: TypeKind,
        modifiers: frozenset[str],
        annotations: frozenset[str],
    ) -> None:
        if "Service" in annotations:
            if "Provided" not in annotations:
                self._report(qualified_name, "@Service also requires @Provided")
            if "Provides" in annotations:
                self._report(qualified_name, "@Service cannot be used with @Provides")
        if "Provided" in annotations and ("final" in modifiers or "sealed" in modifiers):
            self._report(qualified_name, "Final/sealed type marked with @Provided")
        if annotations & {"Provided", "Provides"} and kind not in (TypeKind.CLASS, TypeKind.INTERFACE):
            self._report(qualified_name, "Non-class/interface marked with @Provided/@Provides")

    def _owner_of(self, record: dict[str, Any]) -> str | None:
        owner = str(record["owner"])
        if owner in self._types:
            return owner
        if owner in self._skipped_types:
            return None
        raise ApiFrameworkError(
            f"Member '{record.get('name')}' was declared before its owner type '{owner}'."
        )

    def _add_field(self, record: dict[str, Any]) -> None:
        owner = self._owner_of(record)
        modifiers = frozenset(record.get("modifiers", []))
        if owner is None or not _is_api(modifiers):
            return
        api_field = ApiField(
            name=str(record["name"]),
            modifiers=modifiers,
            type=str(record["type"]),
            constant_value=record.get("constant_value"),
            deprecation=_deprecation(record),
        )
        declaration = f"{owner}.{api_field.name}"
        self._check_modifiers(declaration, modifiers)
        if "static" in modifiers and "final" not in modifiers:
            self._report(declaration, "Static API fields must be final")
        self._fields[owner][api_field.key] = api_field

    def _add_method(self, record: dict[str, Any]) -> None:
        owner = self._owner_of(record)
        modifiers = frozenset(record.get("modifiers", []))
        if owner is None or not _is_api(modifiers):
            return
        method = ApiMethod(
            name=str(record["name"]),
            parameter_types=tuple(str(item) for item in record.get("parameter_types", [])),
            modifiers=modifiers,
            return_type=str(record["return_type"]),
            thrown_types=frozenset(record.get("thrown_types", [])),
            type_parameters=_type_parameters(record),
            deprecation=_deprecation(record),
            extension=record.get("extension"),
        )
        declaration = f"{owner}.{method.display_name}"
        self._check_modifiers(declaration, modifiers)
        usage: Usage = self._types[owner]["usage"]
        if method.extension is not None and (
            not usage.inheritable_by_backend or "static" in modifiers or "final" in modifiers
        ):
            self._report(
                declaration,
                "Only methods intended to be inherited by the backend can be marked with @Extension",
            )
        self._methods[owner][method.key] = method

    def _collect_supertypes(self, qualified_name: str) -> frozenset[str]:
        result: set[str] = set()
        pending = list(self._direct_supertypes.get(canonical_name(qualified_name), []))
        while pending:
            name = pending.pop()
            canonical = canonical_name(name)
            if canonical == self.root_type or name in result:
                continue
            result.add(name)
            pending.extend(self._direct_supertypes.get(canonical, []))
        return frozenset(result)

    def _build_type(self, qualified_name: str, children: dict[str, list[str]]) -> ApiType:
        draft = self._types[qualified_name]
        nested = (self._build_type(name, children) for name in children.get(qualified_name, []))
        return ApiType(
            supertypes=self._collect_supertypes(qualified_name),
            fields=freeze_mapping(self._fields[qualified_name]),
            methods=freeze_mapping(self._methods[qualified_name]),
            types=freeze_mapping({item.key: item for item in nested}),
            **draft,
        )

    def build_types(self) -> dict[str, ApiType]:
        """Build immutable top-level types from the records accumulated so far."""
        children: dict[str, list[str]] = {}
        top_level: list[str] = []
        for qualified_name, draft in self._types.items():
            enclosing = draft["enclosing"]
            if enclosing is None:
                top_level.append(qualified_name)
            else:
                children.setdefault(enclosing, []).append(qualified_name)
        return {name: self._build_type(name, children) for name in top_level}

    def _check_unused_types(self) -> None:
        for qualified_name, draft in self._types.items():
            if draft["usage"] is not Usage.NONE or "final" in draft["modifiers"]:
                continue
            if draft["kind"] not in (TypeKind.CLASS, TypeKind.INTERFACE):
                continue
            if canonical_name(qualified_name) in self._encountered_supertypes:
                continue
            self._report(
                qualified_name,
                "API types must either be final, or annotated with @Service/@Provided/@Provides",
            )

    def _read_unit_content(self, path: str) -> str:
        if path in self._unit_contents:
            return self._unit_contents[path]
        resolved = ensure_relative_path(self.repo_root or Path.cwd(), path)
        try:
            return resolved.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as exc:
            raise ApiFrameworkError(f"Unable to read source unit '{resolved}': {exc}") from exc

    def source_paths(self) -> list[str]:
        return sorted(self._unit_name_hashes)

    def legacy_source_paths(self) -> list[str]:
        """Source units other than the module descriptor."""
        return [path for path in self.source_paths() if Path(path).name != self.module_descriptor]

    def finalize(self) -> ApiModule:
        self._ensure_open("finalize")
        self._check_unused_types()
        units = {
            path: (self._read_unit_content(path), name_hash)
            for path, name_hash in self._unit_name_hashes.items()
        }
        module = ApiModule(
            types=freeze_mapping(self.build_types()),
            hash=compute_module_hash(units),
            source_paths=tuple(self.source_paths()),
        )
        self._finalized = True
        return module
