from __future__ import annotations

from ._core_base import *  # noqa: F401,F403
from ._core_model import *  # noqa: F401,F403

INT32_MASK = 0xFFFFFFFF
HASH_MULTIPLIER = 31


def to_int32(value: int) -> int:
    value &= INT32_MASK
    return value - (1 << 32) if value & 0x80000000 else value


def string_hash(text: str) -> int:
    """Polynomial string hash (``h = 31 * h + c``) truncated to signed 32 bits."""
    value = 0
    for ch in text:
        value = (HASH_MULTIPLIER * value + ord(ch)) & INT32_MASK
    return to_int32(value)


def content_hash(content: str) -> int:
    """Hash source content with CR and CRLF line terminators folded to LF."""
    value = 0
    length = len(content)
    index = 0
    while index < length:
        ch = content[index]
        if ch == "\r":
            ch = "\n"
            if index + 1 < length and content[index + 1] == "\n":
                index += 1
        value = (HASH_MULTIPLIER * value + ord(ch)) & INT32_MASK
        index += 1
    return to_int32(value)


def unit_hash(content: str, name_hash: int) -> int:
    return to_int32(HASH_MULTIPLIER * name_hash + content_hash(content))


def combine_unit_hashes(hashes: Iterable[int]) -> int:
    # XOR keeps the aggregate independent of source traversal order.
    total = 0
    for value in hashes:
        total ^= value
    return to_int32(total)


def compute_module_hash(units: Mapping[str, tuple[str, int]]) -> int:
    """Aggregate ``{path: (content, name_hash)}`` into one module hash."""
    return combine_unit_hashes(unit_hash(content, name_hash) for content, name_hash in units.values())


def _type_parameters_to_payload(params: Iterable[TypeParameter]) -> list[dict[str, Any]]:
    return [param.as_dict() for param in params]


def _type_parameters_from_payload(payload: list[dict[str, Any]]) -> tuple[TypeParameter, ...]:
    return tuple(TypeParameter(name=str(item["name"]), bounds=frozenset(item.get("bounds", []))) for item in payload)


def field_to_payload(api_field: ApiField) -> dict[str, Any]:
    payload: dict[str, Any] = {
        "name": api_field.name,
        "modifiers": sorted(api_field.modifiers),
        "type": api_field.type,
        "deprecation": api_field.deprecation.value,
    }
    if api_field.constant_value is not None:
        payload["constant_value"] = api_field.constant_value
    return payload


def method_to_payload(method: ApiMethod) -> dict[str, Any]:
    payload: dict[str, Any] = {
        "name": method.name,
        "parameter_types": list(method.parameter_types),
        "modifiers": sorted(method.modifiers),
        "return_type": method.return_type,
        "thrown_types": sorted(method.thrown_types),
        "type_parameters": _type_parameters_to_payload(method.type_parameters),
        "deprecation": method.deprecation.value,
    }
    if method.extension is not None:
        payload["extension"] = method.extension
    return payload


def type_to_payload(api_type: ApiType) -> dict[str, Any]:
    payload: dict[str, Any] = {
        "qualified_name": api_type.qualified_name,
        "simple_name": api_type.simple_name,
        "kind": api_type.kind.value,
        "modifiers": sorted(api_type.modifiers),
        "supertypes": sorted(api_type.supertypes),
        "type_parameters": _type_parameters_to_payload(api_type.type_parameters),
        "deprecation": api_type.deprecation.value,
        "usage": api_type.usage.label,
        "annotations": sorted(api_type.annotations),
        "fields": [field_to_payload(item) for _, item in sorted(api_type.fields.items())],
        "methods": [method_to_payload(item) for _, item in sorted(api_type.methods.items())],
        "types": [type_to_payload(item) for _, item in sorted(api_type.types.items())],
    }
    if api_type.enclosing is not None:
        payload["enclosing"] = api_type.enclosing
    if api_type.fallback is not None:
        payload["fallback"] = api_type.fallback
    if api_type.doc_comment is not None:
        payload["doc_comment"] = api_type.doc_comment
    return payload


def field_from_payload(payload: dict[str, Any]) -> ApiField:
    return ApiField(
        name=str(payload["name"]),
        modifiers=frozenset(payload["modifiers"]),
        type=str(payload["type"]),
        constant_value=payload.get("constant_value"),
        deprecation=Deprecation(payload["deprecation"]),
    )


def method_from_payload(payload: dict[str, Any]) -> ApiMethod:
    return ApiMethod(
        name=str(payload["name"]),
        parameter_types=tuple(str(item) for item in payload["parameter_types"]),
        modifiers=frozenset(payload["modifiers"]),
        return_type=str(payload["return_type"]),
        thrown_types=frozenset(payload["thrown_types"]),
        type_parameters=_type_parameters_from_payload(payload["type_parameters"]),
        deprecation=Deprecation(payload["deprecation"]),
        extension=payload.get("extension"),
    )


def type_from_payload(payload: dict[str, Any]) -> ApiType:
    fields = (field_from_payload(item) for item in payload["fields"])
    methods = (method_from_payload(item) for item in payload["methods"])
    nested = (type_from_payload(item) for item in payload["types"])
    return ApiType(
        qualified_name=str(payload["qualified_name"]),
        simple_name=str(payload.get("simple_name", "")),
        kind=TypeKind(payload["kind"]),
        modifiers=frozenset(payload["modifiers"]),
        supertypes=frozenset(payload["supertypes"]),
        type_parameters=_type_parameters_from_payload(payload["type_parameters"]),
        deprecation=Deprecation(payload["deprecation"]),
        usage=Usage.from_label(payload["usage"]),
        annotations=frozenset(payload.get("annotations", [])),
        fields=freeze_mapping({item.key: item for item in fields}),
        methods=freeze_mapping({item.key: item for item in methods}),
        types=freeze_mapping({item.key: item for item in nested}),
        enclosing=payload.get("enclosing"),
        fallback=payload.get("fallback"),
        doc_comment=payload.get("doc_comment"),
    )


def module_to_payload(module: ApiModule) -> dict[str, Any]:
    return {
        "format_version": SNAPSHOT_FORMAT_VERSION,
        "tool": {"name": TOOL_NAME, "version": TOOL_VERSION},
        "generated_at_utc": utc_timestamp_now(),
        "version": version_label(module.version),
        "hash": module.hash,
        "source_paths": list(module.source_paths),
        "types": [type_to_payload(item) for _, item in sorted(module.types.items())],
    }


def module_from_payload(payload: dict[str, Any], label: str) -> ApiModule:
    validate_snapshot_payload(payload, label)
    types = (type_from_payload(item) for item in payload["types"])
    return ApiModule(
        types=freeze_mapping({item.key: item for item in types}),
        hash=int(payload["hash"]),
        version=parse_version_label(str(payload["version"])),
        source_paths=tuple(str(item) for item in payload.get("source_paths", [])),
    )


def validate_snapshot_payload(payload: Any, label: str) -> None:
    if not isinstance(payload, dict):
        raise SnapshotCorruptError(f"{label} root must be an object")
    format_version = payload.get("format_version")
    if format_version != SNAPSHOT_FORMAT_VERSION:
        raise SnapshotCorruptError(
            f"{label} uses unsupported format_version={format_version}; only {SNAPSHOT_FORMAT_VERSION} is supported"
        )
    try:
        validate_with_jsonschema("snapshot", payload, label)
    except ApiFrameworkError as exc:
        raise SnapshotCorruptError(str(exc)) from exc


def encode_snapshot(module: ApiModule) -> bytes:
    return (json.dumps(module_to_payload(module), indent=2, sort_keys=True) + "\n").encode("utf-8")


def decode_snapshot(blob: bytes, label: str) -> ApiModule:
    try:
        payload = json.loads(blob.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise SnapshotCorruptError(f"{label} is not a readable snapshot blob: {exc}") from exc
    try:
        return module_from_payload(payload, label)
    except SnapshotCorruptError:
        raise
    except (KeyError, TypeError, ValueError, ApiFrameworkError) as exc:
        raise SnapshotCorruptError(f"{label} has malformed content: {exc}") from exc


def load_snapshot(path: Path) -> ApiModule | None:
    """Read a persisted snapshot; a missing file means there is no baseline yet."""
    if not path.exists():
        return None
    try:
        blob = path.read_bytes()
    except OSError as exc:
        raise SnapshotCorruptError(f"Unable to read snapshot '{path}': {exc}") from exc
    return decode_snapshot(blob, f"snapshot '{path}'")


def write_bytes_atomic(path: Path, content: bytes) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, temp_name = tempfile.mkstemp(prefix=f".{path.name}.", dir=str(path.parent))
    try:
        with os.fdopen(fd, "wb") as handle:
            handle.write(content)
        os.replace(temp_name, path)
    except OSError as exc:
        Path(temp_name).unlink(missing_ok=True)
        raise ApiFrameworkError(f"Unable to write snapshot '{path}': {exc}") from exc


def store_snapshot(path: Path, module: ApiModule) -> None:
    write_bytes_atomic(path, encode_snapshot(module))
