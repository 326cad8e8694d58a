#!/usr/bin/env python3
from __future__ import annotations

import argparse
import datetime as dt
import difflib
import enum
import json
import os
import re
import sys
import tempfile
import textwrap
from dataclasses import dataclass, field, replace
from pathlib import Path
from types import MappingProxyType
from typing import Any, Callable, Iterable, Mapping

import jsonschema

TOOL_NAME = "api_framework"
TOOL_VERSION = "1.0.0"
SNAPSHOT_FORMAT_VERSION = 1
SNAPSHOT_VERSION_LABEL = "SNAPSHOT"
DEFAULT_ROOT_TYPE = "java.lang.Object"
DEFAULT_MODULE_DESCRIPTOR = "module-info.java"
ALLOWED_MODIFIERS = frozenset({"public", "protected", "abstract", "default", "static", "final"})


class ApiFrameworkError(Exception):
    pass


class SnapshotCorruptError(ApiFrameworkError):
    pass


class TemplateError(ApiFrameworkError):
    pass


class ApiStateError(ApiFrameworkError):
    pass


@dataclass(frozen=True)
class ApiVersion:
    major: int
    minor: int
    patch: int

    def as_tuple(self) -> tuple[int, int, int]:
        return (self.major, self.minor, self.patch)

    def as_dict(self) -> dict[str, int]:
        return {
            "major": self.major,
            "minor": self.minor,
            "patch": self.patch,
        }

    def __str__(self) -> str:
        return f"{self.major}.{self.minor}.{self.patch}"

    @classmethod
    def parse(cls, value: str) -> "ApiVersion":
        parts = value.strip().split(".")
        if len(parts) != 3:
            raise ApiFrameworkError(f"Invalid version format '{value}': expected MAJOR.MINOR.PATCH")
        numbers: list[int] = []
        for part in parts:
            if not (part.isascii() and part.isdigit()):
                raise ApiFrameworkError(f"Invalid version component '{part}' in '{value}'")
            numbers.append(int(part))
        return cls(major=numbers[0], minor=numbers[1], patch=numbers[2])


def parse_version_label(value: str) -> ApiVersion | None:
    """Parse a version string, mapping the ``SNAPSHOT`` label to ``None``."""
    if value.strip() == SNAPSHOT_VERSION_LABEL:
        return None
    return ApiVersion.parse(value)


def version_label(version: ApiVersion | None) -> str:
    return SNAPSHOT_VERSION_LABEL if version is None else str(version)


class TypeKind(enum.Enum):
    CLASS = "class"
    INTERFACE = "interface"
    ENUM = "enum"
    RECORD = "record"
    ANNOTATION = "annotation"


class Deprecation(enum.Enum):
    NONE = "none"
    DEPRECATED = "deprecated"
    FOR_REMOVAL = "for_removal"


class Usage(enum.Enum):
    # value, inheritable by backend, inheritable by client
    NONE = ("none", False, False)
    SERVICE = ("service", True, False)
    PROVIDED = ("provided", True, False)
    PROVIDES = ("provides", False, True)
    TWO_WAY = ("two_way", True, True)

    def __init__(self, label: str, inheritable_by_backend: bool, inheritable_by_client: bool) -> None:
        self.label = label
        self.inheritable_by_backend = inheritable_by_backend
        self.inheritable_by_client = inheritable_by_client

    @classmethod
    def from_label(cls, label: str) -> "Usage":
        for usage in cls:
            if usage.label == label:
                return usage
        raise ApiFrameworkError(f"Unknown usage '{label}'")

    @classmethod
    def from_annotations(cls, annotations: Iterable[str]) -> "Usage":
        names = set(annotations)
        if "Service" in names:
            return cls.SERVICE
        if "Provided" in names:
            return cls.TWO_WAY if "Provides" in names else cls.PROVIDED
        if "Provides" in names:
            return cls.PROVIDES
        return cls.NONE


def normalize_ws(value: str) -> str:
    return re.sub(r"\s+", " ", value).strip()


def erase_type_arguments(name: str) -> str:
    depth = 0
    out: list[str] = []
    for ch in name:
        if ch == "<":
            depth += 1
        elif ch == ">":
            depth -= 1
        elif depth == 0:
            out.append(ch)
    return normalize_ws("".join(out))


def load_json(path: Path) -> dict[str, Any]:
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except (OSError, UnicodeDecodeError) as exc:
        raise ApiFrameworkError(f"Unable to read JSON file '{path}': {exc}") from exc
    except json.JSONDecodeError as exc:
        raise ApiFrameworkError(f"Invalid JSON in '{path}': {exc}") from exc


def write_json(path: Path, value: dict[str, Any]) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(value, indent=2, sort_keys=True) + "\n", encoding="utf-8")


def read_text_if_exists(path: Path) -> str:
    if not path.exists():
        return ""
    try:
        return path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        raise ApiFrameworkError(f"Unable to read file '{path}': {exc}") from exc


def write_text(path: Path, content: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")


def get_schema_path(kind: str) -> Path:
    base = Path(__file__).resolve().parent / "schemas"
    mapping = {
        "config": base / "config.schema.json",
        "records": base / "records.schema.json",
        "snapshot": base / "snapshot.schema.json",
        "report": base / "report.schema.json",
    }
    if kind not in mapping:
        raise ApiFrameworkError(f"Unknown schema kind: {kind}")
    return mapping[kind]


def validate_with_jsonschema(kind: str, payload: Any, label: str) -> None:
    schema_path = get_schema_path(kind)
    if not schema_path.exists():
        raise ApiFrameworkError(f"schema file not found: {schema_path}")
    schema_payload = load_json(schema_path)
    try:
        jsonschema.validate(payload, schema_payload)
    except jsonschema.ValidationError as exc:
        location = "/".join(str(item) for item in exc.absolute_path) or "<root>"
        raise ApiFrameworkError(f"{label} failed schema validation at {location}: {exc.message}") from exc


def require_keys(obj: dict[str, Any], keys: list[str], label: str) -> None:
    missing = [key for key in keys if key not in obj]
    if missing:
        raise ApiFrameworkError(f"{label} is missing required keys: {', '.join(missing)}")


def validate_config_payload(payload: dict[str, Any]) -> None:
    if not isinstance(payload, dict):
        raise ApiFrameworkError("config root must be an object")

    initial_version = payload.get("initial_version")
    if initial_version is not None:
        if not isinstance(initial_version, str):
            raise ApiFrameworkError("config.initial_version must be a string")
        ApiVersion.parse(initial_version)

    for section in ("collector", "snapshot", "facade"):
        value = payload.get(section)
        if value is not None and not isinstance(value, dict):
            raise ApiFrameworkError(f"config.{section} must be an object when specified")

    facade = payload.get("facade")
    if isinstance(facade, dict):
        for key in ("template_path", "accessor_template_path", "output_path"):
            value = facade.get(key)
            if value is not None and (not isinstance(value, str) or not value):
                raise ApiFrameworkError(f"config.facade.{key} must be a non-empty string when specified")
        entry_format = facade.get("extension_entry_format")
        if isinstance(entry_format, str):
            for field_name in ("{name}", "{classes}"):
                if field_name not in entry_format:
                    raise ApiFrameworkError(
                        f"config.facade.extension_entry_format must reference {field_name}"
                    )

    validate_with_jsonschema("config", payload, "config")


def load_config(path: Path) -> dict[str, Any]:
    config = load_json(path)
    validate_config_payload(config)
    return config


def ensure_relative_path(root: Path, value: str) -> Path:
    path = Path(value)
    if path.is_absolute():
        return path
    return root / path


def to_repo_relative(path: Path, repo_root: Path) -> str:
    try:
        return str(path.resolve().relative_to(repo_root.resolve()))
    except ValueError:
        return str(path.resolve())


def get_section(config: dict[str, Any], name: str) -> dict[str, Any]:
    value = config.get(name)
    return value if isinstance(value, dict) else {}


def get_component_name(config: dict[str, Any]) -> str:
    value = config.get("component")
    return value if isinstance(value, str) and value else "api"


def get_initial_version(config: dict[str, Any]) -> ApiVersion:
    value = config.get("initial_version")
    if isinstance(value, str) and value:
        return ApiVersion.parse(value)
    return ApiVersion(0, 0, 0)


def now_utc() -> dt.datetime:
    return dt.datetime.now(tz=dt.timezone.utc)


def utc_timestamp_now() -> str:
    return now_utc().isoformat()
