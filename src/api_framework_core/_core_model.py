from __future__ import annotations

from ._core_base import *  # noqa: F401,F403

MethodKey = tuple[str, tuple[str, ...]]


def freeze_mapping(value: Mapping[Any, Any] | None) -> Mapping[Any, Any]:
    return MappingProxyType(dict(value or {}))


def canonical_name(name: str) -> str:
    return erase_type_arguments(name).replace("$", ".")


@dataclass(frozen=True)
class TypeParameter:
    name: str
    bounds: frozenset[str]

    def as_dict(self) -> dict[str, Any]:
        return {"name": self.name, "bounds": sorted(self.bounds)}


@dataclass(frozen=True, eq=False)
class ApiField:
    name: str
    modifiers: frozenset[str]
    type: str
    constant_value: Any = None
    deprecation: Deprecation = Deprecation.NONE

    @property
    def key(self) -> str:
        return self.name

    @property
    def display_name(self) -> str:
        return f"{self.type} {self.name}"

    def __eq__(self, other: object) -> bool:
        return isinstance(other, ApiField) and other.name == self.name

    def __hash__(self) -> int:
        return hash(self.name)


@dataclass(frozen=True, eq=False)
class ApiMethod:
    name: str
    parameter_types: tuple[str, ...]
    modifiers: frozenset[str]
    return_type: str
    thrown_types: frozenset[str] = frozenset()
    type_parameters: tuple[TypeParameter, ...] = ()
    deprecation: Deprecation = Deprecation.NONE
    extension: str | None = None

    @property
    def key(self) -> MethodKey:
        return (self.name, self.parameter_types)

    @property
    def display_name(self) -> str:
        return f"{self.name}({', '.join(self.parameter_types)})"

    def __eq__(self, other: object) -> bool:
        return isinstance(other, ApiMethod) and other.key == self.key

    def __hash__(self) -> int:
        return hash(self.key)


@dataclass(frozen=True, eq=False)
class ApiType:
    """One declared class, interface, enum, record or annotation.

    Two types are equal when their qualified (binary) names are equal; the
    remaining attributes are compared by the classifier, not by ``==``.
    """

    qualified_name: str
    kind: TypeKind
    modifiers: frozenset[str]
    supertypes: frozenset[str] = frozenset()
    type_parameters: tuple[TypeParameter, ...] = ()
    deprecation: Deprecation = Deprecation.NONE
    usage: Usage = Usage.NONE
    fields: Mapping[str, ApiField] = field(default_factory=lambda: MappingProxyType({}))
    methods: Mapping[MethodKey, ApiMethod] = field(default_factory=lambda: MappingProxyType({}))
    types: Mapping[str, "ApiType"] = field(default_factory=lambda: MappingProxyType({}))
    enclosing: str | None = None
    simple_name: str = ""
    annotations: frozenset[str] = frozenset()
    fallback: str | None = None
    doc_comment: str | None = None

    @property
    def key(self) -> str:
        return self.qualified_name

    @property
    def display_name(self) -> str:
        return self.qualified_name

    @property
    def is_top_level(self) -> bool:
        return self.enclosing is None

    def iter_types(self) -> Iterable["ApiType"]:
        yield self
        for nested in self.types.values():
            yield from nested.iter_types()

    def __eq__(self, other: object) -> bool:
        return isinstance(other, ApiType) and other.qualified_name == self.qualified_name

    def __hash__(self) -> int:
        return hash(self.qualified_name)


@dataclass(frozen=True)
class ApiModule:
    types: Mapping[str, ApiType]
    hash: int
    version: ApiVersion | None = None
    source_paths: tuple[str, ...] = ()

    def iter_types(self) -> Iterable[ApiType]:
        for api_type in self.types.values():
            yield from api_type.iter_types()

    def find_type(self, qualified_name: str) -> ApiType | None:
        for api_type in self.iter_types():
            if api_type.qualified_name == qualified_name:
                return api_type
        return None
