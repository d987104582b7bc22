"""
Scope tree and identifier bindings produced by the structural parser.

Scopes own their children and bindings; every back-reference (scope to
parent, binding to scope) is a weak reference, so the tree has a single
owner (the root) and is released as soon as the root is dropped.
"""

import weakref
from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Any, Dict, FrozenSet, Iterator, List, Optional


class ScopeKind(Enum):
    """Lexical nesting levels."""
    FILE = auto()
    NAMESPACE = auto()
    TYPE = auto()
    METHOD = auto()
    BLOCK = auto()


class BindingRole(Enum):
    """Role an identifier plays where it is declared."""
    TYPE_NAME = auto()
    INTERFACE_NAME = auto()
    PUBLIC_MEMBER = auto()
    PRIVATE_FIELD = auto()
    STATIC_FIELD = auto()
    THREAD_STATIC_FIELD = auto()
    PARAMETER = auto()
    LOCAL_VARIABLE = auto()
    PRIVATE_MEMBER = auto()     # non-public property/method/event/constant


class MemberKind(Enum):
    """What kind of declaration introduced a binding."""
    TYPE = auto()
    FIELD = auto()
    CONSTANT = auto()
    PROPERTY = auto()
    METHOD = auto()
    EVENT = auto()
    ENUM_MEMBER = auto()
    PARAMETER = auto()
    LOCAL = auto()


@dataclass
class Binding:
    """An identifier together with its classified role."""
    name: str
    role: BindingRole
    member_kind: MemberKind
    line: int = 0
    column: int = 0
    accessibility: str = ""     # as written: "public", "protected internal", "" when omitted
    modifiers: FrozenSet[str] = frozenset()
    uses_var: bool = False
    in_foreach: bool = False
    initializer_apparent: Optional[bool] = None   # None when there is no initializer
    declaration_id: int = 0
    _scope: Optional["weakref.ReferenceType[ScopeNode]"] = field(
        default=None, repr=False, compare=False
    )

    @property
    def scope(self) -> Optional["ScopeNode"]:
        """The scope that declares this binding (None once the tree is gone)."""
        return self._scope() if self._scope is not None else None

    @property
    def is_const(self) -> bool:
        return "const" in self.modifiers

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "role": self.role.name,
            "member_kind": self.member_kind.name,
            "line": self.line,
            "column": self.column,
            "accessibility": self.accessibility,
            "modifiers": sorted(self.modifiers),
            "uses_var": self.uses_var,
            "in_foreach": self.in_foreach,
            "initializer_apparent": self.initializer_apparent,
        }


@dataclass
class UsingDirective:
    """A `using` directive and where it sits."""
    target: str
    line: int
    column: int
    inside_namespace: bool
    namespace: str = ""         # enclosing namespace name when nested


@dataclass
class ScopeNode:
    """A lexical scope: file, namespace, type, method or block."""
    kind: ScopeKind
    name: str = ""
    line: int = 0
    column: int = 0
    type_keyword: str = ""      # class/struct/record/interface/enum/delegate for TYPE scopes
    children: List["ScopeNode"] = field(default_factory=list)
    bindings: List[Binding] = field(default_factory=list)
    usings: List[UsingDirective] = field(default_factory=list)
    _parent: Optional["weakref.ReferenceType[ScopeNode]"] = field(
        default=None, repr=False, compare=False
    )

    def __repr__(self):
        return f"Scope({self.kind.name}, {self.name!r}, {len(self.children)} scopes, {len(self.bindings)} bindings)"

    @property
    def parent(self) -> Optional["ScopeNode"]:
        return self._parent() if self._parent is not None else None

    @property
    def is_interface(self) -> bool:
        return self.kind == ScopeKind.TYPE and self.type_keyword == "interface"

    @property
    def is_enum(self) -> bool:
        return self.kind == ScopeKind.TYPE and self.type_keyword == "enum"

    def add_child(self, child: "ScopeNode") -> "ScopeNode":
        if child.parent is not None:
            raise ValueError(f"{child!r} already has a parent scope")
        child._parent = weakref.ref(self)
        self.children.append(child)
        return child

    def add_binding(self, binding: Binding) -> Binding:
        if binding.scope is not None:
            raise ValueError(f"Binding {binding.name!r} already belongs to a scope")
        binding._scope = weakref.ref(self)
        self.bindings.append(binding)
        return binding

    def walk(self) -> Iterator["ScopeNode"]:
        """Yield this scope and all descendants, depth first in source order."""
        yield self
        for child in self.children:
            yield from child.walk()

    def iter_bindings(self) -> Iterator[Binding]:
        """Yield every binding in this subtree."""
        for scope in self.walk():
            yield from scope.bindings

    def iter_usings(self) -> Iterator[UsingDirective]:
        for scope in self.walk():
            yield from scope.usings

    def enclosing(self, kind: ScopeKind) -> Optional["ScopeNode"]:
        """Nearest ancestor (or self) of the given kind."""
        scope: Optional[ScopeNode] = self
        while scope is not None:
            if scope.kind == kind:
                return scope
            scope = scope.parent
        return None

    def qualified_name(self) -> str:
        """Dotted name through enclosing namespaces and types."""
        parts = []
        scope: Optional[ScopeNode] = self
        while scope is not None:
            if scope.kind in (ScopeKind.NAMESPACE, ScopeKind.TYPE) and scope.name:
                parts.append(scope.name)
            scope = scope.parent
        return ".".join(reversed(parts))

    def namespace_names(self) -> List[str]:
        """Fully qualified names of all namespaces declared in this subtree."""
        return [s.qualified_name() for s in self.walk() if s.kind == ScopeKind.NAMESPACE]

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary representation."""
        return {
            "_type": self.kind.name.lower(),
            "name": self.name,
            "line": self.line,
            "column": self.column,
            "bindings": [b.to_dict() for b in self.bindings],
            "children": [c.to_dict() for c in self.children],
        }
