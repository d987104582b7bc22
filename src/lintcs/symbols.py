"""
Project-wide symbol table.

Collects the namespaces declared across a set of files so rules can reason
about cross-file name resolution, in particular which project namespace a
`using` directive nested inside a namespace would silently bind to.
"""

import logging
import threading
from typing import Dict, Iterable, List, Optional, Set

from lintcs.parser.scopes import ScopeNode

logger = logging.getLogger(__name__)


class ProjectSymbolTable:
    """
    Namespace names declared in the project, with the files declaring them.

    Safe to populate from several threads; read-only use needs no locking.
    """

    def __init__(self):
        self._namespaces: Dict[str, Set[str]] = {}
        self._lock = threading.Lock()

    def add_namespace(self, name: str, file: str = "<unknown>") -> None:
        """Record a namespace and every enclosing prefix (A.B.C adds A and A.B)."""
        parts = name.split(".")
        with self._lock:
            for i in range(1, len(parts) + 1):
                self._namespaces.setdefault(".".join(parts[:i]), set()).add(file)

    def add_tree(self, root: ScopeNode, file: str = None) -> None:
        for name in root.namespace_names():
            self.add_namespace(name, file or root.name)

    @classmethod
    def from_namespaces(cls, namespaces: Dict[str, Iterable[str]]) -> "ProjectSymbolTable":
        """Build from a mapping of file path -> namespace names declared in it."""
        table = cls()
        for file, names in namespaces.items():
            for name in names:
                table.add_namespace(name, file)
        logger.debug(f"Symbol table: {len(table)} namespaces from {len(namespaces)} files")
        return table

    def __contains__(self, name: str) -> bool:
        return name in self._namespaces

    def __len__(self) -> int:
        return len(self._namespaces)

    @property
    def namespaces(self) -> List[str]:
        return sorted(self._namespaces)

    def files_declaring(self, name: str) -> List[str]:
        return sorted(self._namespaces.get(name, ()))

    def resolve_nested_using(self, target: str, enclosing: str) -> Optional[str]:
        """
        Namespace that `using target;` resolves to when written inside the
        namespace `enclosing`, if a project namespace shadows the global one.

        Inside `Contoso.Orders`, `using Azure;` looks for Contoso.Orders.Azure,
        then Contoso.Azure, before falling back to the global Azure.
        """
        if not enclosing:
            return None
        parts = enclosing.split(".")
        for i in range(len(parts), 0, -1):
            candidate = ".".join(parts[:i] + [target])
            if candidate in self._namespaces:
                return candidate
        return None
