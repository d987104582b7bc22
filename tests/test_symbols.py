"""
Tests for the project-wide namespace table.
"""

import threading

from conftest import lint, rule_ids
from lintcs.parser import parse_source
from lintcs.rules.engine import RuleEngine
from lintcs.symbols import ProjectSymbolTable


class TestProjectSymbolTable:
    """Test namespace registration and lookup."""

    def test_prefixes_registered(self):
        table = ProjectSymbolTable()
        table.add_namespace("Contoso.Orders.Api", "a.cs")
        assert "Contoso" in table
        assert "Contoso.Orders" in table
        assert table.namespaces == ["Contoso", "Contoso.Orders", "Contoso.Orders.Api"]

    def test_files_declaring(self):
        table = ProjectSymbolTable.from_namespaces({
            "a.cs": ["Contoso.Orders"],
            "b.cs": ["Contoso.Billing"],
        })
        assert table.files_declaring("Contoso") == ["a.cs", "b.cs"]
        assert table.files_declaring("Contoso.Billing") == ["b.cs"]
        assert table.files_declaring("Fabrikam") == []

    def test_add_tree(self):
        table = ProjectSymbolTable()
        table.add_tree(parse_source("namespace A.B { namespace C { } }", "x.cs"))
        assert "A.B.C" in table
        assert table.files_declaring("A.B.C") == ["x.cs"]

    def test_resolve_nested_using(self):
        table = ProjectSymbolTable.from_namespaces({"a.cs": ["Contoso.Azure", "Contoso.Orders"]})
        assert table.resolve_nested_using("Azure", "Contoso.Orders") == "Contoso.Azure"
        assert table.resolve_nested_using("System", "Contoso.Orders") is None
        assert table.resolve_nested_using("Azure", "") is None

    def test_concurrent_population(self):
        table = ProjectSymbolTable()

        def add(i):
            for j in range(50):
                table.add_namespace(f"Ns{i}.Sub{j}", f"{i}.cs")

        threads = [threading.Thread(target=add, args=(i,)) for i in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        assert len(table) == 4 + 4 * 50


class TestUsingResolutionMessage:
    """UsingOutsideNamespace names the shadowing namespace when one exists."""

    SOURCE = "namespace Contoso.Orders\n{\n    using Azure;\n}\n"

    def test_message_names_project_namespace(self):
        symbols = ProjectSymbolTable.from_namespaces({"lib.cs": ["Contoso.Azure"]})
        engine = RuleEngine.from_config(symbols=symbols)
        violations = lint(self.SOURCE, engine)
        assert rule_ids(violations) == ["UsingOutsideNamespace"]
        assert "Contoso.Azure" in violations[0].message

    def test_message_without_table(self, engine):
        violations = lint(self.SOURCE, engine)
        assert "resolves to" not in violations[0].message
