"""
Tests for the lint rules and the rule engine.
"""

import pytest
from conftest import lint, rule_ids
from lintcs.config import parse_config
from lintcs.rules import RULES, all_rules, get_rule, register
from lintcs.rules.base import LintRule, Severity, Violation, split_words, to_camel, to_pascal
from lintcs.rules.engine import RuleEngine
from lintcs.rules.naming import CAMEL_CASE, PASCAL_CASE


def only(violations, rule):
    return [v for v in violations if v.rule == rule]


class TestScenarios:
    """One violation per scenario, with the expected rule and suggestion."""

    def test_lowercase_class_name(self):
        violations = lint("public class dataService {}")
        assert rule_ids(violations) == ["PascalCaseType"]
        v = violations[0]
        assert (v.line, v.column) == (1, 14)
        assert v.severity == Severity.WARNING
        assert v.suggestion == "DataService"

    def test_private_field_without_underscore(self):
        violations = lint("private IWorkerQueue workerQueue;")
        assert rule_ids(violations) == ["CamelCaseUnderscoreField"]
        assert violations[0].suggestion == "_workerQueue"

    def test_using_inside_namespace(self):
        violations = lint("namespace X { using Azure; }")
        assert rule_ids(violations) == ["UsingOutsideNamespace"]
        assert violations[0].suggestion == "using Azure;"

    def test_non_short_circuit_and(self):
        source = """class C
{
    void M(int a, int b)
    {
        if ((a != 0) & (b > 0))
        {
        }
    }
}
"""
        violations = lint(source)
        assert rule_ids(violations) == ["ShortCircuitOperator"]
        assert violations[0].line == 5
        assert violations[0].suggestion == "&&"

    def test_unterminated_string(self):
        violations = lint('class C { string s = "oops; }')
        assert rule_ids(violations) == ["LexError"]
        assert violations[0].severity == Severity.ERROR
        assert violations[0].line == 1

    def test_clean_file(self):
        source = """using System;

namespace Contoso.Orders
{
    public interface IOrderService
    {
        void Submit(int orderId);
    }

    public sealed class OrderService : IOrderService
    {
        private static int s_instances;
        private readonly string _name;
        private const int MaxRetries = 3;

        public OrderService(string name)
        {
            _name = name;
        }

        public void Submit(int orderId)
        {
            var attempts = 0;
            for (int i = 0; i < MaxRetries && attempts < 1; i++)
            {
                attempts++;
            }
        }
    }
}
"""
        assert lint(source) == []


class TestNamingRules:
    """Test each naming convention."""

    @pytest.mark.parametrize("name", ["Order", "ID", "HttpClient2", "X"])
    def test_pascal_case_accepts(self, name):
        assert PASCAL_CASE.match(name)

    @pytest.mark.parametrize("name", ["order", "_Order", "Order_Item", "2Order", ""])
    def test_pascal_case_rejects(self, name):
        assert not PASCAL_CASE.match(name)

    @pytest.mark.parametrize("name", ["count", "orderId", "x1"])
    def test_camel_case_accepts(self, name):
        assert CAMEL_CASE.match(name)

    @pytest.mark.parametrize("name", ["Count", "_count", "order_id"])
    def test_camel_case_rejects(self, name):
        assert not CAMEL_CASE.match(name)

    def test_acronym_type_name_passes(self):
        assert lint("public class ID {}") == []

    def test_interface_prefix(self):
        violations = lint("interface Repository {}")
        assert rule_ids(violations) == ["InterfacePrefix"]
        assert violations[0].suggestion == "IRepository"

    def test_interface_with_lowercase_after_prefix(self):
        violations = lint("interface Iterable {}")
        assert rule_ids(violations) == ["InterfacePrefix"]
        assert violations[0].suggestion == "IIterable"

    def test_public_member(self):
        violations = lint("public class C { public int count; }")
        assert rule_ids(violations) == ["PascalCasePublicMember"]
        assert violations[0].suggestion == "Count"

    def test_private_method(self):
        violations = lint("class C { private void run() { } }")
        assert rule_ids(violations) == ["PascalCasePrivateMember"]
        assert violations[0].suggestion == "Run"

    def test_static_field(self):
        violations = lint("class C { private static int counter; }")
        assert rule_ids(violations) == ["StaticFieldPrefix"]
        assert violations[0].suggestion == "s_counter"

    def test_thread_static_field(self):
        violations = lint("class C { [ThreadStatic] private static int cache; }")
        assert rule_ids(violations) == ["ThreadStaticFieldPrefix"]
        assert violations[0].suggestion == "t_cache"

    def test_static_prefix_on_instance_field(self):
        violations = lint("class C { private int s_count; }")
        assert rule_ids(violations) == ["CamelCaseUnderscoreField"]
        assert violations[0].suggestion == "_count"

    def test_parameter(self):
        violations = lint("class C { void M(int Count) { } }")
        assert rule_ids(violations) == ["CamelCaseParameter"]
        assert violations[0].suggestion == "count"

    def test_local_variable(self):
        violations = lint("class C { void M() { int Total = 0; } }")
        assert rule_ids(violations) == ["CamelCaseLocalVariable"]
        assert violations[0].suggestion == "total"

    def test_local_constant_exempt(self):
        assert lint("class C { void M() { const int MaxItems = 5; } }") == []

    def test_discard_ignored(self):
        assert lint("class C { void M() { var _ = Compute(); } }") == []


class TestNameHelpers:
    """Test identifier word splitting and case conversion."""

    @pytest.mark.parametrize("name, words", [
        ("s_workerQueue", ["worker", "Queue"]),
        ("_count", ["count"]),
        ("HTTPClient", ["HTTP", "Client"]),
        ("order_id", ["order", "id"]),
    ])
    def test_split_words(self, name, words):
        assert split_words(name) == words

    def test_to_pascal(self):
        assert to_pascal("dataService") == "DataService"
        assert to_pascal("worker_queue") == "WorkerQueue"

    def test_to_camel(self):
        assert to_camel("WorkerQueue") == "workerQueue"
        assert to_camel("URL") == "url"
        assert to_camel("_") == ""


class TestImplicitTyping:
    """Test var usage rules."""

    def test_var_with_non_apparent_type(self):
        source = "class C { void M() { var order = GetOrder();\n var list = new List<int>(); } }"
        violations = lint(source)
        assert rule_ids(violations) == ["VarApparentType"]
        assert "order" in violations[0].message
        assert violations[0].severity == Severity.INFO

    def test_var_with_literal_initializer(self):
        assert lint("class C { void M() { var count = 0;\n var text = \"a\"; } }") == []

    def test_foreach_var(self):
        violations = lint("class C { void M() { foreach (var item in items) { } } }")
        assert rule_ids(violations) == ["ExplicitForeachType"]

    def test_foreach_explicit_type(self):
        assert lint("class C { void M() { foreach (string item in items) { } } }") == []


class TestLayoutRules:
    """Test statement, declaration and using placement rules."""

    def test_two_statements_on_one_line(self):
        violations = lint("class C { void M() { a = 1; b = 2; } }")
        assert rule_ids(violations) == ["OneStatementPerLine"]
        assert violations[0].column == 29

    def test_accessor_list_is_not_statements(self):
        assert lint("class C { public int Value { get; private set; } }") == []

    def test_for_header_semicolons(self):
        assert lint("class C { void M() { for (int i = 0; i < 3; i++) { } } }") == []

    def test_two_declarators_on_one_line(self):
        violations = lint("class C { void M() { int a = 1, b = 2; } }")
        assert rule_ids(violations) == ["OneDeclarationPerLine"]
        assert "'b'" in violations[0].message

    def test_declarators_on_separate_lines(self):
        assert lint("class C { void M() {\n int a = 1,\n     b = 2; } }") == []

    def test_field_declarators(self):
        violations = lint("class C { private int _a, _b; }")
        assert rule_ids(violations) == ["OneDeclarationPerLine"]

    def test_for_header_declarators_allowed(self):
        assert lint("class C { void M() { for (int i = 0, j = 9; i < j; i++) { } } }") == []

    def test_using_above_namespace(self):
        assert lint("using System;\nnamespace A { }\n") == []

    def test_using_in_file_scoped_namespace(self):
        violations = lint("namespace A;\nusing B;\nclass C { }\n")
        assert rule_ids(violations) == ["UsingOutsideNamespace"]
        assert violations[0].line == 2

    def test_using_statement_not_flagged(self):
        source = "namespace A { class C { void M() { using (var s = new MemoryStream()) { } using var t = new MemoryStream(); } } }"
        assert lint(source) == []

    def test_using_in_nested_namespace_names_full_path(self):
        violations = lint("namespace A { namespace B { using C; } }")
        assert rule_ids(violations) == ["UsingOutsideNamespace"]
        assert "'A.B'" in violations[0].message

    def test_global_using_reported_at_global(self):
        violations = lint("namespace A\n{\n    global using B;\n}\n")
        assert rule_ids(violations) == ["UsingOutsideNamespace"]
        assert (violations[0].line, violations[0].column) == (3, 5)

    def test_using_found_without_scope_tree(self):
        """A file with a lex error has no scope tree; directives are found in the token stream."""
        source = 'namespace A\n{\n    using B;\n    class C { string s = "oops; }\n}\n'
        violations = lint(source)
        assert sorted(rule_ids(violations)) == ["LexError", "UsingOutsideNamespace"]
        using = only(violations, "UsingOutsideNamespace")[0]
        assert using.line == 3
        assert "'A'" in using.message


class TestOptInLayoutRules:
    """Brace, tab and comment rules are off unless configured."""

    def test_off_by_default(self):
        assert lint("class C {\n\tint _x; //note\n}\n") == []

    def test_allman_braces(self, all_rules_engine):
        violations = only(lint("class C {\n}\n", all_rules_engine), "AllmanBraces")
        assert [(v.line, v.column) for v in violations] == [(1, 9)]

    def test_allman_single_line_block_allowed(self, all_rules_engine):
        violations = lint("class C\n{\n    public int Value { get; set; }\n}\n", all_rules_engine)
        assert only(violations, "AllmanBraces") == []

    def test_tab_indentation(self, all_rules_engine):
        violations = only(lint("class C\n{\n\tint _x;\n}\n", all_rules_engine), "NoTabIndentation")
        assert [v.line for v in violations] == [3]
        assert violations[0].suggestion == "    "

    def test_comment_spacing(self, all_rules_engine):
        source = "//bad\n// good\n/// doc\n////\nclass C\n{\n}\n"
        violations = only(lint(source, all_rules_engine), "CommentSpacing")
        assert [v.line for v in violations] == [1]
        assert violations[0].suggestion == "// bad"

    def test_comment_on_code_line(self, all_rules_engine):
        source = "class C\n{\n    // own line\n    int _x; // trailing\n}\n"
        violations = only(lint(source, all_rules_engine), "CommentOnSeparateLine")
        assert [v.line for v in violations] == [4]


class TestShortCircuitOperator:
    """Test & and | detection on boolean operands."""

    def wrap(self, statement):
        return "class C\n{\n    void M()\n    {\n        " + statement + "\n    }\n}\n"

    def test_bitwise_mask_not_flagged(self):
        assert lint(self.wrap("if ((flags & Mask) != 0) { }")) == []

    def test_top_level_condition_operator(self):
        violations = lint(self.wrap("if (ready & valid) { }"))
        assert rule_ids(violations) == ["ShortCircuitOperator"]
        assert (violations[0].line, violations[0].column) == (5, 19)
        assert violations[0].suggestion == "&&"

    def test_or_in_while(self):
        violations = lint(self.wrap("while (x > 0 | done) { }"))
        assert rule_ids(violations) == ["ShortCircuitOperator"]
        assert violations[0].suggestion == "||"

    def test_for_condition_clause(self):
        violations = lint(self.wrap("for (int i = 0; i < n & ok; i++) { }"))
        assert rule_ids(violations) == ["ShortCircuitOperator"]

    def test_boolean_literal_operand(self):
        violations = lint(self.wrap("if (ready & true) { }"))
        assert rule_ids(violations) == ["ShortCircuitOperator"]

    def test_boolean_initializer(self):
        violations = lint(self.wrap("bool both = a > 0 & b > 0;"))
        assert rule_ids(violations) == ["ShortCircuitOperator"]
        assert violations[0].column == 27

    def test_boolean_assignment(self):
        violations = lint(self.wrap("done = !pending | count == 0;"))
        assert rule_ids(violations) == ["ShortCircuitOperator"]
        assert violations[0].suggestion == "||"

    def test_return_statement(self):
        violations = lint(self.wrap("return a > 0 | b > 0;"))
        assert rule_ids(violations) == ["ShortCircuitOperator"]
        assert violations[0].suggestion == "||"

    def test_lambda_body_reported_once(self):
        violations = lint(self.wrap("Func<int, bool> inRange = x => x > 0 & x < 9;"))
        assert rule_ids(violations) == ["ShortCircuitOperator"]

    @pytest.mark.parametrize("statement", [
        "int masked = flags & Mask;",
        "return flags | Mask;",
        "int bits = Read<int>() & Mask;",
        "int bits = value!.Flags & Mask;",
        "Handle(flags & Mask);",
    ])
    def test_bitwise_expressions_not_flagged(self, statement):
        assert lint(self.wrap(statement)) == []

    def test_nested_bitwise_operand_in_condition(self):
        assert lint(self.wrap("if (enabled && (flags & Mask) == Mask) { }")) == []

    def test_already_short_circuit(self):
        assert lint(self.wrap("if (a > 0 && b > 0) { }")) == []


class TestRuleEngine:
    """Test rule registry and engine behavior."""

    SOURCE = """namespace A
{
    using B;
    public class order
    {
        private int Count; public void run(int Value) { var x = Get(); foreach (var y in x) { } }
    }
}
"""

    def test_registry_sorted_and_complete(self):
        ids = [r.id for r in all_rules()]
        assert ids == sorted(ids)
        assert len(ids) == 19
        assert get_rule("PascalCaseType").id == "PascalCaseType"

    def test_duplicate_registration_rejected(self):
        class Duplicate(LintRule):
            id = "PascalCaseType"

        with pytest.raises(ValueError):
            register(Duplicate)
        assert RULES["PascalCaseType"] is not Duplicate

    def test_rule_order_does_not_change_results(self):
        forward = RuleEngine([cls() for cls in all_rules()])
        backward = RuleEngine([cls() for cls in reversed(all_rules())])
        assert lint(self.SOURCE, forward) == lint(self.SOURCE, backward)

    def test_idempotent(self, engine):
        assert lint(self.SOURCE, engine) == lint(self.SOURCE, engine)

    def test_expected_rules_fire(self, engine):
        assert set(rule_ids(lint(self.SOURCE, engine))) == {
            "UsingOutsideNamespace",
            "PascalCaseType",
            "CamelCaseUnderscoreField",
            "OneStatementPerLine",
            "PascalCasePublicMember",
            "CamelCaseParameter",
            "VarApparentType",
            "ExplicitForeachType",
        }

    def test_severity_override(self):
        config = parse_config({"PascalCaseType": "error"}, environ={})
        violations = lint("class order { }", RuleEngine.from_config(config))
        assert violations[0].severity == Severity.ERROR

    def test_disabled_rule(self):
        config = parse_config({"PascalCaseType": False}, environ={})
        engine = RuleEngine.from_config(config)
        assert "PascalCaseType" not in engine.rule_ids
        assert lint("class order { }", engine) == []

    def test_tree_rules_skipped_without_tree(self, engine):
        violations = lint('class bad { string s = "oops; }', engine)
        assert "PascalCaseType" not in rule_ids(violations)


class TestSeverityAndViolation:
    """Test severity ordering and violation formatting."""

    def test_ordering(self):
        assert Severity.INFO < Severity.WARNING < Severity.ERROR
        assert max([Severity.WARNING, Severity.ERROR, Severity.INFO]) == Severity.ERROR

    def test_parse(self):
        assert Severity.parse(" Warning ") == Severity.WARNING
        with pytest.raises(ValueError):
            Severity.parse("fatal")

    def test_str(self):
        v = Violation("PascalCaseType", Severity.WARNING, "bad name", "a.cs", 3, 7, "Good")
        assert str(v) == "[WARNING] PascalCaseType a.cs:3:7: bad name\n    -> Good"

    def test_to_dict(self):
        v = Violation("PascalCaseType", Severity.INFO, "msg", "a.cs", 1, 2)
        assert v.to_dict() == {
            "file": "a.cs", "line": 1, "column": 2,
            "rule": "PascalCaseType", "severity": "info", "message": "msg",
        }
