"""
Naming-convention rules: PascalCase types and members, camelCase
parameters and locals, and the _/s_/t_ field prefixes.
"""

import re
from typing import Optional

from lintcs.parser.scopes import Binding, BindingRole
from lintcs.rules import register
from lintcs.rules.base import BindingRule, to_camel, to_pascal


PASCAL_CASE = re.compile(r"^[A-Z][A-Za-z0-9]*$")
CAMEL_CASE = re.compile(r"^[a-z][A-Za-z0-9]*$")
INTERFACE_NAME = re.compile(r"^I[A-Z][A-Za-z0-9]*$")
PRIVATE_FIELD_NAME = re.compile(r"^_[a-z][A-Za-z0-9]*$")
STATIC_FIELD_NAME = re.compile(r"^s_[a-z][A-Za-z0-9]*$")
THREAD_STATIC_FIELD_NAME = re.compile(r"^t_[a-z][A-Za-z0-9]*$")


@register
class PascalCaseType(BindingRule):
    """Check that class, struct, record, enum and delegate names are PascalCase."""

    id = "PascalCaseType"
    description = "Type names use PascalCase"
    roles = frozenset({BindingRole.TYPE_NAME})
    pattern = PASCAL_CASE

    def message(self, binding: Binding) -> str:
        return f"Type name '{binding.name}' should be PascalCase"

    def suggest(self, binding: Binding) -> Optional[str]:
        return to_pascal(binding.name)


@register
class InterfacePrefix(BindingRule):
    """Check that interface names are 'I' followed by a PascalCase name."""

    id = "InterfacePrefix"
    description = "Interface names start with 'I' followed by PascalCase"
    roles = frozenset({BindingRole.INTERFACE_NAME})
    pattern = INTERFACE_NAME

    def message(self, binding: Binding) -> str:
        return f"Interface name '{binding.name}' should start with 'I' followed by a PascalCase name"

    def suggest(self, binding: Binding) -> Optional[str]:
        name = to_pascal(binding.name)
        return name if INTERFACE_NAME.match(name) else "I" + name


@register
class PascalCasePublicMember(BindingRule):
    """Check public and protected members (and interface/enum members)."""

    id = "PascalCasePublicMember"
    description = "Public members (fields, properties, methods, events, enum members) use PascalCase"
    roles = frozenset({BindingRole.PUBLIC_MEMBER})
    pattern = PASCAL_CASE

    def message(self, binding: Binding) -> str:
        kind = binding.member_kind.name.lower().replace("_", " ")
        return f"Public {kind} '{binding.name}' should be PascalCase"

    def suggest(self, binding: Binding) -> Optional[str]:
        return to_pascal(binding.name)


@register
class PascalCasePrivateMember(BindingRule):
    id = "PascalCasePrivateMember"
    description = "Non-public methods, properties, events, constants and local functions use PascalCase"
    roles = frozenset({BindingRole.PRIVATE_MEMBER})
    pattern = PASCAL_CASE

    def message(self, binding: Binding) -> str:
        kind = binding.member_kind.name.lower()
        return f"Non-public {kind} '{binding.name}' should be PascalCase"

    def suggest(self, binding: Binding) -> Optional[str]:
        return to_pascal(binding.name)


@register
class CamelCaseUnderscoreField(BindingRule):
    """Private and internal instance fields: _camelCase."""

    id = "CamelCaseUnderscoreField"
    description = "Private instance fields use camelCase with a leading underscore"
    roles = frozenset({BindingRole.PRIVATE_FIELD})
    pattern = PRIVATE_FIELD_NAME

    def message(self, binding: Binding) -> str:
        return f"Private field '{binding.name}' should be camelCase prefixed with '_'"

    def suggest(self, binding: Binding) -> Optional[str]:
        return "_" + to_camel(binding.name)


@register
class StaticFieldPrefix(BindingRule):
    id = "StaticFieldPrefix"
    description = "Private static fields use the s_ prefix"
    roles = frozenset({BindingRole.STATIC_FIELD})
    pattern = STATIC_FIELD_NAME

    def message(self, binding: Binding) -> str:
        return f"Static field '{binding.name}' should be camelCase prefixed with 's_'"

    def suggest(self, binding: Binding) -> Optional[str]:
        return "s_" + to_camel(binding.name)


@register
class ThreadStaticFieldPrefix(BindingRule):
    id = "ThreadStaticFieldPrefix"
    description = "[ThreadStatic] fields use the t_ prefix"
    roles = frozenset({BindingRole.THREAD_STATIC_FIELD})
    pattern = THREAD_STATIC_FIELD_NAME

    def message(self, binding: Binding) -> str:
        return f"Thread-static field '{binding.name}' should be camelCase prefixed with 't_'"

    def suggest(self, binding: Binding) -> Optional[str]:
        return "t_" + to_camel(binding.name)


@register
class CamelCaseParameter(BindingRule):
    id = "CamelCaseParameter"
    description = "Method parameters use camelCase"
    roles = frozenset({BindingRole.PARAMETER})
    pattern = CAMEL_CASE

    def message(self, binding: Binding) -> str:
        return f"Parameter '{binding.name}' should be camelCase"

    def suggest(self, binding: Binding) -> Optional[str]:
        return to_camel(binding.name)


@register
class CamelCaseLocalVariable(BindingRule):
    """Local variables use camelCase. Local constants are exempt."""

    id = "CamelCaseLocalVariable"
    description = "Local variables use camelCase"
    roles = frozenset({BindingRole.LOCAL_VARIABLE})
    pattern = CAMEL_CASE

    def applies_to(self, binding: Binding) -> bool:
        return super().applies_to(binding) and not binding.is_const

    def message(self, binding: Binding) -> str:
        return f"Local variable '{binding.name}' should be camelCase"

    def suggest(self, binding: Binding) -> Optional[str]:
        return to_camel(binding.name)
