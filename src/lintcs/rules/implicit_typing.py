"""
Implicit-typing guidance: `var` only where the type is apparent from the
initializer, and never for foreach iteration variables.
"""

from lintcs.parser.scopes import Binding, BindingRole
from lintcs.rules import register
from lintcs.rules.base import BindingRule, Severity


@register
class VarApparentType(BindingRule):
    """
    `var` is fine when the initializer is a `new` expression, a literal or
    an explicit cast. Anything else (method calls, properties, operators)
    hides the type from the reader.
    """

    id = "VarApparentType"
    description = "Use 'var' only when the type is apparent from the initializer"
    default_severity = Severity.INFO
    roles = frozenset({BindingRole.LOCAL_VARIABLE})

    def applies_to(self, binding: Binding) -> bool:
        return (super().applies_to(binding) and binding.uses_var
                and not binding.in_foreach and binding.initializer_apparent is not None)

    def is_compliant(self, binding: Binding) -> bool:
        return binding.initializer_apparent

    def message(self, binding: Binding) -> str:
        return (f"'var' used for '{binding.name}' but the type is not apparent from the "
                f"initializer; declare the type explicitly")


@register
class ExplicitForeachType(BindingRule):
    id = "ExplicitForeachType"
    description = "Use an explicit type for foreach iteration variables"
    default_severity = Severity.INFO
    roles = frozenset({BindingRole.LOCAL_VARIABLE})

    def applies_to(self, binding: Binding) -> bool:
        return super().applies_to(binding) and binding.in_foreach

    def is_compliant(self, binding: Binding) -> bool:
        return not binding.uses_var

    def message(self, binding: Binding) -> str:
        return f"foreach variable '{binding.name}' uses 'var'; declare its type explicitly"
