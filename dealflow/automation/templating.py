"""
Dealflow Template Rendering

Substitutes ``{opportunity.<field>}`` placeholders with opportunity data.
"""

from __future__ import annotations

import re
from typing import Any

from dealflow.automation.types import Opportunity

PLACEHOLDER_PATTERN = re.compile(r"\{opportunity\.([A-Za-z_][A-Za-z0-9_]*)\}")

_MISSING = object()


def _format_value(value: Any) -> str:
    # Whole-number floats render like the UI shows them: 50000, not 50000.0
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def render(template: str, opportunity: Opportunity) -> str:
    """
    Render a template string against an opportunity.

    Placeholders naming a field the opportunity does not have are left as-is.
    """

    def replace(match: re.Match) -> str:
        value = opportunity.get(match.group(1), _MISSING)
        if value is _MISSING or value is None:
            return match.group(0)
        return _format_value(value)

    return PLACEHOLDER_PATTERN.sub(replace, template)
