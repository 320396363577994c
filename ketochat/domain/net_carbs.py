"""
Net carb directive parsing and arithmetic.

Pure functions with no state and no I/O. The only structured input the chat
understands is::

    netcarbs <total> <fiber> <polyols>

Any other text is treated as natural language for the model.
"""

import math
import re
from dataclasses import dataclass
from typing import Optional

DIRECTIVE_KEYWORD = "netcarbs"

# Plain decimal literals only: no inf/nan, no digit-group underscores.
_NUMBER_RE = re.compile(r"[+-]?(?:\d+(?:\.\d*)?|\.\d+)(?:[eE][+-]?\d+)?")


@dataclass(frozen=True)
class NetCarbDirective:
    """Grams of total carbohydrate, fiber and sugar alcohols."""
    total: float
    fiber: float
    polyols: float

    @property
    def net(self) -> float:
        return net_carbs(self.total, self.fiber, self.polyols)


def _parse_number(token: str) -> Optional[float]:
    if not _NUMBER_RE.fullmatch(token):
        return None
    value = float(token)
    # Exponents like 1e400 overflow to inf
    if not math.isfinite(value):
        return None
    return value


def parse_directive(text: str) -> Optional[NetCarbDirective]:
    """Recognize ``netcarbs <total> <fiber> <polyols>``.

    Returns None when the text is not a directive. That is a normal outcome,
    not an error: callers fall back to a plain completion.
    """
    parts = text.split()
    if len(parts) != 4 or parts[0].lower() != DIRECTIVE_KEYWORD:
        return None

    values = [_parse_number(token) for token in parts[1:]]
    if any(value is None for value in values):
        return None

    total, fiber, polyols = values
    directive = NetCarbDirective(total=total, fiber=fiber, polyols=polyols)
    if not math.isfinite(directive.net):
        return None
    return directive


def net_carbs(total: float, fiber: float, polyols: float) -> float:
    """Net carbs = total - fiber - half the sugar alcohols.

    Negative results are returned as-is so data-entry mistakes stay visible.
    """
    return total - fiber - 0.5 * polyols


def format_summary(directive: NetCarbDirective, net: float) -> str:
    """Deterministic first line of a directive reply."""
    return (
        f"Using your inputs: total={directive.total}g, fiber={directive.fiber}g, "
        f"polyols={directive.polyols}g → net={net:.1f}g."
    )


def build_snack_prompt(net: float) -> str:
    """Prompt sent to the model in place of the raw directive text."""
    return f"Given net carbs {net:.1f}g, suggest a matching keto snack."
