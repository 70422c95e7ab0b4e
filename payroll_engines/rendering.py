"""
Plain-data rendering of engine results.

Payslip rendering, report aggregation and persistence live outside this
package.  They receive results as nested dicts and lists built here:

- Decimal is preserved (never converted to float or str)
- date stays a ``datetime.date``
- Enum -> .value
- Nested frozen dataclasses -> nested dicts
- Tuples -> lists
- None preserved
"""

from __future__ import annotations

import dataclasses
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Any


def render_to_dict(obj: object) -> Any:
    """Convert a result dataclass (or anything nested in one) to plain data."""
    if obj is None:
        return None
    if isinstance(obj, (Decimal, date)):
        return obj
    if isinstance(obj, Enum):
        return obj.value
    if isinstance(obj, (list, tuple)):
        return [render_to_dict(item) for item in obj]
    if isinstance(obj, (set, frozenset)):
        return sorted(render_to_dict(item) for item in obj)
    if isinstance(obj, dict):
        return {
            (k.value if isinstance(k, Enum) else str(k)): render_to_dict(v)
            for k, v in obj.items()
        }
    if dataclasses.is_dataclass(obj) and not isinstance(obj, type):
        return {
            f.name: render_to_dict(getattr(obj, f.name))
            for f in dataclasses.fields(obj)
        }
    if isinstance(obj, (str, int, bool)):
        return obj
    return str(obj)
