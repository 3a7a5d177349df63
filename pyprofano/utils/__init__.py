from __future__ import annotations

from .jsonable import to_jsonable
from .optional_deps import optional_import, require
from .param_check import check_choice, check_parameter, check_percentile

__all__ = [
    "check_choice",
    "check_parameter",
    "check_percentile",
    "optional_import",
    "require",
    "to_jsonable",
]
