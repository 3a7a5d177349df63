from __future__ import annotations

from dataclasses import asdict, is_dataclass
from enum import Enum
from pathlib import Path
from typing import Any

import numpy as np


def to_jsonable(value: Any) -> Any:
    """Convert pipeline summaries into JSON-serializable values.

    - `pathlib.Path` → `str`
    - `Enum` → its value
    - dataclasses (e.g. `NormalizationRange`) → dict
    - `numpy` scalars → builtin Python scalars via `.item()`
    - `numpy.ndarray` → nested Python lists via `.tolist()`
    - non-finite floats → `None` (JSON has no inf/nan)
    - Recurses through `dict` / `list` / `tuple`
    """

    if isinstance(value, Path):
        return str(value)
    if isinstance(value, Enum):
        return to_jsonable(value.value)
    if is_dataclass(value) and not isinstance(value, type):
        return to_jsonable(asdict(value))

    if isinstance(value, np.generic):
        value = value.item()
    elif isinstance(value, np.ndarray):
        return to_jsonable(value.tolist())

    if isinstance(value, float) and not np.isfinite(value):
        return None
    if isinstance(value, dict):
        return {str(k): to_jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [to_jsonable(v) for v in value]
    return value
