from __future__ import annotations

from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Any, Mapping

from pyprofano.config.io import load_config
from pyprofano.defects.io import MASK_FORMATS
from pyprofano.inference.pipeline import DEFAULT_PERCENTILE
from pyprofano.utils.param_check import check_choice, check_percentile


@dataclass(frozen=True)
class PipelineConfig:
    """Run settings for ``pyprofano-infer``.

    Values come from a JSON/YAML config file; CLI flags override them via
    :meth:`merged`.
    """

    percentile: int = DEFAULT_PERCENTILE
    backend: str = "identity"
    device: str = "cpu"
    mask_format: str = "png"
    save_previews: bool = False

    def __post_init__(self) -> None:
        object.__setattr__(self, "percentile", check_percentile(self.percentile))
        object.__setattr__(
            self,
            "mask_format",
            check_choice(self.mask_format, MASK_FORMATS, param_name="mask_format"),
        )
        if not str(self.backend).strip():
            raise ValueError("backend must be a non-empty string")

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "PipelineConfig":
        known = {f.name for f in fields(cls)}
        unknown = sorted(str(k) for k in payload if k not in known)
        if unknown:
            raise ValueError(
                f"Unknown pipeline config keys: {', '.join(unknown)}. "
                f"Supported: {', '.join(sorted(known))}."
            )
        kwargs = dict(payload)
        if "save_previews" in kwargs:
            kwargs["save_previews"] = bool(kwargs["save_previews"])
        for key in ("backend", "device", "mask_format"):
            if key in kwargs:
                kwargs[key] = str(kwargs[key])
        return cls(**kwargs)

    def merged(self, **overrides: Any) -> "PipelineConfig":
        """Return a copy with every non-None override applied."""

        changes = {k: v for k, v in overrides.items() if v is not None}
        return replace(self, **changes) if changes else self


def load_pipeline_config(path: str | Path) -> PipelineConfig:
    payload = load_config(path)
    try:
        return PipelineConfig.from_dict(payload)
    except (TypeError, ValueError) as exc:
        raise ValueError(f"Invalid pipeline config {str(path)!r}: {exc}") from exc
