"""Adapters between external inference models and the tile pipeline.

A backend is any callable mapping one normalized tile (flat float32, 65536
values) to 65536 floats in the same normalized domain. Coroutine functions are
accepted by :meth:`PipelineController.run_inference_async`.
"""

from __future__ import annotations

import inspect
from importlib import import_module
from typing import Any, Awaitable, Callable, Union

import numpy as np
from numpy.typing import NDArray

from pyprofano.inference.tiling import TILE_SIZE
from pyprofano.utils.optional_deps import require

Backend = Callable[[NDArray[np.float32]], Union[Any, Awaitable[Any]]]


def identity_backend(tile: NDArray[np.float32]) -> NDArray[np.float32]:
    """Return the tile unchanged; a perfect reconstruction yields zero difference."""

    return np.array(tile, dtype=np.float32, copy=True)


def as_backend(model: Any) -> Backend:
    """Resolve a model object into a tile callable.

    Objects exposing an ``inference(tile)`` method are used through it, other
    callables are used directly.
    """

    if model is None:
        raise ValueError("model must not be None")
    inference = getattr(model, "inference", None)
    if callable(inference):
        return inference
    if callable(model):
        return model
    raise TypeError(
        f"Inference backend must be callable or expose inference(tile), got {type(model).__name__}"
    )


def is_async_backend(backend: Any) -> bool:
    if inspect.iscoroutinefunction(backend):
        return True
    call = getattr(backend, "__call__", None)
    return inspect.iscoroutinefunction(call)


def coerce_output(output: Any) -> NDArray[np.float32]:
    """Flatten one backend output (list, ndarray or tensor) to float32."""

    if hasattr(output, "detach"):
        output = output.detach().cpu().numpy()
    return np.asarray(output, dtype=np.float32).reshape(-1)


class TorchModuleBackend:
    """Run a ``torch.nn.Module`` on single-channel 256x256 tiles.

    The tile is fed as a ``(1, 1, 256, 256)`` float32 tensor under
    ``torch.inference_mode()``; the output is flattened back to 65536 values.
    """

    def __init__(self, module: Any, *, device: str = "cpu") -> None:
        self._torch = require("torch", extra="torch", purpose="torch-module inference backends")
        self.device = str(device)
        self.module = module.to(self.device)
        self.module.eval()

    def __call__(self, tile: NDArray[np.float32]) -> NDArray[np.float32]:
        torch = self._torch
        arr = np.ascontiguousarray(tile, dtype=np.float32).reshape(1, 1, TILE_SIZE, TILE_SIZE)
        with torch.inference_mode():
            x = torch.from_numpy(arr).to(self.device)
            y = self.module(x)
        return coerce_output(y)


def _is_torch_module(obj: Any) -> bool:
    cls_names = {f"{c.__module__}.{c.__name__}" for c in type(obj).__mro__}
    return "torch.nn.modules.module.Module" in cls_names


def load_backend(name: str, *, device: str = "cpu") -> Backend:
    """Build a backend from its name.

    - ``"identity"``: :func:`identity_backend`
    - ``"package.module:attr"``: the named attribute. Classes are instantiated
      without arguments; torch modules are wrapped in :class:`TorchModuleBackend`.
    """

    text = str(name).strip()
    if text.lower() == "identity":
        return identity_backend

    module_name, sep, attr = text.partition(":")
    if not sep or not module_name or not attr:
        raise ValueError(f"Backend must be 'identity' or 'module:attr', got {name!r}")

    module = import_module(module_name)
    try:
        obj = getattr(module, attr)
    except AttributeError as exc:
        raise ValueError(f"Backend {attr!r} not found in module {module_name!r}") from exc

    if inspect.isclass(obj):
        obj = obj()
    if _is_torch_module(obj):
        return TorchModuleBackend(obj, device=device)
    return as_backend(obj)
