from __future__ import annotations

import argparse
import asyncio
import json
import logging
from pathlib import Path
from typing import Any

from pyprofano.datasets.scan import load_scan_npz, validate_scan_geometry
from pyprofano.defects.io import (
    MASK_FORMATS,
    save_float_buffer,
    save_highlight_mask,
    save_rgb_png,
)
from pyprofano.defects.mask import highlight_mask_to_u8
from pyprofano.inference.backends import is_async_backend, load_backend
from pyprofano.inference.config import PipelineConfig, load_pipeline_config
from pyprofano.inference.pipeline import PipelineController
from pyprofano.utils.jsonable import to_jsonable


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="pyprofano-infer")
    parser.add_argument(
        "--scan",
        required=True,
        help="Scan archive (.npz) holding 'intensity' and 'surface' arrays (1024x1024)",
    )
    parser.add_argument(
        "--config",
        default=None,
        help="Optional JSON/YAML pipeline config (percentile, backend, device, mask_format, save_previews)",
    )
    parser.add_argument(
        "--backend",
        default=None,
        help="Inference backend: 'identity' or 'package.module:attr' (default: identity)",
    )
    parser.add_argument("--device", default=None, help="cpu|cuda (torch backends only)")
    parser.add_argument(
        "--percentile",
        type=int,
        default=None,
        help="Highlight percentile in [0,100] (default: 95)",
    )
    parser.add_argument(
        "--save-dir",
        default=None,
        help="Optional directory for reconstruction.npy, difference.npy and the highlight mask",
    )
    parser.add_argument(
        "--mask-format",
        default=None,
        choices=list(MASK_FORMATS),
        help="Highlight mask format written to --save-dir (default: png)",
    )
    parser.add_argument(
        "--save-previews",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="Also write PNG previews (intensity, surface, reconstruction, difference, overlay)",
    )
    parser.add_argument("--save-json", default=None, help="Optional JSON summary output path")
    parser.add_argument("--verbose", action="store_true", help="Log pipeline progress to stderr")
    return parser


def _save_outputs(
    out_dir: Path,
    controller: PipelineController,
    highlight,
    config: PipelineConfig,
) -> dict[str, Any]:
    from pyprofano.visualization.presenters import render_session

    scan = controller.scan
    result = controller.result
    out_dir.mkdir(parents=True, exist_ok=True)

    paths: dict[str, Any] = {
        "reconstruction": save_float_buffer(
            result.reconstruction, out_dir / "reconstruction.npy", width=scan.width, height=scan.height
        ),
        "difference": save_float_buffer(
            result.difference, out_dir / "difference.npy", width=scan.width, height=scan.height
        ),
        "mask": None,
    }
    if highlight is not None:
        mask_u8 = highlight_mask_to_u8(highlight.mask, width=scan.width, height=scan.height)
        paths["mask"] = save_highlight_mask(
            mask_u8, out_dir / f"mask.{config.mask_format}", format=config.mask_format
        )

    if config.save_previews:
        images = render_session(controller.session, highlight)
        previews: dict[str, str] = {}
        for name in ("intensity", "surface", "reconstruction", "difference", "overlay"):
            image = getattr(images, name)
            if image is not None:
                previews[name] = save_rgb_png(image, out_dir / f"{name}.png")
        paths["previews"] = previews

    return paths


def main(argv: list[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)

    if args.verbose:
        logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")

    try:
        config = load_pipeline_config(args.config) if args.config is not None else PipelineConfig()
        config = config.merged(
            percentile=args.percentile,
            backend=args.backend,
            device=args.device,
            mask_format=args.mask_format,
            save_previews=args.save_previews,
        )

        scan = load_scan_npz(args.scan)
        validate_scan_geometry(scan)

        backend = load_backend(config.backend, device=config.device)
        controller = PipelineController(backend, percentile=config.percentile)
        controller.load_scan(scan)
        if is_async_backend(backend):
            status = asyncio.run(controller.run_inference_async())
        else:
            status = controller.run_inference()
        if not status.accepted:
            raise RuntimeError(f"Inference did not run: {status.value}")

        result = controller.result
        highlight = controller.highlight()
        session = controller.session

        record: dict[str, Any] = {
            "scan": str(args.scan),
            "width": scan.width,
            "height": scan.height,
            "backend": config.backend,
            "intensity_range": session.intensity_range,
            "surface_range": session.surface_range,
            "reconstruction_range": result.reconstruction_range,
            "difference_range": result.difference_range,
            "valid_differences": result.valid_difference_count,
            "latency_ms": result.latency_ms,
            "percentile": config.percentile,
            "threshold": (highlight.threshold if highlight is not None else None),
            "anomalous_pixels": (highlight.anomalous_count if highlight is not None else 0),
        }

        if args.save_dir is not None:
            record["outputs"] = _save_outputs(Path(args.save_dir), controller, highlight, config)

        payload = to_jsonable(record)
        if args.save_json is not None:
            out_path = Path(args.save_json)
            out_path.parent.mkdir(parents=True, exist_ok=True)
            out_path.write_text(json.dumps(payload, sort_keys=True, indent=2), encoding="utf-8")
        else:
            print(json.dumps(payload, sort_keys=True))

        return 0
    except Exception as exc:  # noqa: BLE001 - CLI boundary
        import sys

        print(f"error: {exc}", file=sys.stderr)
        print(f"context: scan={args.scan!r}", file=sys.stderr)
        if isinstance(exc, ImportError):
            print(f"context: backend={args.backend!r}", file=sys.stderr)
        return 2


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
