"""
Application d'une ligne validée : original + dérivés, remis au stockage.

Chaque échec est confiné à sa ligne et devient un ApplyResult "failed"
dont la raison est transmise telle quelle à l'appelant.
"""

from __future__ import annotations

import json
import time
from collections.abc import Callable, Collection
from pathlib import Path

from menuimport.config import Config
from menuimport.imaging.derivatives import encode_original, generate_derivative, prepare_original
from menuimport.imaging.schema import DerivativeError, PipelineResult
from menuimport.logging_config import get_logger
from menuimport.normalize import sanitize_code
from menuimport.review.state import ApplyResult, DerivativeSummary, ImportRow

logger = get_logger("apply")

# store(code, key, data, extension) ; key = tag du dérivé ou ORIGINAL_KEY
Store = Callable[[str, str, bytes, str], None]

ORIGINAL_KEY = "orig"

_EXTENSIONS = {"WEBP": "webp", "JPEG": "jpg", "PNG": "png"}


def extension_for(output_format: str) -> str:
    return _EXTENSIONS.get(output_format.upper(), output_format.lower())


class DirectoryStore:
    """Stockage sur disque : DIR/<code>/<tag>.<ext> et DIR/<code>/orig.<ext>."""

    def __init__(self, root: str | Path) -> None:
        self.root = Path(root)

    def path_for(self, code: str, key: str, extension: str) -> Path:
        return self.root / code / f"{key}.{extension}"

    def __call__(self, code: str, key: str, data: bytes, extension: str) -> None:
        path = self.path_for(code, key, extension)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(data)


def _summary(tag: str, result: PipelineResult) -> DerivativeSummary:
    return DerivativeSummary(
        tag=tag,
        width=result.width,
        height=result.height,
        size_bytes=len(result.data),
        mode_used=result.mode_used,
        trim=result.trim,
        manual_crop_used=result.manual_crop_used,
    )


def _log_image_op(result: ApplyResult, elapsed_ms: float) -> None:
    payload = {
        "filename": result.filename,
        "code": result.code,
        "status": result.status,
        "reason": result.reason,
        "elapsed_ms": round(elapsed_ms, 1),
        "derivatives": {
            tag: {
                "mode": s.mode_used.value,
                "size": f"{s.width}x{s.height}",
                "bytes": s.size_bytes,
                "did_trim": s.trim.did_trim,
                "trim": [s.trim.trim_top, s.trim.trim_bottom, s.trim.trim_left, s.trim.trim_right],
                "skip_reason": s.trim.skip_reason,
                "manual_crop": s.manual_crop_used.to_dict() if s.manual_crop_used else None,
            }
            for tag, s in result.derivatives.items()
        },
    }
    logger.info("IMAGE_OP %s", json.dumps(payload, ensure_ascii=False, sort_keys=True))


def apply_row(
    row: ImportRow,
    data: bytes,
    catalog_codes: Collection[str],
    config: Config,
    store: Store | None = None,
) -> ApplyResult:
    """
    Produit l'original et chaque dérivé configuré pour une ligne, puis les
    remet au stockage (si fourni).

    Ne lève pas : toute erreur devient un ApplyResult "failed".
    """
    started = time.perf_counter()
    code = sanitize_code(row.selected_code) or ""
    result = _apply(row, code, data, catalog_codes, config, store)
    if result.status == "failed":
        logger.error("Apply failed for %s (%s): %s", row.filename, code or "-", result.reason)
    _log_image_op(result, (time.perf_counter() - started) * 1000)
    return result


def _apply(
    row: ImportRow,
    code: str,
    data: bytes,
    catalog_codes: Collection[str],
    config: Config,
    store: Store | None,
) -> ApplyResult:
    if not code:
        return ApplyResult(row.filename, code, "skipped", "No catalog entry selected")
    if code not in catalog_codes:
        return ApplyResult(row.filename, code, "failed", f"Catalog entry not found: {code}")

    try:
        original = prepare_original(data)
        outputs = {
            spec.tag: generate_derivative(
                original,
                spec,
                row.crop_mode_for(spec.tag),
                row.crop_for(spec.tag),
                output_format=config.output_format,
                quality=config.quality,
            )
            for spec in config.derivatives
        }
        original_bytes = encode_original(original, config.output_format, config.original_quality)
    except (DerivativeError, ValueError) as e:
        return ApplyResult(row.filename, code, "failed", f"Derivative processing failed: {e}")

    summaries = {tag: _summary(tag, r) for tag, r in outputs.items()}
    if store is not None:
        ext = extension_for(config.output_format)
        try:
            store(code, ORIGINAL_KEY, original_bytes, ext)
        except OSError as e:
            return ApplyResult(row.filename, code, "failed", f"Upload original failed: {e}", summaries)
        for tag, r in outputs.items():
            try:
                store(code, tag, r.data, ext)
            except OSError as e:
                return ApplyResult(row.filename, code, "failed", f"Upload {tag} failed: {e}", summaries)

    return ApplyResult(row.filename, code, "updated", None, summaries)
