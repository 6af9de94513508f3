"""Génération du rapport d'import et du fichier de mapping."""

from __future__ import annotations

from datetime import datetime

import pandas as pd

from menuimport import __version__
from menuimport.config import Config
from menuimport.review.state import ImportRow, RowStatus, conflict_groups, unresolved_rows


def _counts(rows: list[ImportRow]) -> dict[str, int]:
    counts = {status.value: 0 for status in RowStatus}
    for r in rows:
        counts[r.current_status.value] += 1
    return counts


def build_report_df(rows: list[ImportRow], config: Config) -> pd.DataFrame:
    """
    Construit le DataFrame de l'onglet REPORT.

    Contient : nb fichiers, nb par statut, conflits, non résolus, collisions
    de slug, paramètres, horodatage, version.
    """
    counts = _counts(rows)
    conflicts = conflict_groups(rows)

    data = [
        ("nb_files", len(rows)),
        *((f"nb_{status.lower()}", n) for status, n in counts.items()),
        ("nb_conflict_groups", len(conflicts)),
        ("nb_unresolved", len(unresolved_rows(rows))),
        ("nb_slug_collisions", sum(1 for r in rows if r.match.slug_collision)),
        ("", ""),
        ("Parameters", ""),
        ("auto_accept_score", config.auto_accept_score),
        ("review_score", config.review_score),
        ("suggestion_floor", config.suggestion_floor),
        ("top_k", config.top_k),
        ("output_format", config.output_format),
        ("quality", config.quality),
        ("derivatives", ", ".join(f"{s.tag}={s.width}x{s.height}" for s in config.derivatives)),
        ("", ""),
        ("timestamp", datetime.now().isoformat()),
        ("version", __version__),
    ]
    return pd.DataFrame(data, columns=["Key", "Value"])


def print_report_console(rows: list[ImportRow], config: Config) -> None:
    """Affiche un résumé du rapport en console."""
    counts = _counts(rows)
    conflicts = conflict_groups(rows)

    print("\n=== menuimport Report ===")
    print(f"  Fichiers:         {len(rows)}")
    print(f"  Auto:             {counts['AUTO']}")
    print(f"  À revoir:         {counts['NEED_REVIEW']}")
    print(f"  Sans match:       {counts['NO_MATCH']}")
    print(f"  Manuels/prêts:    {counts['MANUAL'] + counts['READY']}")
    print(f"  Appliqués:        {counts['APPLIED']}")
    print(f"  Échecs:           {counts['FAILED']}")
    print(f"  Écartés:          {counts['DISCARDED']}")
    print(f"  Conflits:         {len(conflicts)}")
    for code, files in conflicts.items():
        print(f"    {code}: {', '.join(files)}")
    print(f"  Non résolus:      {len(unresolved_rows(rows))}")
    print(f"  Seuils:           auto>={config.auto_accept_score:g} revue>={config.review_score:g}")
    print(f"  Version:          {__version__}")
    print("=========================\n")


def build_mapping_df(rows: list[ImportRow]) -> pd.DataFrame:
    """Une ligne par fichier : correspondance retenue et état de revue."""
    records = []
    for r in rows:
        result = r.apply_result
        records.append(
            {
                "filename": r.filename,
                "extracted_name": r.match.extracted_name,
                "selected_code": r.selected_code or "",
                "selected_name": r.selected_name or "",
                "confidence": r.match.confidence,
                "original_status": r.original_status.value,
                "current_status": r.current_status.value,
                "slug_collision": r.match.slug_collision,
                "suggestions": "; ".join(f"{c.code} ({c.confidence})" for c in r.match.top_candidates),
                "reason": (result.reason or "") if result else "",
            }
        )
    columns = [
        "filename",
        "extracted_name",
        "selected_code",
        "selected_name",
        "confidence",
        "original_status",
        "current_status",
        "slug_collision",
        "suggestions",
        "reason",
    ]
    return pd.DataFrame(records, columns=columns)


def build_mapping_csv(rows: list[ImportRow], output_path: str) -> None:
    """Génère mapping.csv (voir build_mapping_df)."""
    build_mapping_df(rows).to_csv(output_path, index=False, encoding="utf-8")
