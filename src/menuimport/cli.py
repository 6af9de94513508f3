"""Interface en ligne de commande menuimport."""

from __future__ import annotations

import argparse
import sys
from pathlib import Path

from menuimport import __version__
from menuimport.config import Config, MenuImportError
from menuimport.imaging.derivatives import generate_derivative
from menuimport.imaging.schema import CropBoxError, CropMode, NormalizedCropBox
from menuimport.io_excel import load_catalog, save_xlsx
from menuimport.logging_config import setup_logging
from menuimport.matching.matcher import CatalogMatcher
from menuimport.report import build_mapping_csv, build_mapping_df, build_report_df, print_report_console
from menuimport.review.apply import DirectoryStore
from menuimport.review.session import BulkApplyBlocked, ImportSession


def _load(config_path: str, log_level: str | None, log_file: str | None) -> Config:
    config = Config.load(config_path)
    setup_logging(log_level or config.log_level, log_file)
    return config


def _match_session(config: Config, images: list[str]) -> ImportSession:
    catalog = load_catalog(config)
    matcher = CatalogMatcher(catalog, config)
    results = matcher.run(Path(p).name for p in images)
    return ImportSession.from_matches(results, catalog, config)


def parse_crop(text: str) -> NormalizedCropBox:
    """Parse "x,y,w,h" (valeurs normalisées 0-1)."""
    parts = [p.strip() for p in text.split(",")]
    if len(parts) != 4:
        raise CropBoxError(f"--crop attend x,y,w,h (got {text!r})")
    try:
        x, y, w, h = (float(p) for p in parts)
    except ValueError as e:
        raise CropBoxError(f"--crop invalide: {text!r}") from e
    return NormalizedCropBox(x, y, w, h)


def cmd_match(
    config_path: str,
    images: list[str],
    mapping_path: str | None = None,
    *,
    log_level: str | None = None,
    log_file: str | None = None,
) -> int:
    """Matche les noms de fichiers et écrit mapping.csv."""
    config = _load(config_path, log_level, log_file)
    session = _match_session(config, images)
    rows = session.rows()

    map_path = Path(mapping_path) if mapping_path else Path(config_path).parent / "mapping.csv"
    build_mapping_csv(rows, str(map_path))
    print(f"Mapping écrit: {map_path}")
    print_report_console(rows, config)
    return 0


def cmd_apply(
    config_path: str,
    images: list[str],
    output_dir: str,
    *,
    force: bool = False,
    log_level: str | None = None,
    log_file: str | None = None,
) -> int:
    """Matche, puis génère et écrit les images des lignes applicables."""
    config = _load(config_path, log_level, log_file)
    session = _match_session(config, images)
    for p in images:
        session.stage(Path(p).name, Path(p).read_bytes())

    out = Path(output_dir)
    out.mkdir(parents=True, exist_ok=True)
    store = DirectoryStore(out)

    exit_code = 0
    if force:
        try:
            results = session.apply_all(store, acknowledge_unresolved=True)
        except BulkApplyBlocked as e:
            print(f"Erreur: {e}")
            for code, files in session.conflict_groups().items():
                print(f"  {code}: {', '.join(files)}")
            results = []
            exit_code = 1
    else:
        unresolved = session.unresolved_count()
        if unresolved:
            print(f"Avertissement: {unresolved} ligne(s) non résolue(s) ignorée(s) (utiliser --force)")
        results = session.apply_rows(session.resolved_ready(), store)

    for r in results:
        if r.status != "updated":
            print(f"  {r.filename} -> {r.code or '-'}: {r.status} ({r.reason})")
    if any(r.status == "failed" for r in results):
        exit_code = 1

    rows = session.rows()
    report_path = out / "report.xlsx"
    save_xlsx(report_path, {"Mapping": build_mapping_df(rows), "REPORT": build_report_df(rows, config)})
    print(f"Rapport: {report_path}")
    print_report_console(rows, config)
    return exit_code


def cmd_preview(
    config_path: str,
    image: str,
    aspect: str,
    output_path: str,
    *,
    crop: str | None = None,
    log_level: str | None = None,
) -> int:
    """Génère un seul dérivé pour contrôle visuel."""
    config = _load(config_path, log_level, None)
    spec = config.derivative(aspect)
    manual_crop = parse_crop(crop) if crop else None
    mode = CropMode.MANUAL if manual_crop else CropMode.AUTO

    result = generate_derivative(
        Path(image).read_bytes(),
        spec,
        mode,
        manual_crop,
        output_format=config.output_format,
        quality=config.quality,
    )
    Path(output_path).write_bytes(result.data)

    trim = result.trim
    print(f"Dérivé {spec.tag} ({result.width}x{result.height}, mode {result.mode_used.value}): {output_path}")
    print(f"  Source: {result.source_width}x{result.source_height}")
    if trim.did_trim:
        print(f"  Rognage: haut={trim.trim_top} bas={trim.trim_bottom} gauche={trim.trim_left} droite={trim.trim_right}")
    elif trim.skip_reason:
        print(f"  Rognage ignoré: {trim.skip_reason}")
    return 0


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        prog="menuimport",
        description="Import de photos de plats : matching catalogue et images dérivées",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("--log-level", help="DEBUG, INFO, WARNING, ERROR (défaut: config)")
    parser.add_argument("--log-file", help="Fichier de log")

    subparsers = parser.add_subparsers(dest="command", help="Commandes")

    p_match = subparsers.add_parser("match", help="Matcher des fichiers avec le catalogue")
    p_match.add_argument("--config", "-c", required=True, help="Fichier config JSON")
    p_match.add_argument("--mapping", "-m", help="Chemin pour mapping.csv")
    p_match.add_argument("images", nargs="+", help="Fichiers image")

    p_apply = subparsers.add_parser("apply", help="Générer les images des lignes validées")
    p_apply.add_argument("--config", "-c", required=True, help="Fichier config JSON")
    p_apply.add_argument("--output", "-o", required=True, help="Dossier de sortie")
    p_apply.add_argument("--force", action="store_true", help="Appliquer aussi les lignes non résolues")
    p_apply.add_argument("images", nargs="+", help="Fichiers image")

    p_preview = subparsers.add_parser("preview", help="Générer un dérivé pour contrôle")
    p_preview.add_argument("--config", "-c", required=True, help="Fichier config JSON")
    p_preview.add_argument("--aspect", "-a", default="1x1", help="Tag du dérivé (ex. 1x1, 4x3)")
    p_preview.add_argument("--crop", help="Recadrage manuel x,y,w,h (0-1)")
    p_preview.add_argument("--output", "-o", required=True, help="Fichier de sortie")
    p_preview.add_argument("image", help="Fichier image")

    args = parser.parse_args(argv)

    try:
        if args.command == "match":
            return cmd_match(
                args.config, args.images, args.mapping, log_level=args.log_level, log_file=args.log_file
            )
        if args.command == "apply":
            return cmd_apply(
                args.config,
                args.images,
                args.output,
                force=args.force,
                log_level=args.log_level,
                log_file=args.log_file,
            )
        if args.command == "preview":
            return cmd_preview(
                args.config, args.image, args.aspect, args.output, crop=args.crop, log_level=args.log_level
            )
    except (MenuImportError, OSError) as e:
        print(f"Erreur: {e}", file=sys.stderr)
        return 1

    parser.print_help()
    return 0


if __name__ == "__main__":
    sys.exit(main())
