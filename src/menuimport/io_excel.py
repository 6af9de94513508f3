"""I/O tableurs : chargement du catalogue et sauvegarde des rapports (Excel, ODS, CSV)."""

from __future__ import annotations

import csv
from pathlib import Path

import pandas as pd

from menuimport.config import Config, MenuImportError
from menuimport.logging_config import get_logger
from menuimport.matching.schema import CatalogEntry
from menuimport.normalize import sanitize_code

logger = get_logger("io_excel")

SUPPORTED_INPUT_EXTENSIONS = (".xlsx", ".xls", ".ods", ".csv")
_DELIMITERS = [",", ";", "\t", "|"]


class ExcelFileError(MenuImportError):
    """Erreur de chargement d'un fichier (fichier absent, feuille ou colonne inexistante)."""


def _get_engine(path: Path) -> str | None:
    """Retourne le moteur pandas selon l'extension, ou None pour auto."""
    suffix = path.suffix.lower()
    if suffix == ".xlsx":
        return "openpyxl"
    if suffix == ".xls":
        return "xlrd"
    if suffix in (".ods", ".odt"):
        return "odf"
    return None


def _is_csv(path: Path) -> bool:
    return path.suffix.lower() == ".csv"


def _detect_csv_delimiter(path: Path, encoding: str) -> str | None:
    """Devine le séparateur sur les premières lignes non vides."""
    try:
        with path.open("r", encoding=encoding, errors="replace") as f:
            sample_lines: list[str] = []
            for line in f:
                if line.strip() == "":
                    continue
                sample_lines.append(line)
                if len(sample_lines) >= 5:
                    break
    except OSError:
        return None
    if not sample_lines:
        return None
    try:
        return csv.Sniffer().sniff("".join(sample_lines), delimiters=_DELIMITERS).delimiter
    except csv.Error:
        first = sample_lines[0]
        counts = {d: first.count(d) for d in _DELIMITERS}
        best = max(counts, key=counts.get)
        return best if counts[best] > 0 else None


def _read_csv(path: Path) -> pd.DataFrame:
    for encoding in ("utf-8", "latin-1"):
        delimiter = _detect_csv_delimiter(path, encoding) or ","
        try:
            return pd.read_csv(path, dtype=str, encoding=encoding, sep=delimiter, keep_default_na=False)
        except UnicodeDecodeError:
            continue
        except (pd.errors.ParserError, pd.errors.EmptyDataError) as e:
            raise ExcelFileError(f"Erreur CSV {path}: {e}. Vérifiez l'en-tête et le séparateur.") from e
    raise ExcelFileError(f"Encodage non reconnu pour {path}")


def load_sheet(filepath: str | Path, sheet_name: str | None = None) -> pd.DataFrame:
    """
    Charge une feuille dans un DataFrame en préservant le texte.

    Formats supportés : .xlsx, .xls, .ods, .csv.

    Args:
        filepath: Chemin vers le fichier.
        sheet_name: Nom de la feuille (None = première). Ignoré pour CSV.

    Raises:
        ExcelFileError: Si le fichier est absent, illisible ou si la feuille n'existe pas.
    """
    path = Path(filepath)
    if not path.exists():
        raise ExcelFileError(f"Fichier introuvable: {path}")
    if _is_csv(path):
        return _read_csv(path)

    try:
        engine = _get_engine(path)
        xl = pd.ExcelFile(path, engine=engine) if engine else pd.ExcelFile(path)
    except ImportError as e:
        ext = path.suffix.lower()
        if ext == ".xls":
            raise ExcelFileError("Format .xls requis: pip install xlrd") from e
        if ext in (".ods", ".odt"):
            raise ExcelFileError("Format ODS requis: pip install odfpy") from e
        raise ExcelFileError(f"Impossible de lire {path}: {e}") from e
    except (OSError, ValueError) as e:
        raise ExcelFileError(f"Impossible de lire le fichier {path}: {e}") from e

    if sheet_name is None:
        sheet_name = xl.sheet_names[0]  # type: ignore[assignment]
    elif sheet_name not in xl.sheet_names:
        sheets = [str(s) for s in xl.sheet_names]
        raise ExcelFileError(f"Feuille '{sheet_name}' introuvable dans {path}. Feuilles: {', '.join(sheets)}")

    try:
        return pd.read_excel(xl, sheet_name=sheet_name, dtype=str, keep_default_na=False)
    except (OSError, ValueError) as e:
        raise ExcelFileError(f"Erreur feuille '{sheet_name}' dans {path}: {e}") from e


def _cell(value: object) -> str:
    if value is None or (isinstance(value, float) and pd.isna(value)):
        return ""
    return str(value).strip()


def catalog_from_df(df: pd.DataFrame, config: Config) -> list[CatalogEntry]:
    """
    Convertit un DataFrame catalogue en entrées (ordre des lignes conservé).

    Les lignes sans code sont ignorées ; la colonne catégorie est optionnelle.
    """
    for col in (config.code_column, config.name_column):
        if col not in df.columns:
            raise ExcelFileError(f"Colonne '{col}' absente du catalogue. Colonnes: {', '.join(map(str, df.columns))}")
    has_category = config.category_column in df.columns

    entries: list[CatalogEntry] = []
    dropped = 0
    for _, rec in df.iterrows():
        code = sanitize_code(_cell(rec[config.code_column]))
        if code is None:
            dropped += 1
            continue
        category = _cell(rec[config.category_column]) if has_category else ""
        entries.append(CatalogEntry(code, _cell(rec[config.name_column]), category or None))
    if dropped:
        logger.warning("%d catalog row(s) without code ignored", dropped)
    return entries


def load_catalog(config: Config) -> list[CatalogEntry]:
    """Charge le catalogue désigné par la configuration."""
    if not config.catalog_file:
        raise ExcelFileError("catalog_file non défini dans la configuration")
    df = load_sheet(config.catalog_file, config.catalog_sheet)
    entries = catalog_from_df(df, config)
    logger.info("Catalog loaded: %d entries from %s", len(entries), config.catalog_file)
    return entries


def save_xlsx(filepath: str | Path, dataframes: dict[str, pd.DataFrame], *, index: bool = False) -> None:
    """
    Sauvegarde plusieurs DataFrames dans un fichier xlsx (une feuille par DataFrame).

    Args:
        filepath: Chemin de sortie.
        dataframes: Dict {nom_feuille: DataFrame}.
    """
    with pd.ExcelWriter(filepath, engine="openpyxl") as writer:
        for sheet_name, df in dataframes.items():
            # Excel limite les noms de feuille à 31 caractères
            safe_name = str(sheet_name)[:31]
            df.to_excel(writer, sheet_name=safe_name, index=index)
