"""Normalisation des noms (fichiers, catalogue) en slugs comparables."""

from __future__ import annotations

import re

# Ponctuation retirée avant comparaison
_PUNCTUATION_RE = re.compile(r"""[()\[\]{}.,'":;!?@#$%^&*+=<>~`|\\/]""")
_WHITESPACE_RE = re.compile(r"\s+")
_EXTENSION_RE = re.compile(r"\.[^.]+$")
# Préfixe de code ajouté à la main: "P011 ", "A01  "
_CODE_PREFIX_RE = re.compile(r"^[A-Za-z]\d+\s+")


def normalize_name(text: str | None) -> str:
    """
    Normalise un nom en slug : lower, strip, ponctuation retirée,
    espaces multiples → espace simple, espaces → tirets.

    Fonction totale et idempotente : normalize_name(normalize_name(x)) == normalize_name(x).

    >>> normalize_name("Ten  Zaru   Udon!!")
    'ten-zaru-udon'
    """
    if text is None:
        return ""
    s = str(text).lower().strip()
    s = _PUNCTUATION_RE.sub("", s)
    s = _WHITESPACE_RE.sub(" ", s).strip()
    return s.replace(" ", "-")


def extract_name_from_filename(filename: str) -> str:
    """
    Extrait le nom de plat d'un nom de fichier.

    Retire l'extension finale puis un éventuel préfixe de code en tête
    (une lettre, des chiffres, au moins un espace).

    >>> extract_name_from_filename("P011 Ten Zaru Udon.jpg")
    'Ten Zaru Udon'
    """
    without_ext = _EXTENSION_RE.sub("", filename)
    without_prefix = _CODE_PREFIX_RE.sub("", without_ext, count=1)
    return without_prefix.strip()


def sanitize_code(raw: str | None) -> str | None:
    """
    Nettoie un code catalogue reçu de l'extérieur (mapping, CLI).

    Ne garde que la partie avant le premier ':' ; None si vide.
    """
    if not raw or not isinstance(raw, str):
        return None
    code = raw.split(":")[0].strip()
    return code or None
