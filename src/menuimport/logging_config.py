"""Configuration centralisée du logging (logger racine 'menuimport')."""

from __future__ import annotations

import logging
import sys

_loggers: dict[str, logging.Logger] = {}

DEFAULT_FORMAT = "%(asctime)s [%(name)s] %(levelname)s: %(message)s"


def setup_logging(level: str | None = None, log_file: str | None = None) -> None:
    """
    Configure le logger racine de l'application.

    À appeler une seule fois au démarrage (CLI). Les bibliothèques appelantes
    peuvent aussi configurer 'menuimport' elles-mêmes.

    Args:
        level: DEBUG, INFO, WARNING, ERROR (INFO par défaut).
        log_file: Fichier de log optionnel.
    """
    log_level = getattr(logging, (level or "INFO").upper(), logging.INFO)

    root_logger = logging.getLogger("menuimport")
    root_logger.setLevel(log_level)
    # Évite les handlers dupliqués si appelé plusieurs fois
    root_logger.handlers.clear()

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(logging.Formatter(DEFAULT_FORMAT))
    root_logger.addHandler(console_handler)

    if log_file:
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setFormatter(logging.Formatter(DEFAULT_FORMAT))
        root_logger.addHandler(file_handler)


def get_logger(name: str) -> logging.Logger:
    """
    Retourne le logger 'menuimport.<name>' (mis en cache).

    Usage:
        logger = get_logger("matcher")
        logger.info("Slug collision: %s", slug)
    """
    if name not in _loggers:
        _loggers[name] = logging.getLogger(f"menuimport.{name}")
    return _loggers[name]
