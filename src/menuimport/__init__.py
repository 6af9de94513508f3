"""menuimport - Import de photos de plats : matching catalogue, revue et images dérivées."""

from menuimport.config import ConfigError, ConfigFileError, MenuImportError
from menuimport.imaging.schema import CropBoxError, DerivativeError, ImageDecodeError
from menuimport.io_excel import ExcelFileError
from menuimport.review.session import BulkApplyBlocked
from menuimport.review.state import TransitionError

__all__ = [
    "__version__",
    "MenuImportError",
    "BulkApplyBlocked",
    "ConfigError",
    "ConfigFileError",
    "CropBoxError",
    "DerivativeError",
    "ExcelFileError",
    "ImageDecodeError",
    "TransitionError",
]

__version__ = "0.1.0"
