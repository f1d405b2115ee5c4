__version__ = "0.2.0"

from .cache import ResultCache, extract_with_cache
from .client import ExtractionClient
from .credentials import resolve_api_key

__all__ = [
    "__version__",
    "ExtractionClient",
    "ResultCache",
    "extract_with_cache",
    "resolve_api_key",
]
