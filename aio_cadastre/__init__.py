"""
Cadastral parcel viewer for the municipality of Anyama, Côte d'Ivoire.

Parcels are loaded from a WFS feature server, converted to longitude and latitude,
filtered by district, block and lot, and pushed to a web map.
"""

import importlib.metadata
from pathlib import Path


__version__: str = importlib.metadata.version("aio-cadastre")

# we add this to all modules for pdoc;
# see https://pdoc.dev/docs/pdoc.html#use-numpydoc-or-google-docstrings
__docformat__ = "google"

# we also use __all__ in all modules for pdoc; this lets us control the order
__all__ = (
    "__version__",
    "ClientError",
    "FeatureLoader",
    "Settings",
    "ViewController",
    "config",
    "error",
    "filter",
    "loader",
    "parcel",
    "proxy",
    "spatial",
    "style",
    "transform",
    "view",
)

from .config import Settings
from .error import ClientError
from .loader import FeatureLoader
from .view import ViewController


# extend the module's docstring
for filename in ("usage.md",):
    __doc__ += "\n<br>\n"
    __doc__ += (Path(__file__).parent / "doc" / filename).read_text(encoding="utf-8")
