"""firecomp: content-addressed render cache for a fire-overlay compositor."""

from firecomp.core import ArtifactProvider, FireComposer
from firecomp.types import CANONICAL_FORMAT, DeliveryFormat, RenderResult

__version__ = "0.1.0"

__all__ = [
    "ArtifactProvider",
    "FireComposer",
    "CANONICAL_FORMAT",
    "DeliveryFormat",
    "RenderResult",
    "__version__",
]
