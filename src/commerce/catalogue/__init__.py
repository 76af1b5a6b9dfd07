"""Catalogue lookup factory.

Provides get_catalogue() / set_catalogue() to swap implementations. The
in-memory FakeCatalogue is the default until the host application installs
a real adapter.
"""

from commerce.catalogue.fake_catalogue import FakeCatalogue
from commerce.catalogue.port import CatalogueLookup, ProductSnapshot

__all__ = ["CatalogueLookup", "FakeCatalogue", "ProductSnapshot", "get_catalogue", "reset_catalogue", "set_catalogue"]

_current_catalogue: CatalogueLookup | None = None


def get_catalogue() -> CatalogueLookup:
    """Return the current catalogue adapter. Defaults to FakeCatalogue."""
    global _current_catalogue
    if _current_catalogue is None:
        _current_catalogue = FakeCatalogue()
    return _current_catalogue


def set_catalogue(catalogue: CatalogueLookup) -> None:
    global _current_catalogue
    _current_catalogue = catalogue


def reset_catalogue() -> None:
    global _current_catalogue
    _current_catalogue = None
