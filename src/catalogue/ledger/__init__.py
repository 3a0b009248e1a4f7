"""Catalog ledger factory.

Provides get_catalog() / set_catalog() to swap implementations. The default
adapter is a SqlCatalog bound to CATALOG_DATABASE_URI (a SQLite file in the
working directory when unset).
"""

import os

from catalogue.ledger.port import Catalog, ProductSnapshot

DEFAULT_CATALOG_DATABASE_URI = "sqlite:///catalog.db"

_current_catalog: Catalog | None = None


def catalog_database_uri() -> str:
    return os.environ.get("CATALOG_DATABASE_URI", DEFAULT_CATALOG_DATABASE_URI)


def get_catalog() -> Catalog:
    """Return the configured catalog (singleton)."""
    global _current_catalog
    if _current_catalog is None:
        from catalogue.ledger.sql_adapter import SqlCatalog

        catalog = SqlCatalog.from_uri(catalog_database_uri())
        catalog.create_schema()
        _current_catalog = catalog
    return _current_catalog


def set_catalog(catalog: Catalog) -> None:
    """Override the active catalog (useful for tests)."""
    global _current_catalog
    _current_catalog = catalog


def reset_catalog() -> None:
    """Reset to the default catalog."""
    global _current_catalog
    _current_catalog = None


__all__ = ["Catalog", "ProductSnapshot", "catalog_database_uri", "get_catalog", "reset_catalog", "set_catalog"]
