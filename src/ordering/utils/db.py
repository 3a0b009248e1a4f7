"""Database schema management for the ordering store and the catalog."""

from protean.domain import Domain
from sqlalchemy import create_engine

from catalogue.ledger import get_catalog


def setup_db(domain: Domain):
    """Create ordering tables (SQL providers only) and the catalog schema."""
    with domain.domain_context():
        for _, provider in domain.providers.items():
            if provider.conn_info["provider"] in ("sqlite", "postgresql"):
                engine = create_engine(provider.conn_info["database_uri"])

                for _, aggregate_record in domain.registry.aggregates.items():
                    if aggregate_record.cls.meta_.provider == provider.name:
                        domain.repository_for(aggregate_record.cls)._dao  # noqa: B018

                for _, entity_record in domain.registry.entities.items():
                    if entity_record.cls.meta_.provider == provider.name:
                        domain.repository_for(entity_record.cls)._dao  # noqa: B018

                provider._metadata.create_all(engine)

    catalog = get_catalog()
    if hasattr(catalog, "create_schema"):
        catalog.create_schema()


def drop_db(domain: Domain):
    """Drop ordering tables and the catalog schema."""
    with domain.domain_context():
        for _, provider in domain.providers.items():
            if provider.conn_info["provider"] in ("sqlite", "postgresql"):
                engine = create_engine(provider.conn_info["database_uri"])
                provider._metadata.drop_all(engine)

    catalog = get_catalog()
    if hasattr(catalog, "drop_schema"):
        catalog.drop_schema()
