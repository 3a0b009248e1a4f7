"""SQLAlchemy-backed catalog.

Stock is guarded twice: the decrement statement carries the
``stock >= :quantity`` predicate, and the table carries a CHECK constraint
so that no other writer can push a row below zero either.
"""

from datetime import UTC, datetime

import structlog
from protean.exceptions import ObjectNotFoundError
from sqlalchemy import (
    CheckConstraint,
    Column,
    DateTime,
    Integer,
    MetaData,
    String,
    Table,
    create_engine,
    select,
    update,
)
from sqlalchemy.engine import Engine
from sqlalchemy.pool import StaticPool

from catalogue.ledger.port import Catalog, ProductSnapshot

logger = structlog.get_logger(__name__)

metadata = MetaData()

products = Table(
    "products",
    metadata,
    Column("id", String(64), primary_key=True),
    Column("name", String(255), nullable=False),
    Column("price", Integer, nullable=False),
    Column("stock", Integer, nullable=False, default=0),
    Column("image", String(1024)),
    Column("purchases", Integer, nullable=False, default=0),
    Column("updated_at", DateTime),
    CheckConstraint("stock >= 0", name="ck_products_stock_non_negative"),
    CheckConstraint("price >= 0", name="ck_products_price_non_negative"),
)


class SqlCatalog(Catalog):
    """Catalog adapter over a relational ``products`` table."""

    def __init__(self, engine: Engine) -> None:
        self.engine = engine

    @classmethod
    def from_uri(cls, database_uri: str, **engine_kwargs) -> "SqlCatalog":
        """Build an adapter from a database URL.

        An in-memory SQLite URL gets a single shared connection so that every
        thread sees the same database.
        """
        if database_uri in ("sqlite://", "sqlite:///:memory:"):
            engine_kwargs.setdefault("poolclass", StaticPool)
            engine_kwargs.setdefault("connect_args", {"check_same_thread": False})
        return cls(create_engine(database_uri, **engine_kwargs))

    # -------------------------------------------------------------------
    # Schema management
    # -------------------------------------------------------------------
    def create_schema(self) -> None:
        metadata.create_all(self.engine)

    def drop_schema(self) -> None:
        metadata.drop_all(self.engine)

    # -------------------------------------------------------------------
    # Catalog administration (used by fixtures and seeding)
    # -------------------------------------------------------------------
    def add_product(
        self,
        product_id: str,
        name: str,
        price: int,
        stock: int = 0,
        image: str | None = None,
    ) -> ProductSnapshot:
        with self.engine.begin() as conn:
            conn.execute(
                products.insert().values(
                    id=product_id,
                    name=name,
                    price=price,
                    stock=stock,
                    image=image,
                    purchases=0,
                    updated_at=datetime.now(UTC),
                )
            )
        return ProductSnapshot(product_id=product_id, name=name, price=price, stock=stock, image=image)

    def set_price(self, product_id: str, price: int) -> None:
        with self.engine.begin() as conn:
            result = conn.execute(
                update(products).where(products.c.id == product_id).values(price=price, updated_at=datetime.now(UTC))
            )
        if result.rowcount == 0:
            raise ObjectNotFoundError({"product_id": [f"Product {product_id} not found"]})

    # -------------------------------------------------------------------
    # Port implementation
    # -------------------------------------------------------------------
    def get_product(self, product_id: str) -> ProductSnapshot:
        with self.engine.connect() as conn:
            row = conn.execute(select(products).where(products.c.id == product_id)).mappings().first()

        if row is None:
            raise ObjectNotFoundError({"product_id": [f"Product {product_id} not found"]})

        return ProductSnapshot(
            product_id=row["id"],
            name=row["name"],
            price=row["price"],
            stock=row["stock"],
            image=row["image"],
            purchases=row["purchases"],
        )

    def adjust_stock(self, product_id: str, delta: int) -> bool:
        if delta == 0:
            self.get_product(product_id)
            return True

        statement = (
            update(products)
            .where(products.c.id == product_id)
            .values(stock=products.c.stock + delta, updated_at=datetime.now(UTC))
        )
        if delta < 0:
            statement = statement.where(products.c.stock >= -delta)

        with self.engine.begin() as conn:
            result = conn.execute(statement)

        if result.rowcount == 1:
            logger.debug("Stock adjusted", product_id=product_id, delta=delta)
            return True

        if delta > 0:
            raise ObjectNotFoundError({"product_id": [f"Product {product_id} not found"]})

        logger.info("Stock reservation rejected", product_id=product_id, delta=delta)
        return False

    def increment_purchases(self, product_id: str, quantity: int) -> None:
        with self.engine.begin() as conn:
            result = conn.execute(
                update(products)
                .where(products.c.id == product_id)
                .values(purchases=products.c.purchases + quantity)
            )
        if result.rowcount == 0:
            raise ObjectNotFoundError({"product_id": [f"Product {product_id} not found"]})
