from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, Index, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.provledger.models import Base


class LedgerState(Base):
    """Single row: who administers the ledger and the product id high-water mark."""

    __tablename__ = "ledger_state"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    administrator: Mapped[str] = mapped_column(String(320), nullable=False)
    product_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)


class AuthorizedIdentity(Base):
    __tablename__ = "authorized_identities"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    identity: Mapped[str] = mapped_column(String(320), nullable=False, unique=True)
    authorized_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)
    authorized_by: Mapped[str | None] = mapped_column(String(320), nullable=True)


class Product(Base):
    __tablename__ = "products"
    __table_args__ = (
        Index("idx_products_manufacturer", "manufacturer"),
        Index("idx_products_status", "status"),
    )

    # Assigned by the ledger from LedgerState.product_count, never by the database.
    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=False)

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    manufacturer: Mapped[str] = mapped_column(String(320), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False)

    current_location: Mapped[str] = mapped_column(String(512), nullable=False)
    status: Mapped[str] = mapped_column(String(32), nullable=False, default="Created")
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False)

    journey: Mapped[list["ProductLocation"]] = relationship(
        "ProductLocation",
        back_populates="product",
        order_by="ProductLocation.sequence",
        cascade="all, delete-orphan",
        lazy="selectin",
    )
    handlers: Mapped[list["ProductHandler"]] = relationship(
        "ProductHandler",
        back_populates="product",
        order_by="ProductHandler.position",
        cascade="all, delete-orphan",
        lazy="selectin",
    )
    access_grants: Mapped[list["ProductAccess"]] = relationship(
        "ProductAccess",
        back_populates="product",
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    @property
    def location_history(self) -> list[str]:
        return [entry.location for entry in self.journey]

    @property
    def time_history(self) -> list[datetime]:
        return [entry.recorded_at for entry in self.journey]

    @property
    def handler_identities(self) -> list[str]:
        return [h.identity for h in self.handlers]


class ProductLocation(Base):
    """One journey step. Rows are only ever inserted."""

    __tablename__ = "product_locations"
    __table_args__ = (
        UniqueConstraint("product_id", "sequence", name="uq_product_location_sequence"),
        Index("idx_product_locations_product", "product_id"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    product_id: Mapped[int] = mapped_column(ForeignKey("products.id", ondelete="CASCADE"), nullable=False)
    sequence: Mapped[int] = mapped_column(Integer, nullable=False)  # 0 = initial location

    location: Mapped[str] = mapped_column(String(512), nullable=False)
    recorded_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False)

    status: Mapped[str] = mapped_column(String(32), nullable=False)
    recorded_by: Mapped[str] = mapped_column(String(320), nullable=False)

    product: Mapped["Product"] = relationship("Product", back_populates="journey")


class ProductHandler(Base):
    __tablename__ = "product_handlers"
    __table_args__ = (
        UniqueConstraint("product_id", "identity", name="uq_product_handler"),
        Index("idx_product_handlers_product", "product_id"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    product_id: Mapped[int] = mapped_column(ForeignKey("products.id", ondelete="CASCADE"), nullable=False)
    identity: Mapped[str] = mapped_column(String(320), nullable=False)
    position: Mapped[int] = mapped_column(Integer, nullable=False)
    first_seen_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False)

    product: Mapped["Product"] = relationship("Product", back_populates="handlers")


class ProductAccess(Base):
    __tablename__ = "product_access"
    __table_args__ = (
        UniqueConstraint("product_id", "identity", name="uq_product_access"),
        Index("idx_product_access_identity", "identity"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    product_id: Mapped[int] = mapped_column(ForeignKey("products.id", ondelete="CASCADE"), nullable=False)
    identity: Mapped[str] = mapped_column(String(320), nullable=False)
    granted_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False)
    granted_by: Mapped[str] = mapped_column(String(320), nullable=False)

    product: Mapped["Product"] = relationship("Product", back_populates="access_grants")
