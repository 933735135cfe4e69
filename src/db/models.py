"""SQLAlchemy declarative base and ORM models.

Player, StoreListing and Game rows carry a `version` column wired as the
mapper's version_id_col: every UPDATE is conditional on the version read,
and a lost race surfaces as StaleDataError at flush time.
"""

from datetime import datetime
from decimal import Decimal

from sqlalchemy import (
    Boolean,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

MONEY = Numeric(12, 2)


class Base(DeclarativeBase):
    """Base class for all database models."""


# ── Reference data (shared by every game) ────────────────────


class BoroughModel(Base):
    """ORM model for boroughs."""

    __tablename__ = "boroughs"

    borough_id: Mapped[str] = mapped_column(String, primary_key=True)
    name: Mapped[str] = mapped_column(String, nullable=False, unique=True)
    price_modifier: Mapped[Decimal | None] = mapped_column(
        Numeric(6, 3), nullable=True
    )


class BoroughDistanceModel(Base):
    """Travel times between two boroughs (looked up in both directions)."""

    __tablename__ = "borough_distances"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    from_borough_id: Mapped[str] = mapped_column(
        String, ForeignKey("boroughs.borough_id"), nullable=False
    )
    to_borough_id: Mapped[str] = mapped_column(
        String, ForeignKey("boroughs.borough_id"), nullable=False
    )
    walking_time: Mapped[int | None] = mapped_column(Integer, nullable=True)
    bike_time: Mapped[int | None] = mapped_column(Integer, nullable=True)
    subway_time: Mapped[int | None] = mapped_column(Integer, nullable=True)
    taxi_time: Mapped[int | None] = mapped_column(Integer, nullable=True)
    taxi_cost: Mapped[Decimal | None] = mapped_column(MONEY, nullable=True)

    __table_args__ = (
        UniqueConstraint("from_borough_id", "to_borough_id", name="uq_distance_pair"),
    )


class TransportMethodModel(Base):
    """ORM model for transportation methods."""

    __tablename__ = "transportation_methods"

    transport_id: Mapped[str] = mapped_column(String, primary_key=True)
    name: Mapped[str] = mapped_column(String, nullable=False)
    base_cost: Mapped[Decimal] = mapped_column(MONEY, nullable=False, default=0)
    speed_factor: Mapped[float] = mapped_column(Float, nullable=False, default=1.0)


class StoreModel(Base):
    """ORM model for record stores."""

    __tablename__ = "stores"

    store_id: Mapped[str] = mapped_column(String, primary_key=True)
    name: Mapped[str] = mapped_column(String, nullable=False)
    borough_id: Mapped[str] = mapped_column(
        String, ForeignKey("boroughs.borough_id"), nullable=False, index=True
    )
    specialty_genre: Mapped[str | None] = mapped_column(String, nullable=True)
    open_hour: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    close_hour: Mapped[int] = mapped_column(Integer, nullable=False, default=24)


class ProductModel(Base):
    """ORM model for records (products)."""

    __tablename__ = "products"

    product_id: Mapped[str] = mapped_column(String, primary_key=True)
    name: Mapped[str] = mapped_column(String, nullable=False)
    artist: Mapped[str] = mapped_column(String, nullable=False, default="")
    genre: Mapped[str] = mapped_column(String, nullable=False, default="")
    year: Mapped[int | None] = mapped_column(Integer, nullable=True)
    base_price: Mapped[Decimal] = mapped_column(MONEY, nullable=False)
    rarity: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)


# ── Per-game state ───────────────────────────────────────────


class GameModel(Base):
    """ORM model for game sessions."""

    __tablename__ = "games"

    game_id: Mapped[str] = mapped_column(String, primary_key=True)
    name: Mapped[str] = mapped_column(String, nullable=False)
    status: Mapped[str] = mapped_column(String, nullable=False, default="waiting")
    current_hour: Mapped[int] = mapped_column(Integer, nullable=False)
    max_hours: Mapped[int] = mapped_column(Integer, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    started_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    ended_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    __mapper_args__ = {"version_id_col": version}


class PlayerModel(Base):
    """ORM model for players."""

    __tablename__ = "players"

    player_id: Mapped[str] = mapped_column(String, primary_key=True)
    game_id: Mapped[str] = mapped_column(
        String, ForeignKey("games.game_id", ondelete="CASCADE"), nullable=False
    )
    username: Mapped[str] = mapped_column(String, nullable=False)
    cash: Mapped[Decimal] = mapped_column(MONEY, nullable=False)
    loan_amount: Mapped[Decimal] = mapped_column(MONEY, nullable=False, default=0)
    inventory_capacity: Mapped[int] = mapped_column(Integer, nullable=False)
    current_borough_id: Mapped[str | None] = mapped_column(
        String, ForeignKey("boroughs.borough_id"), nullable=True
    )
    actions_used_this_hour: Mapped[int] = mapped_column(Integer, default=0)
    actions_overflow: Mapped[int] = mapped_column(Integer, default=0)
    turn_completed: Mapped[bool] = mapped_column(Boolean, default=False)
    active: Mapped[bool] = mapped_column(Boolean, default=True)
    joined_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    __mapper_args__ = {"version_id_col": version}

    __table_args__ = (Index("idx_player_game", "game_id"),)


class StoreListingModel(Base):
    """Market stock of one product in one condition at one store (per game)."""

    __tablename__ = "store_listings"

    listing_id: Mapped[str] = mapped_column(String, primary_key=True)
    game_id: Mapped[str] = mapped_column(
        String, ForeignKey("games.game_id", ondelete="CASCADE"), nullable=False
    )
    store_id: Mapped[str] = mapped_column(
        String, ForeignKey("stores.store_id"), nullable=False
    )
    product_id: Mapped[str] = mapped_column(
        String, ForeignKey("products.product_id"), nullable=False
    )
    condition: Mapped[str] = mapped_column(String, nullable=False)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    current_price: Mapped[Decimal] = mapped_column(MONEY, nullable=False)
    last_updated_hour: Mapped[int | None] = mapped_column(Integer, nullable=True)
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    __mapper_args__ = {"version_id_col": version}

    __table_args__ = (
        UniqueConstraint(
            "game_id", "store_id", "product_id", "condition", name="uq_listing"
        ),
        Index("idx_listing_store", "game_id", "store_id"),
    )


class InventoryItemModel(Base):
    """A player's holding of one product in one condition."""

    __tablename__ = "player_inventory"

    item_id: Mapped[str] = mapped_column(String, primary_key=True)
    player_id: Mapped[str] = mapped_column(
        String, ForeignKey("players.player_id", ondelete="CASCADE"), nullable=False
    )
    product_id: Mapped[str] = mapped_column(
        String, ForeignKey("products.product_id"), nullable=False
    )
    condition: Mapped[str] = mapped_column(String, nullable=False)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    purchase_price: Mapped[Decimal] = mapped_column(MONEY, nullable=False)
    acquired_hour: Mapped[int | None] = mapped_column(Integer, nullable=True)

    __table_args__ = (
        UniqueConstraint(
            "player_id", "product_id", "condition", name="uq_player_inventory_condition"
        ),
    )


class TransactionModel(Base):
    """Append-only trade/travel log. Rows are never updated or deleted."""

    __tablename__ = "transactions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    game_id: Mapped[str] = mapped_column(
        String, ForeignKey("games.game_id", ondelete="CASCADE"), nullable=False
    )
    player_id: Mapped[str] = mapped_column(String, nullable=False)
    product_id: Mapped[str | None] = mapped_column(String, nullable=True)
    store_id: Mapped[str | None] = mapped_column(String, nullable=True)
    transaction_type: Mapped[str] = mapped_column(String, nullable=False)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    unit_price: Mapped[Decimal] = mapped_column(MONEY, nullable=False, default=0)
    condition: Mapped[str | None] = mapped_column(String, nullable=True)
    hour: Mapped[int] = mapped_column(Integer, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    __table_args__ = (
        Index("idx_tx_player_product", "player_id", "product_id"),
    )
