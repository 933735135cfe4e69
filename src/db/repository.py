"""Game repository — the only place services touch the ORM.

Reads return core dataclasses; writes take ids and field values. Every
mutating service call wraps its work in `transaction()`, which commits once
at the end and rolls everything back on any error.

Reference tables (products, stores, boroughs, distances, transport) are
served through an optional injected TTLCache. Per-game rows are never
cached.
"""

import uuid
from contextlib import contextmanager
from decimal import Decimal
from typing import Any, Iterator, Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.orm import Session
from sqlalchemy.orm.attributes import flag_modified
from sqlalchemy.orm.exc import StaleDataError

from src.core.cache import TTLCache, maybe_cached
from src.core.errors import (
    ConcurrentModificationError,
    DomainRuleViolation,
    DuplicateConditionError,
    GameNotFoundError,
    ItemNotFoundError,
    ListingNotFoundError,
    PlayerNotFoundError,
)
from src.core.logging import get_logger
from src.core.market.models import (
    Borough,
    BoroughDistance,
    Condition,
    GameState,
    GameStatus,
    InventoryItem,
    PlayerState,
    Product,
    PurchaseRecord,
    Store,
    StoreListing,
    TransactionRecord,
    TransactionType,
    TransportMethod,
)
from src.db.models import (
    BoroughDistanceModel,
    BoroughModel,
    GameModel,
    InventoryItemModel,
    PlayerModel,
    ProductModel,
    StoreListingModel,
    StoreModel,
    TransactionModel,
    TransportMethodModel,
)

logger = get_logger(__name__)


def new_id() -> str:
    return str(uuid.uuid4())


# SQLite busy, Postgres serialization/deadlock/lock_timeout, MySQL lock wait
_LOCK_MARKERS = (
    "database is locked",
    "database table is locked",
    "could not serialize",
    "deadlock",
    "lock timeout",
    "lock wait timeout",
    "could not obtain lock",
)


def _is_lock_conflict(error: OperationalError) -> bool:
    message = str(error.orig).lower()
    return any(marker in message for marker in _LOCK_MARKERS)


class GameRepository:
    """Transactional access to games, players, market and history."""

    def __init__(self, db: Session, cache: Optional[TTLCache] = None):
        self._db = db
        self._cache = cache

    @property
    def session(self) -> Session:
        return self._db

    # === Transactions ===

    @contextmanager
    def transaction(self) -> Iterator["GameRepository"]:
        """Unit of work. Commit on success, roll back on any exception.

        StaleDataError (optimistic version check lost), unique-key races and
        lock or serialization failures reported by the database become
        ConcurrentModificationError; a race on the inventory
        (player, product, condition) key is a DuplicateConditionError.
        """
        try:
            yield self
            self._db.commit()
        except StaleDataError as e:
            self._db.rollback()
            logger.warning("Optimistic lock lost: %s", e)
            raise ConcurrentModificationError(
                "Data changed while the action was running, retry"
            ) from e
        except IntegrityError as e:
            self._db.rollback()
            if "player_inventory" in str(e.orig):
                raise DuplicateConditionError(
                    "Already holding that record in that condition"
                ) from e
            logger.warning("Integrity conflict: %s", e.orig)
            raise ConcurrentModificationError(
                "Conflicting write detected, retry"
            ) from e
        except OperationalError as e:
            self._db.rollback()
            if not _is_lock_conflict(e):
                raise
            logger.warning("Lock conflict: %s", e.orig)
            raise ConcurrentModificationError(
                "Another action holds this game, retry"
            ) from e
        except DomainRuleViolation as e:
            self._db.rollback()
            logger.info("Refused (%s): %s", e.code, e.message)
            raise
        except Exception:
            self._db.rollback()
            raise

    def _set_fields(self, row: Any, fields: dict[str, Any]) -> None:
        for key, value in fields.items():
            if not hasattr(row, key):
                raise AttributeError(f"{type(row).__name__} has no field {key!r}")
            if isinstance(value, (Condition, GameStatus, TransactionType)):
                value = value.value
            setattr(row, key, value)
        # flush now so the version check fires inside the unit of work
        self._db.flush()

    # === Games ===

    def create_game(self, game: GameState) -> GameState:
        row = GameModel(
            game_id=game.game_id,
            name=game.name,
            status=game.status.value,
            current_hour=game.current_hour,
            max_hours=game.max_hours,
        )
        self._db.add(row)
        self._db.flush()
        return self._game_to_core(row)

    def _game_row(self, game_id: str) -> GameModel:
        row = self._db.get(GameModel, game_id)
        if row is None:
            raise GameNotFoundError(f"Game not found: {game_id}", {"game_id": game_id})
        return row

    def get_game(self, game_id: str) -> GameState:
        return self._game_to_core(self._game_row(game_id))

    def lock_game(self, game_id: str) -> GameState:
        """Take the game row for the rest of the unit of work.

        Selects FOR UPDATE where the dialect supports it and writes a
        version bump, so two resolutions of the same hour serialize: the
        later one waits, hits a lock error or loses the version check.
        The returned state is re-read from the database.
        """
        row = self._db.scalars(
            select(GameModel)
            .where(GameModel.game_id == game_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).first()
        if row is None:
            raise GameNotFoundError(f"Game not found: {game_id}", {"game_id": game_id})
        flag_modified(row, "current_hour")
        self._db.flush()
        return self._game_to_core(row)

    def update_game(self, game_id: str, **fields: Any) -> GameState:
        row = self._game_row(game_id)
        self._set_fields(row, fields)
        return self._game_to_core(row)

    # === Players ===

    def create_player(self, player: PlayerState) -> PlayerState:
        row = PlayerModel(
            player_id=player.player_id,
            game_id=player.game_id,
            username=player.username,
            cash=player.cash,
            loan_amount=player.loan_amount,
            inventory_capacity=player.inventory_capacity,
            current_borough_id=player.current_borough_id,
            actions_used_this_hour=player.actions_used_this_hour,
            actions_overflow=player.actions_overflow,
            turn_completed=player.turn_completed,
            active=player.active,
        )
        self._db.add(row)
        self._db.flush()
        return self._player_to_core(row)

    def _player_row(self, player_id: str, lock: bool = False) -> PlayerModel:
        stmt = select(PlayerModel).where(PlayerModel.player_id == player_id)
        if lock:
            stmt = stmt.with_for_update()
        # identity-map rows keep the version they were read with
        row = self._db.scalars(stmt).first()
        if row is None:
            raise PlayerNotFoundError(
                f"Player not found: {player_id}", {"player_id": player_id}
            )
        return row

    def get_player(self, player_id: str, lock: bool = False) -> PlayerState:
        """lock=True selects the row FOR UPDATE where the dialect supports it."""
        return self._player_to_core(self._player_row(player_id, lock))

    def update_player(self, player_id: str, **fields: Any) -> PlayerState:
        row = self._player_row(player_id)
        self._set_fields(row, fields)
        return self._player_to_core(row)

    def list_players(self, game_id: str) -> list[PlayerState]:
        """Current roster, read from the DB on every call.

        populate_existing overwrites rows already in the session, so turn
        flags committed by other players since an earlier read are seen.
        Pending edits survive it because every update_* flushes first.
        """
        rows = self._db.scalars(
            select(PlayerModel)
            .where(PlayerModel.game_id == game_id)
            .order_by(PlayerModel.joined_at, PlayerModel.player_id)
            .execution_options(populate_existing=True)
        ).all()
        return [self._player_to_core(r) for r in rows]

    # === Store listings ===

    def create_store_listing(self, listing: StoreListing, hour: int | None = None) -> StoreListing:
        row = StoreListingModel(
            listing_id=listing.listing_id,
            game_id=listing.game_id,
            store_id=listing.store_id,
            product_id=listing.product_id,
            condition=Condition(listing.condition).value,
            quantity=listing.quantity,
            current_price=listing.current_price,
            last_updated_hour=hour,
        )
        self._db.add(row)
        self._db.flush()
        return self._listing_to_core(row)

    def get_store_listing(
        self,
        game_id: str,
        store_id: str,
        product_id: str,
        condition: Optional[Condition] = None,
    ) -> Optional[StoreListing]:
        """Listing for (store, product[, condition]).

        Without a condition the highest-priced listing of the product is
        returned, which is what the store posts as its market quote.
        """
        stmt = select(StoreListingModel).where(
            StoreListingModel.game_id == game_id,
            StoreListingModel.store_id == store_id,
            StoreListingModel.product_id == product_id,
        )
        if condition is not None:
            stmt = stmt.where(StoreListingModel.condition == Condition(condition).value)
        stmt = stmt.order_by(StoreListingModel.current_price.desc())
        row = self._db.scalars(stmt).first()
        return self._listing_to_core(row) if row else None

    def update_store_listing(self, listing_id: str, **fields: Any) -> StoreListing:
        row = self._db.get(StoreListingModel, listing_id)
        if row is None:
            raise ListingNotFoundError(
                f"Listing not found: {listing_id}", {"listing_id": listing_id}
            )
        self._set_fields(row, fields)
        return self._listing_to_core(row)

    def list_store_listings(
        self, game_id: str, store_id: str, in_stock_only: bool = True
    ) -> list[StoreListing]:
        stmt = select(StoreListingModel).where(
            StoreListingModel.game_id == game_id,
            StoreListingModel.store_id == store_id,
        )
        if in_stock_only:
            stmt = stmt.where(StoreListingModel.quantity > 0)
        rows = self._db.scalars(
            stmt.order_by(StoreListingModel.product_id, StoreListingModel.condition)
        ).all()
        return [self._listing_to_core(r) for r in rows]

    # === Inventory ===

    def get_inventory_item(
        self, player_id: str, product_id: str, condition: Condition
    ) -> Optional[InventoryItem]:
        row = self._db.scalars(
            select(InventoryItemModel).where(
                InventoryItemModel.player_id == player_id,
                InventoryItemModel.product_id == product_id,
                InventoryItemModel.condition == Condition(condition).value,
            )
        ).first()
        return self._item_to_core(row) if row else None

    def get_inventory_item_by_id(self, item_id: str) -> Optional[InventoryItem]:
        row = self._db.get(InventoryItemModel, item_id)
        return self._item_to_core(row) if row else None

    def list_inventory(self, player_id: str) -> list[InventoryItem]:
        rows = self._db.scalars(
            select(InventoryItemModel)
            .where(InventoryItemModel.player_id == player_id)
            .order_by(InventoryItemModel.product_id, InventoryItemModel.condition)
        ).all()
        return [self._item_to_core(r) for r in rows]

    def create_inventory_item(
        self, item: InventoryItem, hour: int | None = None
    ) -> InventoryItem:
        row = InventoryItemModel(
            item_id=item.item_id,
            player_id=item.player_id,
            product_id=item.product_id,
            condition=Condition(item.condition).value,
            quantity=item.quantity,
            purchase_price=item.purchase_price,
            acquired_hour=hour,
        )
        self._db.add(row)
        self._db.flush()
        return self._item_to_core(row)

    def update_inventory_item(self, item_id: str, **fields: Any) -> InventoryItem:
        row = self._db.get(InventoryItemModel, item_id)
        if row is None:
            raise ItemNotFoundError(f"Item not found: {item_id}", {"item_id": item_id})
        self._set_fields(row, fields)
        return self._item_to_core(row)

    def delete_inventory_item(self, item_id: str) -> None:
        row = self._db.get(InventoryItemModel, item_id)
        if row is None:
            raise ItemNotFoundError(f"Item not found: {item_id}", {"item_id": item_id})
        self._db.delete(row)
        self._db.flush()

    # === Transaction log ===

    def append_transaction(self, record: TransactionRecord) -> None:
        self._db.add(
            TransactionModel(
                game_id=record.game_id,
                player_id=record.player_id,
                product_id=record.product_id,
                store_id=record.store_id,
                transaction_type=TransactionType(record.transaction_type).value,
                quantity=record.quantity,
                unit_price=record.unit_price,
                condition=Condition(record.condition).value if record.condition else None,
                hour=record.hour,
            )
        )
        self._db.flush()

    def most_recent_purchase(
        self, player_id: str, product_id: str
    ) -> Optional[PurchaseRecord]:
        row = self._db.scalars(
            select(TransactionModel)
            .where(
                TransactionModel.player_id == player_id,
                TransactionModel.product_id == product_id,
                TransactionModel.transaction_type == TransactionType.BUY.value,
            )
            .order_by(TransactionModel.id.desc())
            .limit(1)
        ).first()
        if row is None or row.store_id is None:
            return None
        return PurchaseRecord(
            store_id=row.store_id, unit_price=row.unit_price, hour=row.hour
        )

    def list_transactions(self, player_id: str) -> list[TransactionRecord]:
        rows = self._db.scalars(
            select(TransactionModel)
            .where(TransactionModel.player_id == player_id)
            .order_by(TransactionModel.id)
        ).all()
        return [
            TransactionRecord(
                game_id=r.game_id,
                player_id=r.player_id,
                transaction_type=TransactionType(r.transaction_type),
                quantity=r.quantity,
                unit_price=r.unit_price,
                hour=r.hour,
                product_id=r.product_id,
                store_id=r.store_id,
                condition=Condition(r.condition) if r.condition else None,
            )
            for r in rows
        ]

    # === Reference data (cached) ===

    def get_product(self, product_id: str) -> Optional[Product]:
        def load() -> Optional[Product]:
            row = self._db.get(ProductModel, product_id)
            return self._product_to_core(row) if row else None

        return maybe_cached(self._cache, ("product", product_id), load)

    def get_store(self, store_id: str) -> Optional[Store]:
        def load() -> Optional[Store]:
            row = self._db.get(StoreModel, store_id)
            return self._store_to_core(row) if row else None

        return maybe_cached(self._cache, ("store", store_id), load)

    def list_stores(self, borough_id: Optional[str] = None) -> list[Store]:
        def load() -> list[Store]:
            stmt = select(StoreModel).order_by(StoreModel.store_id)
            if borough_id is not None:
                stmt = stmt.where(StoreModel.borough_id == borough_id)
            return [self._store_to_core(r) for r in self._db.scalars(stmt).all()]

        return maybe_cached(self._cache, ("stores", borough_id), load)

    def get_borough(self, borough_id: str) -> Optional[Borough]:
        def load() -> Optional[Borough]:
            row = self._db.get(BoroughModel, borough_id)
            return self._borough_to_core(row) if row else None

        return maybe_cached(self._cache, ("borough", borough_id), load)

    def get_borough_by_name(self, name: str) -> Optional[Borough]:
        for borough in self.list_boroughs():
            if borough.name == name:
                return borough
        return None

    def list_boroughs(self) -> list[Borough]:
        def load() -> list[Borough]:
            rows = self._db.scalars(
                select(BoroughModel).order_by(BoroughModel.name)
            ).all()
            return [self._borough_to_core(r) for r in rows]

        return maybe_cached(self._cache, ("boroughs",), load)

    def list_distances(self) -> list[BoroughDistance]:
        def load() -> list[BoroughDistance]:
            rows = self._db.scalars(select(BoroughDistanceModel)).all()
            return [
                BoroughDistance(
                    from_borough_id=r.from_borough_id,
                    to_borough_id=r.to_borough_id,
                    walking_time=r.walking_time,
                    bike_time=r.bike_time,
                    subway_time=r.subway_time,
                    taxi_time=r.taxi_time,
                    taxi_cost=r.taxi_cost,
                )
                for r in rows
            ]

        return maybe_cached(self._cache, ("distances",), load)

    def get_transport_method(self, transport_id: str) -> Optional[TransportMethod]:
        for method in self.list_transport_methods():
            if method.transport_id == transport_id:
                return method
        return None

    def list_transport_methods(self) -> list[TransportMethod]:
        def load() -> list[TransportMethod]:
            rows = self._db.scalars(
                select(TransportMethodModel).order_by(
                    TransportMethodModel.speed_factor
                )
            ).all()
            return [
                TransportMethod(
                    transport_id=r.transport_id,
                    name=r.name,
                    base_cost=r.base_cost,
                    speed_factor=r.speed_factor,
                )
                for r in rows
            ]

        return maybe_cached(self._cache, ("transport_methods",), load)

    def has_reference_data(self) -> bool:
        return self._db.scalars(select(BoroughModel.borough_id).limit(1)).first() is not None

    def add_reference_data(self, data: dict[str, list[dict[str, Any]]]) -> int:
        """Insert seed reference rows that do not exist yet. Returns rows added.

        Keys: boroughs, stores, products, transportation_methods,
        borough_distances. Invalidates the whole reference cache.
        """
        count = 0
        simple = (
            ("boroughs", BoroughModel, "borough_id"),
            ("transportation_methods", TransportMethodModel, "transport_id"),
            ("stores", StoreModel, "store_id"),
            ("products", ProductModel, "product_id"),
        )
        for key, model, pk in simple:
            for raw in data.get(key, []):
                if self._db.get(model, raw[pk]) is None:
                    self._db.add(model(**_money_fields(raw)))
                    count += 1
            self._db.flush()

        for raw in data.get("borough_distances", []):
            exists = self._db.scalars(
                select(BoroughDistanceModel).where(
                    BoroughDistanceModel.from_borough_id == raw["from_borough_id"],
                    BoroughDistanceModel.to_borough_id == raw["to_borough_id"],
                )
            ).first()
            if exists is None:
                self._db.add(BoroughDistanceModel(**_money_fields(raw)))
                count += 1
        self._db.flush()

        if self._cache is not None:
            self._cache.clear()
        logger.info("Added %d reference rows", count)
        return count

    # === ORM -> Core ===

    def _game_to_core(self, row: GameModel) -> GameState:
        return GameState(
            game_id=row.game_id,
            name=row.name,
            status=GameStatus(row.status),
            current_hour=row.current_hour,
            max_hours=row.max_hours,
        )

    def _player_to_core(self, row: PlayerModel) -> PlayerState:
        return PlayerState(
            player_id=row.player_id,
            game_id=row.game_id,
            username=row.username,
            cash=Decimal(row.cash),
            loan_amount=Decimal(row.loan_amount),
            inventory_capacity=row.inventory_capacity,
            current_borough_id=row.current_borough_id,
            actions_used_this_hour=row.actions_used_this_hour or 0,
            actions_overflow=row.actions_overflow or 0,
            turn_completed=bool(row.turn_completed),
            active=bool(row.active),
        )

    def _listing_to_core(self, row: StoreListingModel) -> StoreListing:
        return StoreListing(
            listing_id=row.listing_id,
            game_id=row.game_id,
            store_id=row.store_id,
            product_id=row.product_id,
            condition=Condition(row.condition),
            quantity=row.quantity,
            current_price=Decimal(row.current_price),
        )

    def _item_to_core(self, row: InventoryItemModel) -> InventoryItem:
        return InventoryItem(
            item_id=row.item_id,
            player_id=row.player_id,
            product_id=row.product_id,
            condition=Condition(row.condition),
            quantity=row.quantity,
            purchase_price=Decimal(row.purchase_price),
        )

    def _product_to_core(self, row: ProductModel) -> Product:
        return Product(
            product_id=row.product_id,
            name=row.name,
            base_price=Decimal(row.base_price),
            genre=row.genre,
            artist=row.artist,
            year=row.year,
            rarity=row.rarity,
        )

    def _store_to_core(self, row: StoreModel) -> Store:
        return Store(
            store_id=row.store_id,
            name=row.name,
            borough_id=row.borough_id,
            specialty_genre=row.specialty_genre,
            open_hour=row.open_hour,
            close_hour=row.close_hour,
        )

    def _borough_to_core(self, row: BoroughModel) -> Borough:
        return Borough(
            borough_id=row.borough_id,
            name=row.name,
            price_modifier=(
                Decimal(row.price_modifier) if row.price_modifier is not None else None
            ),
        )


_MONEY_KEYS = ("base_price", "base_cost", "taxi_cost", "price_modifier")


def _money_fields(raw: dict[str, Any]) -> dict[str, Any]:
    """JSON numbers -> Decimal for Numeric columns (via str to keep cents exact)."""
    out = dict(raw)
    for key in _MONEY_KEYS:
        if out.get(key) is not None:
            out[key] = Decimal(str(out[key]))
    return out
