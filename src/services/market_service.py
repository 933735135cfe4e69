"""Market Service — quotes, buy and sell settlement

The price a player is shown and the price settled are both produced by
src.core.market.pricing.quote. A sell whose client-side expected price is
above the settled price is refused; balances are never patched afterwards.
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Optional

from sqlalchemy.orm import Session

from src.core.cache import TTLCache
from src.core.errors import (
    BoroughNotFoundError,
    ItemNotFoundError,
    ListingNotFoundError,
    NotAtStoreError,
    ProductNotFoundError,
    StoreClosedError,
    StoreNotFoundError,
)
from src.core.event_bus import EventBus
from src.core.event_types import EventTypes
from src.core.logging import get_logger
from src.core.market.clock import is_store_open
from src.core.market.ledger import (
    check_acquire,
    check_expected_price,
    check_funds,
    check_stock,
)
from src.core.market.models import (
    Borough,
    Condition,
    GameState,
    InventoryItem,
    PlayerState,
    PriceQuote,
    Product,
    Store,
    StoreListing,
    TradeSide,
    TransactionRecord,
    TransactionType,
)
from src.core.market.pricing import condition_multiplier, quote, to_money
from src.db.repository import GameRepository, new_id
from src.services.common import emit_all, load_actor, parse_condition

logger = get_logger(__name__)


@dataclass(frozen=True)
class QuoteRequest:
    player_id: str
    store_id: str
    product_id: str
    condition: Condition
    side: TradeSide = TradeSide.BUY


@dataclass(frozen=True)
class SaleResult:
    item_id: str
    product_id: str
    condition: Condition
    unit_price: Decimal
    cash_delta: Decimal
    cash_after: Decimal
    remaining_quantity: int
    capped: bool


@dataclass(frozen=True)
class CatalogEntry:
    listing: StoreListing
    quote: PriceQuote


class MarketService:
    """Store catalog, price quotes, buy/sell"""

    def __init__(
        self,
        db: Session,
        event_bus: EventBus,
        cache: Optional[TTLCache] = None,
    ):
        self._db = db
        self._bus = event_bus
        self._repo = GameRepository(db, cache)

    # === Lookups ===

    def _product(self, product_id: str) -> Product:
        product = self._repo.get_product(product_id)
        if product is None:
            raise ProductNotFoundError(
                f"Product not found: {product_id}", {"product_id": product_id}
            )
        return product

    def _store(self, store_id: str) -> tuple[Store, Borough]:
        store = self._repo.get_store(store_id)
        if store is None:
            raise StoreNotFoundError(
                f"Store not found: {store_id}", {"store_id": store_id}
            )
        borough = self._repo.get_borough(store.borough_id)
        if borough is None:
            raise BoroughNotFoundError(
                f"Borough not found: {store.borough_id}",
                {"borough_id": store.borough_id},
            )
        return store, borough

    def _check_store_access(
        self, store: Store, game: GameState, player: PlayerState
    ) -> None:
        if player.current_borough_id != store.borough_id:
            raise NotAtStoreError(
                f"{store.name} is not in your current borough",
                {
                    "store_id": store.store_id,
                    "store_borough_id": store.borough_id,
                    "current_borough_id": player.current_borough_id,
                },
            )
        if not is_store_open(store, game.current_hour):
            raise StoreClosedError(
                f"{store.name} is closed",
                {
                    "store_id": store.store_id,
                    "open_hour": store.open_hour,
                    "close_hour": store.close_hour,
                },
            )

    def _sell_quote(
        self,
        player_id: str,
        game: GameState,
        product: Product,
        condition: Condition,
        store: Store,
        borough: Borough,
    ) -> PriceQuote:
        history = self._repo.most_recent_purchase(player_id, product.product_id)
        posted = self._repo.get_store_listing(
            game.game_id, store.store_id, product.product_id
        )
        return quote(
            product,
            condition,
            store,
            borough,
            game.current_hour,
            TradeSide.SELL,
            history=history,
            posted_listing=posted,
        )

    # === Quotes ===

    def quote_price(self, request: QuoteRequest) -> PriceQuote:
        """Price for one unit, exactly as buy()/sell() would settle it now."""
        condition = parse_condition(request.condition)
        player = self._repo.get_player(request.player_id)
        game = self._repo.get_game(player.game_id)
        product = self._product(request.product_id)
        store, borough = self._store(request.store_id)

        if TradeSide(request.side) is TradeSide.SELL:
            return self._sell_quote(
                player.player_id, game, product, condition, store, borough
            )
        return quote(
            product, condition, store, borough, game.current_hour, TradeSide.BUY
        )

    def store_catalog(self, player_id: str, store_id: str) -> list[CatalogEntry]:
        """In-stock listings of a store with their current buy quotes."""
        player = self._repo.get_player(player_id)
        game = self._repo.get_game(player.game_id)
        store, borough = self._store(store_id)

        entries = []
        for listing in self._repo.list_store_listings(game.game_id, store_id):
            product = self._product(listing.product_id)
            entries.append(
                CatalogEntry(
                    listing=listing,
                    quote=quote(
                        product,
                        listing.condition,
                        store,
                        borough,
                        game.current_hour,
                        TradeSide.BUY,
                    ),
                )
            )
        return entries

    # === Buy ===

    def buy(
        self,
        player_id: str,
        store_id: str,
        product_id: str,
        condition: Condition,
        expected_price: Optional[Decimal] = None,
    ) -> InventoryItem:
        """Buy one unit from the store's listing in that condition.

        Every check runs before any write; a refusal leaves cash, inventory
        and stock untouched. An expected_price that differs from the price
        that would settle aborts with PriceMismatchError.
        """
        condition = parse_condition(condition)

        with self._repo.transaction() as repo:
            player, game = load_actor(repo, player_id)
            product = self._product(product_id)
            store, borough = self._store(store_id)
            self._check_store_access(store, game, player)

            listing = repo.get_store_listing(
                game.game_id, store_id, product_id, condition
            )
            if listing is None:
                raise ListingNotFoundError(
                    f"{store.name} does not list {product.name} ({condition.value})",
                    {
                        "store_id": store_id,
                        "product_id": product_id,
                        "condition": condition.value,
                    },
                )
            check_stock(listing)
            check_acquire(player, repo.list_inventory(player_id), product_id, condition)

            price = quote(
                product, condition, store, borough, game.current_hour, TradeSide.BUY
            ).price
            check_expected_price(expected_price, price, TradeSide.BUY)
            check_funds(player, price)

            repo.update_store_listing(
                listing.listing_id,
                quantity=listing.quantity - 1,
                last_updated_hour=game.current_hour,
            )
            player = repo.update_player(player_id, cash=player.cash - price)
            item = repo.create_inventory_item(
                InventoryItem(
                    item_id=new_id(),
                    player_id=player_id,
                    product_id=product_id,
                    condition=condition,
                    quantity=1,
                    purchase_price=price,
                ),
                hour=game.current_hour,
            )
            repo.append_transaction(
                TransactionRecord(
                    game_id=game.game_id,
                    player_id=player_id,
                    transaction_type=TransactionType.BUY,
                    quantity=1,
                    unit_price=price,
                    hour=game.current_hour,
                    product_id=product_id,
                    store_id=store_id,
                    condition=condition,
                )
            )

        logger.info(
            "Player %s bought %s (%s) at %s for %s, cash now %s",
            player_id,
            product_id,
            condition.value,
            store_id,
            price,
            player.cash,
        )
        emit_all(
            self._bus,
            "market_service",
            [
                (
                    EventTypes.RECORD_BOUGHT,
                    {
                        "game_id": game.game_id,
                        "player_id": player_id,
                        "store_id": store_id,
                        "product_id": product_id,
                        "condition": condition.value,
                        "price": str(price),
                    },
                )
            ],
        )
        return item

    # === Sell ===

    def sell(
        self,
        player_id: str,
        inventory_item_id: str,
        store_id: str,
        expected_price: Optional[Decimal] = None,
    ) -> SaleResult:
        """Sell one unit of an owned item to a store.

        expected_price is what the client displayed. Any value other than
        the settlement price aborts the sale (PriceExceedsCapError when it
        asks for more than the store pays, PriceMismatchError otherwise).
        """
        with self._repo.transaction() as repo:
            player, game = load_actor(repo, player_id)
            item = repo.get_inventory_item_by_id(inventory_item_id)
            if item is None or item.player_id != player_id:
                raise ItemNotFoundError(
                    f"Item not in inventory: {inventory_item_id}",
                    {"item_id": inventory_item_id},
                )
            product = self._product(item.product_id)
            store, borough = self._store(store_id)
            self._check_store_access(store, game, player)

            settled = self._sell_quote(
                player_id, game, product, item.condition, store, borough
            )
            check_expected_price(expected_price, settled.price, TradeSide.SELL)
            price = settled.price

            player = repo.update_player(player_id, cash=player.cash + price)
            remaining = item.quantity - 1
            if remaining > 0:
                repo.update_inventory_item(item.item_id, quantity=remaining)
            else:
                repo.delete_inventory_item(item.item_id)

            listing = repo.get_store_listing(
                game.game_id, store_id, item.product_id, item.condition
            )
            if listing is not None:
                repo.update_store_listing(
                    listing.listing_id,
                    quantity=listing.quantity + 1,
                    last_updated_hour=game.current_hour,
                )
            else:
                repo.create_store_listing(
                    StoreListing(
                        listing_id=new_id(),
                        game_id=game.game_id,
                        store_id=store_id,
                        product_id=item.product_id,
                        condition=item.condition,
                        quantity=1,
                        current_price=to_money(
                            settled.reference_price
                            * condition_multiplier(item.condition)
                        ),
                    ),
                    hour=game.current_hour,
                )

            repo.append_transaction(
                TransactionRecord(
                    game_id=game.game_id,
                    player_id=player_id,
                    transaction_type=TransactionType.SELL,
                    quantity=1,
                    unit_price=price,
                    hour=game.current_hour,
                    product_id=item.product_id,
                    store_id=store_id,
                    condition=item.condition,
                )
            )

        logger.info(
            "Player %s sold %s (%s) at %s for %s%s",
            player_id,
            item.product_id,
            item.condition.value,
            store_id,
            price,
            " (same-store cap)" if settled.capped else "",
        )
        emit_all(
            self._bus,
            "market_service",
            [
                (
                    EventTypes.RECORD_SOLD,
                    {
                        "game_id": game.game_id,
                        "player_id": player_id,
                        "store_id": store_id,
                        "product_id": item.product_id,
                        "condition": item.condition.value,
                        "price": str(price),
                    },
                )
            ],
        )
        return SaleResult(
            item_id=item.item_id,
            product_id=item.product_id,
            condition=item.condition,
            unit_price=price,
            cash_delta=price,
            cash_after=player.cash,
            remaining_quantity=remaining,
            capped=settled.capped,
        )
