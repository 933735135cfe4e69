"""MarketService integration (in-memory SQLite + EventBus)"""

from decimal import Decimal

import pytest

from src.core.errors import (
    CapacityExceededError,
    DuplicateConditionError,
    GameNotActiveError,
    InsufficientFundsError,
    ItemNotFoundError,
    ListingNotFoundError,
    NotAtStoreError,
    OutOfStockError,
    PriceExceedsCapError,
    PriceMismatchError,
    StoreClosedError,
    TurnCompletedError,
    ValidationError,
)
from src.core.event_types import EventTypes
from src.core.market.models import Condition, TradeSide, TransactionType
from src.db.repository import GameRepository
from src.services.market_service import QuoteRequest


@pytest.fixture()
def started(services):
    """Active 24-hour game with host alice in Downtown, at midnight."""
    game_service, market, turns = services
    game, alice = game_service.create_game("alice", max_hours=24)
    game_service.start_game(game.game_id)
    return game, alice, market, turns


def _repo(db_session) -> GameRepository:
    return GameRepository(db_session)


class TestQuote:
    def test_buy_quote_matches_settlement(self, started):
        game, alice, market, _ = started
        quote = market.quote_price(
            QuoteRequest(alice.player_id, "downtown_vinyl", "kind_of_blue", Condition.MINT)
        )
        item = market.buy(alice.player_id, "downtown_vinyl", "kind_of_blue", Condition.MINT)
        assert quote.price == item.purchase_price == Decimal("30.00")

    def test_quote_writes_nothing(self, started, db_session):
        game, alice, market, _ = started
        market.quote_price(
            QuoteRequest(
                alice.player_id,
                "downtown_vinyl",
                "kind_of_blue",
                Condition.MINT,
                TradeSide.SELL,
            )
        )
        assert _repo(db_session).list_transactions(alice.player_id) == []

    def test_unknown_condition(self, started):
        _, alice, market, _ = started
        with pytest.raises(ValidationError):
            market.quote_price(
                QuoteRequest(alice.player_id, "downtown_vinyl", "kind_of_blue", "Shiny")
            )

    def test_catalog_lists_in_stock_with_buy_price(self, started):
        _, alice, market, _ = started
        entries = market.store_catalog(alice.player_id, "downtown_vinyl")
        by_key = {(e.listing.product_id, e.listing.condition): e for e in entries}
        assert by_key[("kind_of_blue", Condition.MINT)].quote.price == Decimal("30.00")
        assert by_key[("rumours", Condition.POOR)].quote.price == Decimal("9.00")


class TestBuy:
    def test_scenario_mint_record_for_thirty(self, started, db_session):
        game, alice, market, _ = started
        item = market.buy(alice.player_id, "downtown_vinyl", "kind_of_blue", Condition.MINT)

        repo = _repo(db_session)
        assert repo.get_player(alice.player_id).cash == Decimal("70.00")
        assert item.quantity == 1
        assert item.condition is Condition.MINT
        listing = repo.get_store_listing(
            game.game_id, "downtown_vinyl", "kind_of_blue", Condition.MINT
        )
        assert listing.quantity == 2
        (tx,) = repo.list_transactions(alice.player_id)
        assert tx.transaction_type is TransactionType.BUY
        assert tx.unit_price == Decimal("30.00")
        assert tx.hour == 24

    def test_expected_price_matching_settlement(self, started, db_session):
        _, alice, market, _ = started
        item = market.buy(
            alice.player_id,
            "downtown_vinyl",
            "kind_of_blue",
            Condition.MINT,
            expected_price=Decimal("30.00"),
        )
        assert item.purchase_price == Decimal("30.00")

    @pytest.mark.parametrize("expected", ["25.00", "30.01"])
    def test_stale_expected_price_aborts(self, started, db_session, expected):
        game, alice, market, _ = started
        with pytest.raises(PriceMismatchError) as exc:
            market.buy(
                alice.player_id,
                "downtown_vinyl",
                "kind_of_blue",
                Condition.MINT,
                expected_price=Decimal(expected),
            )
        assert exc.value.details["settled"] == "30.00"
        repo = _repo(db_session)
        assert repo.get_player(alice.player_id).cash == Decimal("100.00")
        assert repo.list_inventory(alice.player_id) == []
        listing = repo.get_store_listing(
            game.game_id, "downtown_vinyl", "kind_of_blue", Condition.MINT
        )
        assert listing.quantity == 3

    def test_emits_record_bought(self, started, bus):
        _, alice, market, _ = started
        received = []
        bus.subscribe(EventTypes.RECORD_BOUGHT, received.append)
        market.buy(alice.player_id, "downtown_vinyl", "kind_of_blue", Condition.MINT)
        assert len(received) == 1
        assert received[0].data["price"] == "30.00"

    def test_second_copy_same_condition_refused(self, started, db_session):
        _, alice, market, _ = started
        market.buy(alice.player_id, "downtown_vinyl", "kind_of_blue", Condition.MINT)
        with pytest.raises(DuplicateConditionError):
            market.buy(alice.player_id, "downtown_vinyl", "kind_of_blue", Condition.MINT)

        repo = _repo(db_session)
        assert len(repo.list_inventory(alice.player_id)) == 1
        assert repo.get_player(alice.player_id).cash == Decimal("70.00")

    def test_other_condition_allowed(self, started, db_session):
        _, alice, market, _ = started
        market.buy(alice.player_id, "downtown_vinyl", "kind_of_blue", Condition.MINT)
        market.buy(alice.player_id, "downtown_vinyl", "kind_of_blue", Condition.GOOD)
        assert len(_repo(db_session).list_inventory(alice.player_id)) == 2

    def test_capacity(self, started, db_session):
        _, alice, market, _ = started
        repo = _repo(db_session)
        repo.update_player(alice.player_id, inventory_capacity=1)
        db_session.commit()

        market.buy(alice.player_id, "downtown_vinyl", "rumours", Condition.POOR)
        with pytest.raises(CapacityExceededError):
            market.buy(alice.player_id, "downtown_vinyl", "rumours", Condition.GOOD)
        assert sum(i.quantity for i in repo.list_inventory(alice.player_id)) == 1

    def test_insufficient_funds_leaves_state(self, started, db_session):
        game, alice, market, _ = started
        repo = _repo(db_session)
        repo.update_player(alice.player_id, cash=Decimal("29.99"))
        db_session.commit()

        with pytest.raises(InsufficientFundsError):
            market.buy(alice.player_id, "downtown_vinyl", "kind_of_blue", Condition.MINT)
        assert repo.get_player(alice.player_id).cash == Decimal("29.99")
        assert repo.list_inventory(alice.player_id) == []
        listing = repo.get_store_listing(
            game.game_id, "downtown_vinyl", "kind_of_blue", Condition.MINT
        )
        assert listing.quantity == 3

    def test_out_of_stock(self, started, services):
        game, alice, market, _ = started
        bob = services[0].join_game(game.game_id, "bob")
        market.buy(alice.player_id, "bleecker_jazz", "blue_train", Condition.MINT)
        with pytest.raises(OutOfStockError):
            market.buy(bob.player_id, "bleecker_jazz", "blue_train", Condition.MINT)

    def test_condition_not_listed(self, started):
        _, alice, market, _ = started
        with pytest.raises(ListingNotFoundError):
            market.buy(alice.player_id, "downtown_vinyl", "kind_of_blue", Condition.POOR)

    def test_store_in_other_borough(self, started):
        _, alice, market, _ = started
        with pytest.raises(NotAtStoreError):
            market.buy(alice.player_id, "brooklyn_crate", "illmatic", Condition.GOOD)

    def test_closed_store(self, started, db_session):
        _, alice, market, _ = started
        _repo(db_session).update_player(alice.player_id, current_borough_id="midtown")
        db_session.commit()
        # midnight, Midtown Classics opens at 9
        with pytest.raises(StoreClosedError):
            market.buy(
                alice.player_id, "midtown_classics", "goldberg_variations", Condition.GOOD
            )

    def test_waiting_game(self, services):
        game_service, market, _ = services
        _, alice = game_service.create_game("alice")
        with pytest.raises(GameNotActiveError):
            market.buy(alice.player_id, "downtown_vinyl", "kind_of_blue", Condition.MINT)

    def test_after_ending_turn(self, started, services):
        game, alice, market, turns = started
        services[0].join_game(game.game_id, "bob")
        turns.end_turn(alice.player_id)
        with pytest.raises(TurnCompletedError):
            market.buy(alice.player_id, "downtown_vinyl", "kind_of_blue", Condition.MINT)


class TestSell:
    def test_scenario_same_store_sell_back_capped(self, started, db_session):
        game, alice, market, _ = started
        item = market.buy(alice.player_id, "downtown_vinyl", "kind_of_blue", Condition.MINT)

        # store now posts the Mint copy far above what alice paid
        repo = _repo(db_session)
        listing = repo.get_store_listing(
            game.game_id, "downtown_vinyl", "kind_of_blue", Condition.MINT
        )
        repo.update_store_listing(listing.listing_id, current_price=Decimal("80.00"))
        db_session.commit()

        result = market.sell(alice.player_id, item.item_id, "downtown_vinyl")
        assert result.unit_price == Decimal("22.50")
        assert result.capped is True
        assert result.cash_delta == Decimal("22.50")
        assert result.cash_after == Decimal("92.50")
        assert result.remaining_quantity == 0
        assert repo.list_inventory(alice.player_id) == []

    def test_sell_back_restocks_listing(self, started, db_session):
        game, alice, market, _ = started
        item = market.buy(alice.player_id, "downtown_vinyl", "kind_of_blue", Condition.MINT)
        market.sell(alice.player_id, item.item_id, "downtown_vinyl")
        listing = _repo(db_session).get_store_listing(
            game.game_id, "downtown_vinyl", "kind_of_blue", Condition.MINT
        )
        assert listing.quantity == 3

    def test_other_store_not_capped(self, started):
        _, alice, market, _ = started
        item = market.buy(alice.player_id, "downtown_vinyl", "kind_of_blue", Condition.MINT)
        # Bleecker posts Good at 20.00 and specialises in Jazz:
        # 20 * 0.75 * 1.5 (Mint) * 1.5 (specialty)
        result = market.sell(alice.player_id, item.item_id, "bleecker_jazz")
        assert result.unit_price == Decimal("33.75")
        assert result.capped is False
        assert result.cash_after == Decimal("103.75")

    def test_sale_creates_missing_listing(self, started, db_session):
        game, alice, market, _ = started
        item = market.buy(alice.player_id, "downtown_vinyl", "kind_of_blue", Condition.MINT)
        market.sell(alice.player_id, item.item_id, "bleecker_jazz")
        listing = _repo(db_session).get_store_listing(
            game.game_id, "bleecker_jazz", "kind_of_blue", Condition.MINT
        )
        assert listing.quantity == 1
        assert listing.current_price == Decimal("30.00")

    def test_expected_price_above_settlement_aborts(self, started, db_session):
        _, alice, market, _ = started
        item = market.buy(alice.player_id, "downtown_vinyl", "kind_of_blue", Condition.MINT)
        with pytest.raises(PriceExceedsCapError):
            market.sell(
                alice.player_id,
                item.item_id,
                "downtown_vinyl",
                expected_price=Decimal("45.00"),
            )
        repo = _repo(db_session)
        assert repo.get_player(alice.player_id).cash == Decimal("70.00")
        assert len(repo.list_inventory(alice.player_id)) == 1

    def test_expected_price_below_settlement_aborts(self, started, db_session):
        _, alice, market, _ = started
        item = market.buy(alice.player_id, "downtown_vinyl", "kind_of_blue", Condition.MINT)
        with pytest.raises(PriceMismatchError):
            market.sell(
                alice.player_id,
                item.item_id,
                "downtown_vinyl",
                expected_price=Decimal("20.00"),
            )
        repo = _repo(db_session)
        assert repo.get_player(alice.player_id).cash == Decimal("70.00")
        assert len(repo.list_inventory(alice.player_id)) == 1

    def test_expected_price_equal_to_quote(self, started):
        _, alice, market, _ = started
        item = market.buy(alice.player_id, "downtown_vinyl", "kind_of_blue", Condition.MINT)
        quote = market.quote_price(
            QuoteRequest(
                alice.player_id,
                "bleecker_jazz",
                "kind_of_blue",
                Condition.MINT,
                TradeSide.SELL,
            )
        )
        result = market.sell(
            alice.player_id, item.item_id, "bleecker_jazz", expected_price=quote.price
        )
        assert result.unit_price == quote.price

    def test_item_of_another_player(self, started, services):
        game, alice, market, _ = started
        bob = services[0].join_game(game.game_id, "bob")
        item = market.buy(alice.player_id, "downtown_vinyl", "kind_of_blue", Condition.MINT)
        with pytest.raises(ItemNotFoundError):
            market.sell(bob.player_id, item.item_id, "downtown_vinyl")

    def test_unknown_item(self, started):
        _, alice, market, _ = started
        with pytest.raises(ItemNotFoundError):
            market.sell(alice.player_id, "nope", "downtown_vinyl")

    def test_emits_record_sold(self, started, bus):
        _, alice, market, _ = started
        received = []
        bus.subscribe(EventTypes.RECORD_SOLD, received.append)
        item = market.buy(alice.player_id, "downtown_vinyl", "kind_of_blue", Condition.MINT)
        market.sell(alice.player_id, item.item_id, "bleecker_jazz")
        assert [e.data["store_id"] for e in received] == ["bleecker_jazz"]

    def test_history_follows_latest_purchase(self, started):
        """Bought at Bleecker after Downtown: selling at Downtown is uncapped."""
        _, alice, market, _ = started
        first = market.buy(alice.player_id, "downtown_vinyl", "kind_of_blue", Condition.MINT)
        market.buy(alice.player_id, "bleecker_jazz", "kind_of_blue", Condition.GOOD)
        result = market.sell(alice.player_id, first.item_id, "downtown_vinyl")
        assert result.capped is False
        # Downtown posts Mint at 30.00 -> 20 * 0.75 * 1.5
        assert result.unit_price == Decimal("22.50")
