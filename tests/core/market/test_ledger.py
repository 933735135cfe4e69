"""Inventory ledger checks"""

from decimal import Decimal

import pytest

from src.core.errors import (
    CapacityExceededError,
    DuplicateConditionError,
    InsufficientFundsError,
    OutOfStockError,
    PriceExceedsCapError,
    PriceMismatchError,
)
from src.core.market.ledger import (
    can_acquire,
    check_acquire,
    check_expected_price,
    check_funds,
    check_stock,
    inventory_value,
    net_worth,
    total_units,
)
from src.core.market.models import (
    Condition,
    InventoryItem,
    PlayerState,
    StoreListing,
    TradeSide,
)


def _player(cash: str = "100.00", capacity: int = 3, loan: str = "100.00") -> PlayerState:
    return PlayerState(
        player_id="p1",
        game_id="g1",
        username="alice",
        cash=Decimal(cash),
        loan_amount=Decimal(loan),
        inventory_capacity=capacity,
        current_borough_id="downtown",
    )


def _item(
    product_id: str = "kind_of_blue",
    condition: Condition = Condition.MINT,
    quantity: int = 1,
    price: str = "30.00",
) -> InventoryItem:
    return InventoryItem(
        item_id=f"{product_id}-{condition.value}",
        player_id="p1",
        product_id=product_id,
        condition=condition,
        quantity=quantity,
        purchase_price=Decimal(price),
    )


class TestAcquire:
    def test_empty_inventory_can_acquire(self):
        assert can_acquire(_player(), [], "kind_of_blue", Condition.MINT)

    def test_same_product_same_condition_refused(self):
        items = [_item()]
        assert not can_acquire(_player(), items, "kind_of_blue", Condition.MINT)
        with pytest.raises(DuplicateConditionError) as exc:
            check_acquire(_player(), items, "kind_of_blue", Condition.MINT)
        assert exc.value.details["condition"] == "Mint"

    def test_same_product_other_condition_allowed(self):
        items = [_item()]
        assert can_acquire(_player(), items, "kind_of_blue", Condition.GOOD)
        check_acquire(_player(), items, "kind_of_blue", Condition.GOOD)

    def test_capacity_counts_units(self):
        items = [_item("a", quantity=2), _item("b")]
        assert total_units(items) == 3
        assert not can_acquire(_player(capacity=3), items, "c", Condition.GOOD)
        with pytest.raises(CapacityExceededError):
            check_acquire(_player(capacity=3), items, "c", Condition.GOOD)

    def test_last_free_slot(self):
        items = [_item("a"), _item("b")]
        check_acquire(_player(capacity=3), items, "c", Condition.POOR)

    def test_duplicate_reported_before_capacity(self):
        items = [_item("a"), _item("b"), _item("kind_of_blue")]
        with pytest.raises(DuplicateConditionError):
            check_acquire(_player(capacity=3), items, "kind_of_blue", Condition.MINT)


class TestFundsAndStock:
    def test_exact_cash_is_enough(self):
        check_funds(_player(cash="30.00"), Decimal("30.00"))

    def test_short_by_a_cent(self):
        with pytest.raises(InsufficientFundsError):
            check_funds(_player(cash="29.99"), Decimal("30.00"))

    def test_out_of_stock(self):
        listing = StoreListing(
            listing_id="l1",
            game_id="g1",
            store_id="s1",
            product_id="kind_of_blue",
            condition=Condition.MINT,
            quantity=0,
            current_price=Decimal("30.00"),
        )
        with pytest.raises(OutOfStockError):
            check_stock(listing)


class TestExpectedPrice:
    def test_no_expectation(self):
        check_expected_price(None, Decimal("22.50"))

    def test_exact_match(self):
        check_expected_price(Decimal("22.50"), Decimal("22.50"))
        check_expected_price(Decimal("30.00"), Decimal("30.00"), TradeSide.BUY)

    def test_lower_expectation_is_a_stale_quote(self):
        with pytest.raises(PriceMismatchError) as exc:
            check_expected_price(Decimal("20.00"), Decimal("22.50"))
        assert exc.value.details == {
            "expected": "20.00",
            "settled": "22.50",
            "side": "sell",
        }

    def test_higher_expectation_refused(self):
        with pytest.raises(PriceExceedsCapError) as exc:
            check_expected_price(Decimal("45.00"), Decimal("22.50"))
        assert exc.value.details["expected"] == "45.00"
        assert exc.value.details["settled"] == "22.50"

    @pytest.mark.parametrize("expected", ["29.99", "30.01"])
    def test_buy_mismatch_either_way(self, expected):
        with pytest.raises(PriceMismatchError):
            check_expected_price(Decimal(expected), Decimal("30.00"), TradeSide.BUY)

    def test_sub_cent_expectation_never_matches(self):
        with pytest.raises(PriceMismatchError):
            check_expected_price(Decimal("22.499"), Decimal("22.50"))


class TestNetWorth:
    def test_holdings_at_purchase_price(self):
        items = [_item(price="30.00"), _item("rumours", Condition.GOOD, 2, "18.00")]
        assert inventory_value(items) == Decimal("66.00")

    def test_cash_minus_loan_plus_holdings(self):
        player = _player(cash="70.00", loan="100.00")
        assert net_worth(player, [_item(price="30.00")]) == Decimal("0.00")

    def test_empty_inventory(self):
        assert net_worth(_player(), []) == Decimal("0.00")
