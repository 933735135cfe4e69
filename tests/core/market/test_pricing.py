"""Pricing engine: multipliers, peak window, sell reference, same-store cap"""

from __future__ import annotations

from decimal import Decimal

import pytest

from src.core.market.models import (
    Borough,
    Condition,
    Product,
    PurchaseRecord,
    Store,
    StoreListing,
    TradeSide,
)
from src.core.market.pricing import (
    CONDITION_MULTIPLIERS,
    SAME_STORE_CAP,
    is_peak_hour,
    quote,
    quote_buy_price,
    quote_sell_price,
    same_store_cap,
    specialty_matches,
)

OFF_PEAK = 24  # midnight
PEAK = 12  # noon


def _product(base: str = "20.00", genre: str = "Jazz") -> Product:
    return Product(
        product_id="kind_of_blue",
        name="Kind of Blue",
        base_price=Decimal(base),
        genre=genre,
        artist="Miles Davis",
    )


def _store(store_id: str = "s1", specialty: str | None = None) -> Store:
    return Store(store_id=store_id, name="Store", borough_id="b1", specialty_genre=specialty)


def _borough(modifier: str | None = None) -> Borough:
    return Borough(
        borough_id="b1",
        name="Downtown",
        price_modifier=Decimal(modifier) if modifier else None,
    )


def _listing(price: str, condition: Condition = Condition.MINT) -> StoreListing:
    return StoreListing(
        listing_id="l1",
        game_id="g1",
        store_id="s1",
        product_id="kind_of_blue",
        condition=condition,
        quantity=2,
        current_price=Decimal(price),
    )


class TestBuyQuote:
    @pytest.mark.parametrize(
        "condition,expected",
        [
            (Condition.MINT, "30.00"),
            (Condition.GOOD, "20.00"),
            (Condition.FAIR, "14.00"),
            (Condition.POOR, "10.00"),
        ],
    )
    def test_condition_table(self, condition, expected):
        price = quote_buy_price(_product(), condition, _store(), _borough(), OFF_PEAK)
        assert price == Decimal(expected)

    def test_mint_twenty_dollar_record_costs_thirty(self):
        q = quote(_product(), Condition.MINT, _store(), _borough(), OFF_PEAK, TradeSide.BUY)
        assert q.price == Decimal("30.00")
        assert q.reference_price == Decimal("20.00")
        assert q.capped is False

    def test_specialty_bonus(self):
        price = quote_buy_price(
            _product(), Condition.MINT, _store(specialty="Jazz"), _borough(), OFF_PEAK
        )
        assert price == Decimal("45.00")

    def test_specialty_is_case_insensitive(self):
        assert specialty_matches(_product(genre="Hip-Hop"), _store(specialty="hip-hop "))
        assert not specialty_matches(_product(genre=""), _store(specialty="Jazz"))
        assert not specialty_matches(_product(), _store(specialty=None))

    def test_borough_modifier(self):
        price = quote_buy_price(
            _product(), Condition.GOOD, _store(), _borough("0.9"), OFF_PEAK
        )
        assert price == Decimal("18.00")

    def test_no_borough_means_no_modifier(self):
        price = quote_buy_price(_product(), Condition.GOOD, _store(), None, OFF_PEAK)
        assert price == Decimal("20.00")

    def test_peak_factor(self):
        price = quote_buy_price(_product(), Condition.GOOD, _store(), _borough(), PEAK)
        assert price == Decimal("24.00")

    def test_all_factors_rounded_once(self):
        price = quote_buy_price(
            _product("19.99"),
            Condition.FAIR,
            _store(specialty="Jazz"),
            _borough("1.1"),
            PEAK,
        )
        # 19.99 * 0.7 * 1.5 * 1.1 * 1.2 = 27.70614
        assert price == Decimal("27.71")

    def test_deterministic(self):
        args = (_product(), Condition.FAIR, _store("s1", "Jazz"), _borough("1.2"), PEAK)
        assert quote(*args, TradeSide.BUY) == quote(*args, TradeSide.BUY)


class TestPeakWindow:
    @pytest.mark.parametrize("current_hour", [12, 9, 6])
    def test_noon_to_six_pm_is_peak(self, current_hour):
        assert is_peak_hour(current_hour)

    @pytest.mark.parametrize("current_hour", [24, 13, 5, 1, 0])
    def test_outside_window(self, current_hour):
        assert not is_peak_hour(current_hour)


class TestSellQuote:
    def test_no_listing_uses_base_price(self):
        price = quote_sell_price(_product(), Condition.GOOD, _store(), _borough(), OFF_PEAK)
        assert price == Decimal("15.00")

    def test_posted_price_normalised_to_good(self):
        # Mint listing at 60 -> 40 in Good terms -> 40 * 0.75 * 1.5
        price = quote_sell_price(
            _product(),
            Condition.MINT,
            _store(),
            _borough(),
            OFF_PEAK,
            posted_listing=_listing("60.00"),
        )
        assert price == Decimal("45.00")

    def test_same_store_cap(self):
        history = PurchaseRecord(store_id="s1", unit_price=Decimal("30.00"), hour=24)
        q = quote(
            _product(),
            Condition.MINT,
            _store(),
            _borough(),
            OFF_PEAK,
            TradeSide.SELL,
            history=history,
            posted_listing=_listing("60.00"),
        )
        assert q.price == Decimal("22.50")
        assert q.capped is True
        assert q.cap_price == Decimal("22.50")

    def test_different_store_not_capped(self):
        history = PurchaseRecord(store_id="other", unit_price=Decimal("30.00"), hour=24)
        q = quote(
            _product(),
            Condition.MINT,
            _store(),
            _borough(),
            OFF_PEAK,
            TradeSide.SELL,
            history=history,
            posted_listing=_listing("60.00"),
        )
        assert q.price == Decimal("45.00")
        assert q.capped is False
        assert q.cap_price is None

    def test_cap_not_flagged_when_price_already_below(self):
        history = PurchaseRecord(store_id="s1", unit_price=Decimal("100.00"), hour=24)
        q = quote(
            _product(),
            Condition.GOOD,
            _store(),
            _borough(),
            OFF_PEAK,
            TradeSide.SELL,
            history=history,
        )
        assert q.price == Decimal("15.00")
        assert q.capped is False

    def test_cap_rounds_down(self):
        history = PurchaseRecord(store_id="s1", unit_price=Decimal("30.01"), hour=24)
        assert same_store_cap(_store(), history) == Decimal("22.50")

    @pytest.mark.parametrize("condition", list(Condition))
    @pytest.mark.parametrize("current_hour", [24, 15, 12, 8, 1])
    def test_same_store_sale_never_beats_cap(self, condition, current_hour):
        paid = Decimal("33.33")
        history = PurchaseRecord(store_id="s1", unit_price=paid, hour=24)
        price = quote_sell_price(
            _product("50.00"),
            condition,
            _store(specialty="Jazz"),
            _borough("1.3"),
            current_hour,
            history=history,
            posted_listing=_listing("99.00"),
        )
        assert price <= paid * SAME_STORE_CAP


class TestCanonicalTable:
    def test_single_table(self):
        assert CONDITION_MULTIPLIERS == {
            Condition.MINT: Decimal("1.5"),
            Condition.GOOD: Decimal("1.0"),
            Condition.FAIR: Decimal("0.7"),
            Condition.POOR: Decimal("0.5"),
        }
