from __future__ import annotations

from dataclasses import replace
from datetime import date

import pytest

from ordercore import Settings, rupees
from ordercore import pricing as P
from ordercore.models import Offer, OfferType, Variant

from _support import PHONE, expect_ok, fixed_clock

TODAY = date(2024, 5, 23)


def variant(price: int, sale: int = 0) -> Variant:
    return Variant(id="v", color="#000", color_name="Black", stock=1, price=price, sale_price=sale)


def offer(kind: OfferType, target: str, pct: int, **kw) -> Offer:
    fields = dict(
        id=f"{kind.value}-{target}-{pct}",
        name="Summer",
        type=kind,
        target_id=target,
        discount_percent=pct,
        start_date=date(2024, 5, 1),
        end_date=date(2024, 5, 31),
    )
    fields.update(kw)
    return Offer(**fields)


# ═══════════════════════════════════════════════════════════════════════════════
# Unit price
# ═══════════════════════════════════════════════════════════════════════════════


@pytest.mark.parametrize(
    ("price", "sale", "product_pct", "category_pct", "expected"),
    [
        (rupees(1000), 0, 0, 0, rupees(1000)),
        (rupees(1000), rupees(900), 0, 0, rupees(900)),
        (rupees(1000), rupees(900), 15, 0, rupees(850)),
        (rupees(1000), rupees(800), 15, 10, rupees(800)),
        (rupees(1000), 0, 10, 25, rupees(750)),
        (rupees(999), 0, 15, 0, rupees(849)),
        (rupees(999), 0, 50, 0, rupees(500)),
    ],
)
def test_effective_unit_price(price, sale, product_pct, category_pct, expected):
    assert P.effective_unit_price(variant(price, sale), product_pct, category_pct) == expected


def test_best_offer_discounts_only_counts_live_matching_offers():
    offers = [
        offer(OfferType.PRODUCT, PHONE.id, 10),
        offer(OfferType.PRODUCT, PHONE.id, 20, active=False),
        offer(OfferType.PRODUCT, "p-other", 40),
        offer(OfferType.CATEGORY, PHONE.category_id, 15),
        offer(OfferType.CATEGORY, PHONE.category_id, 30, end_date=date(2024, 5, 22)),
    ]

    assert P.best_offer_discounts(offers, PHONE, TODAY) == (10, 15)


async def test_price_book_applies_store_offers(store):
    expect_ok(await store.save_offer(offer(OfferType.CATEGORY, PHONE.category_id, 25)))
    book = P.PriceBook(store, fixed_clock)

    price = expect_ok(await book.unit_price(PHONE, PHONE.variants[0]))

    assert price == rupees(1500)


# ═══════════════════════════════════════════════════════════════════════════════
# Totals & proration
# ═══════════════════════════════════════════════════════════════════════════════


def test_totals_cap_discount_and_skip_shipping_for_empty_cart():
    settings = Settings()

    assert P.compute_totals(rupees(500), rupees(800), settings).discount == rupees(500)
    empty = P.compute_totals(0, 0, settings)
    assert empty.shipping_fee == 0
    assert empty.total == 0


def test_tax_rounds_half_up():
    assert P.tax_for(1, Settings()) == 0
    assert P.tax_for(5, Settings().with_tax_percent(10)) == 1


def test_prorate_uses_placement_values():
    totals = P.compute_totals(rupees(4000), rupees(400), Settings())
    pricing = P.pricing_at_placement(totals)

    share = P.prorate(rupees(1000), pricing)

    assert share.tax == rupees(120)
    assert share.discount == rupees(100)
    assert share.refund == rupees(1020)


def test_proration_never_exceeds_the_amount_paid():
    settings = Settings()
    subtotals = [rupees(333), rupees(333), rupees(334)]
    pricing = P.pricing_at_placement(P.compute_totals(sum(subtotals), rupees(99), settings))

    refunds = sum(P.prorate(s, pricing).refund for s in subtotals)

    assert abs(refunds - (pricing.placed_total - pricing.shipping_fee)) <= len(subtotals)


def test_reprice_without_last_line_leaves_shipping():
    settings = Settings()
    pricing = P.pricing_at_placement(P.compute_totals(rupees(2000), rupees(200), settings))
    share = P.prorate(rupees(2000), pricing)

    after = P.reprice_without(pricing, share, settings, last_line=True)

    assert (after.subtotal, after.tax, after.discount) == (0, 0, 0)
    assert after.final_amount == rupees(100)
    assert after.placed_total == pricing.placed_total


def test_refundable_tracks_refunds():
    pricing = P.pricing_at_placement(P.compute_totals(rupees(1000), 0, Settings()))

    assert pricing.refundable == rupees(1220)
    assert replace(pricing, refunded=rupees(1220)).refundable == 0
