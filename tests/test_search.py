#!/usr/bin/env python3
"""
Test suite for listing search filters and the browse feed.
"""
import re
from datetime import timedelta

import pytest

from core.models.listing import LISTINGS_COLLECTION
from core.search import SearchParams, SearchService, build_listing_filter, contains, sort_spec
from fakes import NOW, make_listing


def test_filter_always_restricts_to_active():
    assert build_listing_filter(SearchParams()) == {"status": "active"}


def test_filter_translates_ranges_and_location():
    query = build_listing_filter(
        SearchParams(make="toy", min_price=10000, max_year=2022, max_mileage=50000, city="Austin", featured=True)
    )
    assert query["make"] == {"$regex": "toy", "$options": "i"}
    assert query["price"] == {"$gte": 10000}
    assert query["year"] == {"$lte": 2022}
    assert query["mileage"] == {"$lte": 50000}
    assert query["location.city"] == contains("Austin")
    assert query["featured"] is True
    assert "urgent" not in query


def test_free_text_is_escaped():
    pattern = contains("a+b (x)")["$regex"]
    assert re.fullmatch(pattern, "a+b (x)")
    assert not re.search(pattern, "aab x")


def test_sort_spec_falls_back_on_unknown_field():
    assert sort_spec("price", "asc") == [("price", 1)]
    assert sort_spec("password_hash") == [("listed_at", -1)]


@pytest.mark.asyncio
async def test_browse_filters_and_paginates(store):
    print("\n=== Test: Browse ===")
    store.seed(
        LISTINGS_COLLECTION,
        make_listing(_id="cheap", price=9000, listed_at=NOW - timedelta(days=1)).to_dict_for_db(),
        make_listing(_id="mid", price=18000, listed_at=NOW - timedelta(days=2)).to_dict_for_db(),
        make_listing(_id="suv", price=32000, body_type="suv", make="Honda", model="CR-V").to_dict_for_db(),
        make_listing(_id="gone", price=15000, status="sold", sold_at=NOW).to_dict_for_db(),
    )
    service = SearchService(store)

    result = await service.browse(SearchParams(max_price=20000), page=1, limit=1)
    assert [car["id"] for car in result["cars"]] == ["cheap"]
    assert result["pagination"]["total"] == 2
    assert result["pagination"]["pages"] == 2
    assert sorted(result["filters"]["makes"]) == ["Honda", "Toyota"]
    print("✓ Sold listings hidden, pagination counts active matches")


@pytest.mark.asyncio
async def test_similar_excludes_the_listing_itself(store):
    base = make_listing(_id="base")
    store.seed(
        LISTINGS_COLLECTION,
        base.to_dict_for_db(),
        make_listing(_id="twin").to_dict_for_db(),
        make_listing(_id="pricey", make="BMW", model="M5", price=90000).to_dict_for_db(),
    )
    similar = await SearchService(store).similar(base)
    assert [car.id for car in similar] == ["twin"]
