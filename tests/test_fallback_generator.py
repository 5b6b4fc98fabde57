from datetime import date, timedelta

import pytest

from route_planner.core.fallback_generator import (
    CITY_POOLS,
    DEFAULT_POOLS,
    HANGZHOU,
    SUZHOU,
    FallbackItineraryGenerator,
    select_pools,
)

START = date(2024, 5, 1)


def content(variants):
    """Everything except the per-item list keys."""
    return [
        (v.id, v.name, [
            (d.day_index, d.date, d.duration_minutes, d.distance_km, d.commute_minutes,
             [(i.name, i.image, i.stay_minutes, i.tags, i.lng, i.lat) for i in d.items])
            for d in v.days
        ])
        for v in variants
    ]


def test_three_themes_in_fixed_order():
    variants = FallbackItineraryGenerator().generate("杭州", START, 3)
    assert [v.id for v in variants] == ["a", "b", "c"]
    assert "文化" in variants[0].name
    assert "自然" in variants[1].name
    assert "休闲" in variants[2].name


def test_hangzhou_example():
    culture = FallbackItineraryGenerator().generate("杭州", START, 3)[0]

    assert len(culture.days) == 3
    day1, day2, day3 = culture.days
    assert [i.name for i in day1.items] == ["灵隐寺", "宋城"]
    assert [i.name for i in day2.items] == ["河坊街", "中国美院", "六和塔"]
    # index wraps: (2*2 + 1) % 5 == 0
    assert [i.name for i in day3.items] == ["六和塔", "灵隐寺"]
    assert [d.date for d in culture.days] == [START, START + timedelta(days=1), START + timedelta(days=2)]


def test_day_aggregates():
    culture = FallbackItineraryGenerator().generate("杭州", START, 2)[0]
    day1, day2 = culture.days
    assert day1.duration_minutes == 90 + 180 + 30
    assert day2.duration_minutes == 90 + 120 + 60 + 2 * 30
    assert (day1.distance_km, day1.commute_minutes) == (12, 20)
    assert (day2.distance_km, day2.commute_minutes) == (20, 30)


def test_item_fields():
    item = FallbackItineraryGenerator().generate("苏州", START, 2)[0].days[1].items[2]
    assert item.name == "寒山寺"
    assert item.tags == ["文化", "宗教"]
    assert item.stay_minutes == 90
    assert item.image == "https://picsum.photos/seed/poi12/320/180"
    assert len(item.id) == 9
    # coordinates are added later by the gazetteer
    assert item.lng is None and item.lat is None


@pytest.mark.parametrize("destination", ["杭州", "上海市", "Paris", ""])
def test_deterministic_across_calls(destination):
    generator = FallbackItineraryGenerator()
    first = generator.generate(destination, START, 5)
    second = FallbackItineraryGenerator().generate(destination, START, 5)
    assert content(first) == content(second)


def test_item_counts_alternate():
    for variant in FallbackItineraryGenerator().generate("北京", START, 14):
        assert [len(d.items) for d in variant.days] == [2, 3] * 7


def test_pool_selection_first_match_wins():
    assert select_pools("苏州") is SUZHOU
    assert select_pools("杭州西湖") is HANGZHOU
    # both cities present: table order decides
    assert select_pools("杭州苏州") is SUZHOU
    assert [key for key, _ in CITY_POOLS] == ["苏州", "上海", "北京", "杭州"]


@pytest.mark.parametrize("destination", [None, "", "Paris", "成都"])
def test_unknown_destination_uses_default_pools(destination):
    assert select_pools(destination) is DEFAULT_POOLS
    variants = FallbackItineraryGenerator().generate(destination, START, 1)
    assert [i.name for i in variants[0].days[0].items] == ["故宫博物院", "国家博物馆"]
    assert [i.name for i in variants[1].days[0].items] == ["西湖", "灵隐寺"]
