"""
Deterministic, rule-based itinerary builder used when AI generation is
unavailable or fails.

Each theme draws from a small hand-authored POI pool chosen by destination.
For day ``i`` (0-based) the builder takes ``2 + i % 2`` items, item ``j`` being
``pool[(i * 2 + j) % len(pool)]``. Short pools therefore cycle; the formula is
kept as-is so output stays reproducible across releases.
"""
import logging
import uuid
from collections import namedtuple
from datetime import date, timedelta
from typing import List, Optional, Sequence

from route_planner.api.schemas import DayPlan, PlanVariant, PoiItem

logger = logging.getLogger(__name__)

# (name, comma-separated tags, stay minutes)
PoolEntry = namedtuple("PoolEntry", ["name", "tags", "stay_minutes"])
CityPools = namedtuple("CityPools", ["culture", "nature", "relax"])
Theme = namedtuple("Theme", ["variant_id", "name", "pool_key"])

THEMES = (
    Theme("a", "方案 A（文化优先）", "culture"),
    Theme("b", "方案 B（自然优先）", "nature"),
    Theme("c", "方案 C（轻松休闲）", "relax"),
)

TRANSFER_MINUTES = 30


def _pool(*rows) -> tuple:
    return tuple(PoolEntry(name, tags, stay) for name, tags, stay in rows)


SUZHOU = CityPools(
    culture=_pool(
        ("拙政园", "文化,园林", 150),
        ("苏州博物馆", "文化,历史", 120),
        ("狮子林", "文化,园林", 90),
        ("虎丘", "文化,自然", 120),
        ("寒山寺", "文化,宗教", 90),
    ),
    nature=_pool(
        ("金鸡湖", "自然,休闲", 120),
        ("阳澄湖", "自然,美食", 150),
        ("太湖湿地", "自然,生态", 180),
        ("平江路", "自然,文化", 90),
        ("同里古镇", "自然,古镇", 150),
    ),
    relax=_pool(
        ("平江路漫步", "休闲,文化", 90),
        ("山塘街", "休闲,美食", 120),
        ("观前街", "休闲,购物", 90),
        ("苏州评弹", "休闲,文化", 60),
        ("苏帮菜馆", "美食,文化", 90),
    ),
)

SHANGHAI = CityPools(
    culture=_pool(
        ("豫园", "文化,园林", 120),
        ("上海博物馆", "文化,历史", 150),
        ("中共一大会址", "文化,历史", 90),
        ("田子坊", "文化,创意", 90),
        ("新天地", "文化,休闲", 120),
    ),
    nature=_pool(
        ("外滩", "自然,景观", 120),
        ("世纪公园", "自然,休闲", 150),
        ("朱家角古镇", "自然,古镇", 180),
        ("滨江森林公园", "自然,生态", 120),
        ("东方明珠", "自然,地标", 90),
    ),
    relax=_pool(
        ("南京路步行街", "休闲,购物", 120),
        ("田子坊", "休闲,美食", 90),
        ("新天地", "休闲,文化", 90),
        ("外滩夜景", "休闲,景观", 60),
        ("城隍庙小吃", "美食,文化", 90),
    ),
)

BEIJING_CULTURE = _pool(
    ("故宫博物院", "文化,历史", 180),
    ("国家博物馆", "文化,历史", 120),
    ("南锣鼓巷", "文化,美食", 90),
    ("颐和园", "文化,自然", 150),
    ("雍和宫", "文化,宗教", 90),
)

HANGZHOU_NATURE = _pool(
    ("西湖", "自然,休闲", 120),
    ("灵隐寺", "自然,文化", 90),
    ("西溪湿地", "自然,生态", 180),
    ("九溪烟树", "自然,徒步", 90),
    ("龙井村", "自然,美食", 120),
)

GENERIC_RELAX = _pool(
    ("古镇漫步", "休闲,文化", 120),
    ("温泉酒店", "休闲,放松", 180),
    ("咖啡馆", "休闲,美食", 60),
    ("夜市", "美食,购物", 90),
    ("海边栈道", "休闲,自然", 90),
)

BEIJING = CityPools(
    culture=BEIJING_CULTURE,
    nature=_pool(
        ("颐和园", "自然,文化", 150),
        ("北海公园", "自然,休闲", 120),
        ("香山", "自然,徒步", 180),
        ("奥森公园", "自然,生态", 120),
        ("什刹海", "自然,文化", 90),
    ),
    relax=GENERIC_RELAX,
)

HANGZHOU = CityPools(
    culture=_pool(
        ("灵隐寺", "文化,宗教", 90),
        ("宋城", "文化,演艺", 180),
        ("河坊街", "文化,美食", 90),
        ("中国美院", "文化,艺术", 120),
        ("六和塔", "文化,历史", 60),
    ),
    nature=HANGZHOU_NATURE,
    relax=GENERIC_RELAX,
)

DEFAULT_POOLS = CityPools(culture=BEIJING_CULTURE, nature=HANGZHOU_NATURE, relax=GENERIC_RELAX)

# Checked in order against the destination string; first substring match wins.
CITY_POOLS = (
    ("苏州", SUZHOU),
    ("上海", SHANGHAI),
    ("北京", BEIJING),
    ("杭州", HANGZHOU),
)


def select_pools(destination: Optional[str]) -> CityPools:
    city = (destination or "").strip()
    for key, pools in CITY_POOLS:
        if key in city:
            return pools
    return DEFAULT_POOLS


def short_id() -> str:
    """Nine-character list key; not part of the deterministic content."""
    return uuid.uuid4().hex[:9]


class FallbackItineraryGenerator:
    """Builds the three themed variants without any I/O."""

    def generate(self, destination: Optional[str], start_date: date, day_count: int) -> List[PlanVariant]:
        pools = select_pools(destination)
        variants = [
            PlanVariant(
                id=theme.variant_id,
                name=theme.name,
                days=self.build_days(getattr(pools, theme.pool_key), start_date, day_count),
            )
            for theme in THEMES
        ]
        logger.info(f"Built fallback itinerary for '{destination}' spanning {day_count} days")
        return variants

    def build_days(self, pool: Sequence[PoolEntry], start_date: date, day_count: int) -> List[DayPlan]:
        days = []
        for i in range(day_count):
            n = 2 + (i % 2)
            items = [self.build_item(pool[(i * 2 + j) % len(pool)], i, j) for j in range(n)]
            total_stay = sum(item.stay_minutes for item in items)
            days.append(DayPlan(
                day_index=i + 1,
                date=start_date + timedelta(days=i),
                duration_minutes=total_stay + TRANSFER_MINUTES * max(0, len(items) - 1),
                distance_km=12 + i * 8,
                commute_minutes=20 + i * 10,
                items=items,
            ))
        return days

    def build_item(self, entry: PoolEntry, day_offset: int, position: int) -> PoiItem:
        return PoiItem(
            id=short_id(),
            name=entry.name,
            image=f"https://picsum.photos/seed/poi{day_offset * 10 + position}/320/180",
            stay_minutes=entry.stay_minutes,
            tags=entry.tags.split(","),
        )
