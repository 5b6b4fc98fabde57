"""
Popularity ranking for the trending-routes surface.

score = likes + favorites; ties go to the newer itinerary, undated ones last.
Each call re-scores a fresh candidate pool; nothing is cached between calls.
"""
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Iterable, List, Optional

from route_planner.api.schemas import HotRoute
from route_planner.db.store import ROUTE_TARGET_TYPE, InteractionCounter, RoutePlanStore, StoredPlan

logger = logging.getLogger(__name__)

DEFAULT_LIMIT = 4
MAX_LIMIT = 50
CANDIDATE_POOL_SIZE = 50


@dataclass(frozen=True)
class RankingCandidate:
    plan_id: int
    created_at: Optional[datetime]
    likes: int = 0
    favorites: int = 0

    @property
    def score(self) -> int:
        return self.likes + self.favorites


def clamp_limit(limit: Optional[int], default: int = DEFAULT_LIMIT, maximum: int = MAX_LIMIT) -> int:
    n = default if limit is None or limit <= 0 else limit
    return max(1, min(n, maximum))


def rank(candidates: Iterable[RankingCandidate], limit: Optional[int] = None,
         default: int = DEFAULT_LIMIT, maximum: int = MAX_LIMIT) -> List[RankingCandidate]:
    n = clamp_limit(limit, default=default, maximum=maximum)
    # Two stable passes: newest first (undated last), then by score.
    by_recency = sorted(
        candidates,
        key=lambda c: (c.created_at is None, -c.created_at.timestamp() if c.created_at else 0.0),
    )
    ordered = sorted(by_recency, key=lambda c: c.score, reverse=True)
    return ordered[:n]


class HotRouteService:
    """Collects counts for recent plans and returns the most popular ones."""

    def __init__(self, store: RoutePlanStore, counter: InteractionCounter,
                 pool_size: int = CANDIDATE_POOL_SIZE, default_limit: int = DEFAULT_LIMIT,
                 max_limit: int = MAX_LIMIT):
        self.store = store
        self.counter = counter
        self.pool_size = pool_size
        self.default_limit = default_limit
        self.max_limit = max_limit

    def candidates(self) -> List[RankingCandidate]:
        return [
            RankingCandidate(
                plan_id=plan.id,
                created_at=plan.created_at,
                likes=self.counter.count_likes(ROUTE_TARGET_TYPE, plan.id),
                favorites=self.counter.count_favorites(ROUTE_TARGET_TYPE, plan.id),
            )
            for plan in self.store.latest_plans(self.pool_size)
        ]

    def list_hot(self, limit: Optional[int] = None) -> List[HotRoute]:
        pool = self.candidates()
        if not pool:
            return []
        ranked = rank(pool, limit, default=self.default_limit, maximum=self.max_limit)
        logger.info(f"Ranked {len(pool)} candidate routes, returning {len(ranked)}")

        routes = []
        for candidate in ranked:
            plan = self.store.get_plan(candidate.plan_id)
            if plan is None:
                continue
            routes.append(to_hot_route(plan, candidate))
        return routes


def to_hot_route(plan: StoredPlan, candidate: RankingCandidate) -> HotRoute:
    return HotRoute(
        id=plan.id,
        title=plan.title,
        destination=plan.destination,
        start_date=plan.start_date,
        end_date=plan.end_date,
        budget=plan.budget,
        people_count=plan.people_count,
        pace=plan.pace,
        created_at=plan.created_at,
        like_count=candidate.likes,
        favorite_count=candidate.favorites,
        score=candidate.score,
    )
