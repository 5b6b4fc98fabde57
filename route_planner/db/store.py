"""
Storage collaborators consumed by the trending-routes flow.

Durable persistence lives outside this service; these protocols describe
what the ranking needs from it. ``InMemoryRouteStore`` backs development runs
and tests.
"""
import threading
from dataclasses import dataclass
from datetime import date, datetime
from typing import Dict, List, Optional, Protocol, Tuple

ROUTE_TARGET_TYPE = "route"


@dataclass(frozen=True)
class StoredPlan:
    id: int
    title: str
    destination: Optional[str] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    budget: Optional[int] = None
    people_count: Optional[int] = None
    pace: Optional[str] = None
    created_at: Optional[datetime] = None


class RoutePlanStore(Protocol):
    def latest_plans(self, limit: int) -> List[StoredPlan]:
        """Most recently created plans, newest first."""
        ...

    def get_plan(self, plan_id: int) -> Optional[StoredPlan]:
        ...


class InteractionCounter(Protocol):
    def count_likes(self, target_type: str, target_id: int) -> int:
        ...

    def count_favorites(self, target_type: str, target_id: int) -> int:
        ...


class InMemoryRouteStore:
    """Thread-safe in-process implementation of both collaborators."""

    def __init__(self):
        self._lock = threading.Lock()
        self._plans: Dict[int, StoredPlan] = {}
        self._likes: Dict[Tuple[str, int], int] = {}
        self._favorites: Dict[Tuple[str, int], int] = {}

    def add_plan(self, plan: StoredPlan) -> StoredPlan:
        with self._lock:
            self._plans[plan.id] = plan
        return plan

    def set_counts(self, plan_id: int, likes: int = 0, favorites: int = 0,
                   target_type: str = ROUTE_TARGET_TYPE) -> None:
        with self._lock:
            self._likes[(target_type, plan_id)] = likes
            self._favorites[(target_type, plan_id)] = favorites

    def latest_plans(self, limit: int) -> List[StoredPlan]:
        with self._lock:
            plans = list(self._plans.values())
        dated = sorted((p for p in plans if p.created_at is not None), key=lambda p: p.created_at, reverse=True)
        undated = [p for p in plans if p.created_at is None]
        return (dated + undated)[:max(0, limit)]

    def get_plan(self, plan_id: int) -> Optional[StoredPlan]:
        with self._lock:
            return self._plans.get(plan_id)

    def count_likes(self, target_type: str, target_id: int) -> int:
        with self._lock:
            return self._likes.get((target_type, target_id), 0)

    def count_favorites(self, target_type: str, target_id: int) -> int:
        with self._lock:
            return self._favorites.get((target_type, target_id), 0)
