import logging
from functools import lru_cache
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from slowapi import Limiter
from slowapi.util import get_remote_address

from route_planner.api.schemas import GenerateResult, HotRoute, ItineraryRequest
from route_planner.core.ai_client import AiRouteClient
from route_planner.core.orchestrator import ItineraryOrchestrator, ItineraryValidationError
from route_planner.core.ranking import HotRouteService
from route_planner.core.settings import get_settings
from route_planner.db.store import InMemoryRouteStore

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/routes", tags=["routes"])

# Initialize rate limiter
limiter = Limiter(key_func=get_remote_address)

settings = get_settings()
GENERATE_LIMIT = settings.RATE_LIMIT_GENERATE if settings.ENABLE_RATE_LIMITING else "1000/minute"
READ_LIMIT = settings.RATE_LIMIT_READ if settings.ENABLE_RATE_LIMITING else "1000/minute"


@lru_cache
def get_route_store() -> InMemoryRouteStore:
    """Default storage collaborator; deployments override this dependency."""
    return InMemoryRouteStore()


def get_orchestrator() -> ItineraryOrchestrator:
    # AiRouteClient re-reads Settings on every call
    return ItineraryOrchestrator(ai_client=AiRouteClient(), max_days=get_settings().MAX_ITINERARY_DAYS)


def get_hot_route_service(store: InMemoryRouteStore = Depends(get_route_store)) -> HotRouteService:
    s = get_settings()
    return HotRouteService(
        store, store,
        pool_size=s.HOT_ROUTES_CANDIDATE_POOL,
        default_limit=s.HOT_ROUTES_DEFAULT_LIMIT,
        max_limit=s.HOT_ROUTES_MAX_LIMIT,
    )


@router.post("/ai-generate",
    response_model=GenerateResult,
    responses={
        400: {"description": "No destination, or end date before start date"},
        429: {"description": "Rate limit exceeded"},
    },
    summary="Generate three candidate itineraries",
    description="Uses the configured AI provider when available and falls back to rule-based plans otherwise"
)
@limiter.limit(GENERATE_LIMIT)
def generate_routes(
    request: Request,
    payload: ItineraryRequest,
    orchestrator: ItineraryOrchestrator = Depends(get_orchestrator),
):
    """Generate three itinerary variants (not persisted)"""
    try:
        return orchestrator.generate(payload)
    except ItineraryValidationError as e:
        logger.warning(f"Rejected itinerary request: {e}")
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))


@router.get("/hot", response_model=List[HotRoute], summary="Trending routes by likes + favorites")
@limiter.limit(READ_LIMIT)
def hot_routes(
    request: Request,
    limit: Optional[int] = Query(default=None, description="Clamped to 1..50; 0 or negative means the default"),
    service: HotRouteService = Depends(get_hot_route_service),
):
    return service.list_hot(limit)
