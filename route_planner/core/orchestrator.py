import logging
import time
from collections import namedtuple
from contextlib import contextmanager
from datetime import date
from typing import Optional

from route_planner.api.schemas import GenerateResult, ItineraryRequest
from route_planner.core.ai_client import AiRouteClient, AiStatus
from route_planner.core.fallback_generator import FallbackItineraryGenerator
from route_planner.core.gazetteer import Gazetteer, default_gazetteer
from route_planner.core.planning import MAX_TRIP_DAYS, day_date, trip_day_count

logger = logging.getLogger(__name__)

# Validated request plus the derived trip span
PlanningRequest = namedtuple("PlanningRequest", ["request", "destination", "start_date", "end_date", "day_count"])


class ItineraryValidationError(ValueError):
    """Raised for user input that cannot produce an itinerary."""


@contextmanager
def performance_timer(operation: str):
    """Context manager for timing operations"""
    start = time.time()
    try:
        yield
    finally:
        duration = time.time() - start
        logger.info(f"{operation} completed in {duration:.2f}s")


class ItineraryOrchestrator:
    """Tries the AI client once, otherwise builds the deterministic itinerary, then adds coordinates."""

    def __init__(
        self,
        ai_client: Optional[AiRouteClient] = None,
        fallback: Optional[FallbackItineraryGenerator] = None,
        gazetteer: Optional[Gazetteer] = None,
        max_days: int = MAX_TRIP_DAYS,
    ):
        self.ai_client = ai_client if ai_client is not None else AiRouteClient()
        self.fallback = fallback if fallback is not None else FallbackItineraryGenerator()
        self.gazetteer = gazetteer if gazetteer is not None else default_gazetteer()
        self.max_days = max_days

    def normalize(self, request: ItineraryRequest) -> PlanningRequest:
        destinations = [d.strip() for d in request.destinations if d and d.strip()]
        if not destinations:
            raise ItineraryValidationError("At least one destination is required")
        if request.end_date < request.start_date:
            raise ItineraryValidationError("End date cannot be before start date")

        day_count = trip_day_count(request.start_date, request.end_date, self.max_days)
        return PlanningRequest(
            request=request,
            destination=destinations[0],
            start_date=request.start_date,
            end_date=day_date(request.start_date, day_count),
            day_count=day_count,
        )

    def generate(self, request: ItineraryRequest) -> GenerateResult:
        planning = self.normalize(request)

        with performance_timer("route_generation"):
            result = self._try_ai(planning)
            if result is None:
                result = self.build_fallback(planning.destination, planning.start_date, planning.day_count)
            return self.gazetteer.enrich_result(result)

    def build_fallback(self, destination: str, start_date: date, day_count: int) -> GenerateResult:
        variants = self.fallback.generate(destination, start_date, day_count)
        return GenerateResult(variants=variants)

    def _try_ai(self, planning: PlanningRequest) -> Optional[GenerateResult]:
        if not self.ai_client.is_available():
            logger.info("AI route generation not configured, using rule-based itinerary")
            return None

        req = planning.request
        logger.info(
            f"Generating AI itinerary: departure={req.departure_city}, destinations={req.destinations}, "
            f"dates={planning.start_date}~{planning.end_date}, budget={req.total_budget}, "
            f"transport={req.transport}, intensity={req.intensity}"
        )
        outcome = self.ai_client.attempt(req, planning.day_count)
        if outcome.ok:
            logger.info(f"AI itinerary generated with {len(outcome.result.variants)} variants")
            return outcome.result

        if outcome.status is AiStatus.UNAVAILABLE:
            logger.info("AI route generation became unavailable, using rule-based itinerary")
        else:
            logger.warning(
                f"AI route generation failed ({outcome.status.value}: {outcome.reason}), using rule-based itinerary"
            )
        return None
