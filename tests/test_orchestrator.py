"""
Tests for the itinerary orchestrator: validation, day-count clamping and the
AI / rule-based paths.
"""

import json
from datetime import date
from unittest.mock import Mock, patch

import pytest

from route_planner.api.schemas import DayPlan, GenerateResult, ItineraryRequest, PlanVariant, PoiItem
from route_planner.core.ai_client import AiOutcome, AiRouteClient, AiStatus
from route_planner.core.gazetteer import Gazetteer
from route_planner.core.orchestrator import ItineraryOrchestrator, ItineraryValidationError
from route_planner.core.settings import Settings

START = date(2024, 5, 1)


def make_request(**overrides):
    values = dict(destinations=["杭州"], start_date=START, end_date=date(2024, 5, 3))
    values.update(overrides)
    return ItineraryRequest(**values)


def offline_client():
    return AiRouteClient(settings=Settings(_env_file=None, AI_ENABLED=False))


def stub_client(outcome):
    client = Mock(spec=AiRouteClient)
    client.is_available.return_value = True
    client.attempt.return_value = outcome
    return client


def ai_result(day_count):
    variants = []
    for vid in ("a", "b", "c"):
        days = [
            DayPlan(day_index=d + 1, date=date(2024, 5, 1 + d), items=[
                PoiItem(id=f"{vid}{d}", name="西湖"),
                PoiItem(id=f"{vid}{d}x", name="AI 推荐餐厅", lng=120.2, lat=30.3),
            ])
            for d in range(day_count)
        ]
        variants.append(PlanVariant(id=vid, name=f"AI {vid}", days=days))
    return GenerateResult(variants=variants)


def assert_coordinate_pairs(result):
    for variant in result.variants:
        for day in variant.days:
            for item in day.items:
                assert (item.lng is None) == (item.lat is None)


class TestValidation:

    def test_empty_destinations(self):
        with pytest.raises(ItineraryValidationError, match="destination"):
            ItineraryOrchestrator(ai_client=offline_client()).generate(make_request(destinations=[]))

    def test_blank_destinations(self):
        with pytest.raises(ItineraryValidationError):
            ItineraryOrchestrator(ai_client=offline_client()).generate(make_request(destinations=["  ", ""]))

    def test_end_before_start(self):
        with pytest.raises(ItineraryValidationError, match="End date"):
            ItineraryOrchestrator(ai_client=offline_client()).generate(
                make_request(start_date=date(2024, 5, 3), end_date=date(2024, 5, 1))
            )

    def test_validation_happens_before_ai(self):
        client = stub_client(AiOutcome(AiStatus.SUCCESS, result=ai_result(3)))
        with pytest.raises(ItineraryValidationError):
            ItineraryOrchestrator(ai_client=client).generate(make_request(destinations=[]))
        client.attempt.assert_not_called()


class TestDayCount:

    @pytest.mark.parametrize("end, expected", [
        (date(2024, 5, 1), 1),
        (date(2024, 5, 3), 3),
        (date(2024, 5, 14), 14),
        (date(2024, 5, 15), 14),
        (date(2024, 8, 1), 14),
    ])
    def test_clamped_span(self, end, expected):
        orchestrator = ItineraryOrchestrator(ai_client=offline_client())
        planning = orchestrator.normalize(make_request(end_date=end))
        assert planning.day_count == expected

        result = orchestrator.generate(make_request(end_date=end))
        assert len(result.variants) == 3
        for variant in result.variants:
            assert len(variant.days) == expected

    def test_ai_receives_clamped_day_count(self):
        client = stub_client(AiOutcome(AiStatus.SUCCESS, result=ai_result(14)))
        ItineraryOrchestrator(ai_client=client).generate(make_request(end_date=date(2024, 7, 1)))
        request, day_count = client.attempt.call_args.args
        assert day_count == 14


class TestPaths:

    def test_unavailable_ai_goes_straight_to_fallback(self):
        client = Mock(spec=AiRouteClient)
        client.is_available.return_value = False
        result = ItineraryOrchestrator(ai_client=client).generate(make_request())

        client.attempt.assert_not_called()
        assert [i.name for i in result.variants[0].days[0].items] == ["灵隐寺", "宋城"]

    def test_ai_success_is_returned_and_enriched(self):
        client = stub_client(AiOutcome(AiStatus.SUCCESS, result=ai_result(3)))
        gazetteer = Gazetteer({"西湖": (120.155, 30.274)})
        result = ItineraryOrchestrator(ai_client=client, gazetteer=gazetteer).generate(make_request())

        assert [v.name for v in result.variants] == ["AI a", "AI b", "AI c"]
        first, second = result.variants[0].days[0].items
        assert (first.lng, first.lat) == (120.155, 30.274)
        assert (second.lng, second.lat) == (120.2, 30.3)
        client.attempt.assert_called_once()

    @pytest.mark.parametrize("status", [AiStatus.TRANSPORT_FAILURE, AiStatus.MALFORMED_RESPONSE, AiStatus.UNAVAILABLE])
    def test_ai_failure_falls_back(self, status):
        client = stub_client(AiOutcome(status, reason="test"))
        result = ItineraryOrchestrator(ai_client=client).generate(make_request())

        client.attempt.assert_called_once()
        assert [v.id for v in result.variants] == ["a", "b", "c"]
        assert "文化" in result.variants[0].name
        assert [len(d.items) for d in result.variants[0].days] == [2, 3, 2]

    def test_fallback_items_are_enriched(self):
        result = ItineraryOrchestrator(ai_client=offline_client()).generate(make_request())
        item = result.variants[0].days[0].items[0]
        assert item.name == "灵隐寺"
        assert (item.lng, item.lat) == (120.096, 30.241)
        assert_coordinate_pairs(result)

    def test_malformed_ai_json_matches_fallback_shape(self):
        settings = Settings(_env_file=None, AI_ENABLED=True, OPENAI_API_KEY="sk-test-key-123456")
        envelope = {"choices": [{"message": {"content": json.dumps({"plans": []})}}]}
        response = Mock(status_code=200, text=json.dumps(envelope))
        orchestrator = ItineraryOrchestrator(ai_client=AiRouteClient(settings=settings))

        with patch("route_planner.core.ai_client.requests.post", return_value=response) as post:
            result = orchestrator.generate(make_request())
        fallback = ItineraryOrchestrator(ai_client=offline_client()).generate(make_request())

        post.assert_called_once()
        assert len(result.variants) == len(fallback.variants) == 3
        assert [len(v.days) for v in result.variants] == [len(v.days) for v in fallback.variants]
        assert [[i.name for i in d.items] for d in result.variants[1].days] == \
            [[i.name for i in d.items] for d in fallback.variants[1].days]

    def test_network_error_never_reaches_caller(self):
        import requests
        settings = Settings(_env_file=None, AI_ENABLED=True, OPENAI_API_KEY="sk-test-key-123456")
        orchestrator = ItineraryOrchestrator(ai_client=AiRouteClient(settings=settings))
        with patch("route_planner.core.ai_client.requests.post", side_effect=requests.Timeout("slow")) as post:
            result = orchestrator.generate(make_request())
        assert post.call_count == 1  # no retry
        assert len(result.variants) == 3

    def test_fallback_uses_first_destination(self):
        result = ItineraryOrchestrator(ai_client=offline_client()).generate(
            make_request(destinations=["上海", "杭州"])
        )
        assert result.variants[0].days[0].items[0].name == "豫园"
