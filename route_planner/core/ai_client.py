"""
Client for OpenAI-compatible chat-completion endpoints (OpenAI, Azure OpenAI,
DeepSeek, Qwen, OpenRouter, ...).

One blocking call per generation. Every failure is reported as an
``AiOutcome`` with a non-success status; ``generate`` turns that into ``None``
so the caller can fall back to the rule-based generator.
"""
import json
import logging
import math
import uuid
from datetime import date
from enum import Enum
from typing import Any, Dict, NamedTuple, Optional

import requests

from route_planner.api.schemas import DayPlan, GenerateResult, ItineraryRequest, PlanVariant, PoiItem
from route_planner.core.planning import day_date, trip_day_count
from route_planner.core.settings import Settings

logger = logging.getLogger(__name__)

EXPECTED_VARIANTS = 3
DEFAULT_VARIANT_NAME = "方案"
DEFAULT_ITEM_NAME = "景点"
DEFAULT_ITEM_IMAGE = "https://picsum.photos/seed/poi/320/180"
DEFAULT_STAY_MINUTES = 60
DEFAULT_DAY_DURATION_MINUTES = 180
DEFAULT_DAY_DISTANCE_KM = 10
DEFAULT_DAY_COMMUTE_MINUTES = 20
CONTENT_PREVIEW_CHARS = 800


class AiStatus(str, Enum):
    SUCCESS = "success"
    UNAVAILABLE = "unavailable"
    TRANSPORT_FAILURE = "transport_failure"
    MALFORMED_RESPONSE = "malformed_response"


class AiOutcome(NamedTuple):
    status: AiStatus
    result: Optional[GenerateResult] = None
    reason: str = ""

    @property
    def ok(self) -> bool:
        return self.status is AiStatus.SUCCESS and self.result is not None


class MalformedResponse(ValueError):
    """The provider answered, but not with a usable itinerary."""


SYSTEM_PROMPT = """
你是一名专业的旅行路线规划助手。请根据用户给出的出发地、目的地、日期、预算、人数、交通方式、节奏和兴趣权重，生成 3 套可执行的旅行方案。

只输出一个合法的 JSON 对象，不要使用 markdown 代码块，也不要输出任何解释文字。结构如下：

{
  "variants": [
    {
      "id": "a",
      "name": "方案 A（文化优先）",
      "days": [
        {
          "dayIndex": 1,
          "date": "YYYY-MM-DD",
          "durationMinutes": 300,
          "distanceKm": 15,
          "commuteMinutes": 30,
          "items": [
            {
              "id": "短唯一id",
              "name": "景点或活动名称",
              "image": "https://picsum.photos/seed/poi1/320/180",
              "stayMinutes": 120,
              "tags": ["文化", "历史"],
              "lng": 120.155,
              "lat": 30.274
            }
          ]
        }
      ]
    },
    {"id": "b", "name": "方案 B（自然优先）", "days": []},
    {"id": "c", "name": "方案 C（轻松休闲）", "days": []}
  ]
}

规则：
1. 恰好返回 3 个方案，id 依次为 a、b、c，名称体现不同侧重（文化优先、自然优先、轻松休闲）。
2. days 的 date 从用户给出的出发日期开始逐日连续，直到结束日期，每天一条记录。
3. 每天安排 2～4 个目的地真实存在的景点或合理活动；name 写具体名称，tags 为 2～3 个标签，stayMinutes 在 30～240 之间。
4. 每个 item 给出经度 lng 和纬度 lat（高德/GCJ-02 坐标系），按景点真实位置填写，例如西湖约 120.155, 30.274，故宫约 116.397, 39.916，外滩约 121.490, 31.239。
5. 只输出上述 JSON。
""".strip()

USER_PROMPT_TEMPLATE = """
请根据以下条件生成 3 套旅行方案（严格按约定的 JSON 输出）：

- 出发地：{departure}
- 目的地：{destinations}
- 出发日期：{start_date}
- 结束日期：{end_date}
- 总预算（元）：{budget}
- 人数：{people}
- 交通方式：{transport}（public=公共交通，drive=自驾，mixed=混合）
- 节奏：{intensity}（relaxed=轻松，moderate=适中，high=高强度）
- 兴趣权重（0～100）：{interests}

景点和活动要符合目的地与用户偏好，每天的行程要合理。日期格式为 YYYY-MM-DD，从出发日期连续到结束日期。
""".strip()


def build_user_prompt(request: ItineraryRequest, day_count: int) -> str:
    end_date = day_date(request.start_date, day_count)
    return USER_PROMPT_TEMPLATE.format(
        departure=request.departure_city or "",
        destinations="、".join(request.destinations),
        start_date=request.start_date.isoformat(),
        end_date=end_date.isoformat(),
        budget=request.total_budget,
        people=request.people_count,
        transport=request.transport,
        intensity=request.intensity,
        interests=json.dumps(request.interest_weights, ensure_ascii=False),
    )


def strip_code_fence(content: str) -> str:
    """Drop a surrounding ```json ... ``` fence, keeping the outermost object."""
    text = content.strip()
    if text.startswith("```"):
        start = text.find("{")
        end = text.rfind("}")
        if start >= 0 and end > start:
            text = text[start:end + 1]
    return text


def _int(value: Any, default: int) -> int:
    if value is None or isinstance(value, bool):
        return default
    try:
        return int(value)
    except (TypeError, ValueError, OverflowError):
        return default


def _text(value: Any, default: str) -> str:
    if value is None or isinstance(value, (dict, list)):
        return default
    return str(value)


def _parse_date(raw: Any, start_date: date, day_index: int) -> date:
    expected = day_date(start_date, day_index)
    if not isinstance(raw, str) or not raw.strip():
        return expected
    try:
        parsed = date.fromisoformat(raw.strip())
    except ValueError:
        logger.debug(f"AI returned unparseable date '{raw}' for day {day_index}, using {expected}")
        return expected
    if parsed != expected:
        logger.debug(f"AI date {parsed} inconsistent with day {day_index}, re-deriving {expected}")
        return expected
    return parsed


def _coordinate(value: Any) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    return number if math.isfinite(number) else None


def parse_item(node: Dict[str, Any]) -> PoiItem:
    tags = node.get("tags")
    lng, lat = _coordinate(node.get("lng")), _coordinate(node.get("lat"))
    coords = {}
    if lng is not None and lat is not None:
        coords = {"lng": lng, "lat": lat}
    elif node.get("lng") is not None or node.get("lat") is not None:
        logger.debug(f"Dropping unusable coordinates for AI item {node.get('name')!r}")
    return PoiItem(
        id=_text(node.get("id"), uuid.uuid4().hex[:9]),
        name=_text(node.get("name"), DEFAULT_ITEM_NAME),
        image=_text(node.get("image"), DEFAULT_ITEM_IMAGE),
        stay_minutes=_int(node.get("stayMinutes"), DEFAULT_STAY_MINUTES),
        tags=[str(t) for t in tags] if isinstance(tags, list) else [],
        **coords,
    )


def parse_day(node: Dict[str, Any], start_date: date) -> DayPlan:
    day_index = max(1, _int(node.get("dayIndex"), 1))
    items = node.get("items") or []
    return DayPlan(
        day_index=day_index,
        date=_parse_date(node.get("date"), start_date, day_index),
        duration_minutes=_int(node.get("durationMinutes"), DEFAULT_DAY_DURATION_MINUTES),
        distance_km=_int(node.get("distanceKm"), DEFAULT_DAY_DISTANCE_KM),
        commute_minutes=_int(node.get("commuteMinutes"), DEFAULT_DAY_COMMUTE_MINUTES),
        items=[parse_item(i) for i in items],
    )


def parse_variants(content: str, start_date: date) -> GenerateResult:
    """Parse assistant content into a GenerateResult; raises on anything unusable."""
    root = json.loads(strip_code_fence(content))
    if not isinstance(root, dict):
        raise MalformedResponse("top-level JSON is not an object")
    variants_node = root.get("variants")
    if not isinstance(variants_node, list):
        raise MalformedResponse("'variants' missing or not an array")

    variants = []
    for v in variants_node:
        days = v.get("days") or []
        variants.append(PlanVariant(
            id=_text(v.get("id"), "a"),
            name=_text(v.get("name"), DEFAULT_VARIANT_NAME),
            days=[parse_day(d, start_date) for d in days],
        ))
    return GenerateResult(variants=variants)


def check_shape(result: GenerateResult, day_count: int) -> None:
    if len(result.variants) != EXPECTED_VARIANTS:
        raise MalformedResponse(f"expected {EXPECTED_VARIANTS} variants, got {len(result.variants)}")
    for variant in result.variants:
        if len(variant.days) != day_count:
            raise MalformedResponse(
                f"variant '{variant.id}' spans {len(variant.days)} days, expected {day_count}"
            )


class AiRouteClient:
    """Generates itineraries through a chat-completion endpoint."""

    def __init__(self, settings: Optional[Settings] = None, session: Optional[requests.Session] = None):
        self._settings = settings
        self._session = session

    @property
    def settings(self) -> Settings:
        # re-read on every call unless pinned
        return self._settings if self._settings is not None else Settings()

    def is_available(self) -> bool:
        return self.settings.ai_configured

    def generate(self, request: ItineraryRequest, day_count: Optional[int] = None) -> Optional[GenerateResult]:
        outcome = self.attempt(request, day_count)
        return outcome.result if outcome.ok else None

    def attempt(self, request: ItineraryRequest, day_count: Optional[int] = None) -> AiOutcome:
        settings = self.settings
        if not settings.AI_ENABLED:
            logger.info("AI route generation skipped: AI_ENABLED is false")
            return AiOutcome(AiStatus.UNAVAILABLE, reason="disabled")
        if not settings.ai_configured:
            logger.info("AI route generation skipped: OPENAI_API_KEY is not configured")
            return AiOutcome(AiStatus.UNAVAILABLE, reason="missing credential")

        if day_count is None:
            day_count = trip_day_count(request.start_date, request.end_date, settings.MAX_ITINERARY_DAYS)

        url = settings.AI_BASE_URL.rstrip("/") + "/v1/chat/completions"
        logger.info(f"Calling AI route generation: url={url}, model={settings.AI_MODEL}, destinations={request.destinations}")
        try:
            content = self._complete(url, settings, build_user_prompt(request, day_count))
        except requests.RequestException as e:
            logger.warning(f"AI route generation request failed: {e}")
            return AiOutcome(AiStatus.TRANSPORT_FAILURE, reason=str(e))
        except Exception as e:
            logger.warning(f"AI route generation returned an unusable envelope: {e}")
            return AiOutcome(AiStatus.MALFORMED_RESPONSE, reason=str(e))

        try:
            result = parse_variants(content, request.start_date)
            check_shape(result, day_count)
        except Exception as e:
            logger.warning(f"Failed to parse AI route response: {e}")
            return AiOutcome(AiStatus.MALFORMED_RESPONSE, reason=str(e))

        logger.info(
            f"AI route generation parsed {len(result.variants)} variants, "
            f"days per variant={[len(v.days) for v in result.variants]}"
        )
        return AiOutcome(AiStatus.SUCCESS, result=result)

    def _complete(self, url: str, settings: Settings, user_prompt: str) -> str:
        """POST the chat completion and return the first choice's content."""
        body = {
            "model": settings.AI_MODEL,
            "messages": [
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": user_prompt},
            ],
            "response_format": {"type": "json_object"},
            "temperature": settings.AI_TEMPERATURE,
        }
        headers = {
            "Authorization": f"Bearer {settings.OPENAI_API_KEY.strip()}",
            "Content-Type": "application/json",
        }
        post = self._session.post if self._session is not None else requests.post
        response = post(
            url,
            json=body,
            headers=headers,
            timeout=(settings.AI_CONNECT_TIMEOUT_SECONDS, settings.ai_read_timeout),
        )
        if not 200 <= response.status_code < 300:
            raise requests.HTTPError(f"non-2xx status {response.status_code}", response=response)
        raw = response.text
        if not raw:
            raise requests.HTTPError("empty response body", response=response)
        logger.info(f"AI raw response length: {len(raw)} chars")

        try:
            payload = json.loads(raw)
        except ValueError as e:
            raise MalformedResponse(f"response body is not JSON: {e}")
        choices = payload.get("choices") if isinstance(payload, dict) else None
        if not isinstance(choices, list) or not choices or not isinstance(choices[0], dict):
            raise MalformedResponse("response has no choices")
        message = choices[0].get("message")
        if not isinstance(message, dict):
            raise MalformedResponse("first choice has no message")
        content = message.get("content") or ""
        if not isinstance(content, str) or not content.strip():
            raise MalformedResponse("first choice has empty content")
        preview = content if len(content) <= CONTENT_PREVIEW_CHARS else content[:CONTENT_PREVIEW_CHARS] + "..."
        logger.debug(f"AI content preview: {preview}")
        return content
