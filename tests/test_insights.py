import asyncio

import httpx
import pytest

from conftest import TILE_RESPONSE
from storepulse.connectors.base import AdPlatformData, ShopifyStats, TopProducts
from storepulse.schemas import Severity
from storepulse.services.insights import ad_severity, generate_tile_insights, health_severity, parse_tiles
from storepulse.services.llm import AnthropicClient, ModelInvocationError

STATS = ShopifyStats(order_count=120, revenue=6000.0, avg_order_value=50.0, sample_size=120)


class RecordingModel:
    def __init__(self, text=TILE_RESPONSE):
        self.text = text
        self.calls = []

    async def __call__(self, system_prompt, user_prompt, max_tokens):
        self.calls.append((system_prompt, user_prompt, max_tokens))
        return self.text


def test_parse_tiles_in_order():
    tiles = parse_tiles(TILE_RESPONSE)
    assert tiles["health_check"].startswith("🟡 Solid month")
    assert tiles["biggest_issue"] == "Diffuser refunds are eating margin."
    assert tiles["quick_win"] == "Add a candle bundle to the cart page this week."
    assert tiles["opportunity"].startswith("Wax melts")
    assert tiles["ad_performance"] == ""


def test_parse_tiles_reordered_and_padded():
    text = (
        "Sure, here you go.\n\n"
        "###   OPPORTUNITY  \n  Grow wax melts.  \n\n"
        "### ad performance\n🔴 ROAS 1.1x. Cut broad targeting.\n"
        "### Health Check\n🟢 All good.\n"
    )
    tiles = parse_tiles(text)
    assert tiles["opportunity"] == "Grow wax melts."
    assert tiles["ad_performance"] == "🔴 ROAS 1.1x. Cut broad targeting."
    assert tiles["health_check"] == "🟢 All good."
    assert tiles["biggest_issue"] == ""
    assert tiles["quick_win"] == ""


def test_parse_tiles_ignores_unknown_sections_and_empty_text():
    assert parse_tiles("### SUMMARY\nnothing useful") == {
        "health_check": "", "biggest_issue": "", "quick_win": "", "opportunity": "", "ad_performance": "",
    }
    assert parse_tiles("")["health_check"] == ""


@pytest.mark.parametrize("text,expected", [
    ("🔴 Revenue collapsed.", Severity.CRITICAL),
    ("🟡 Slipping.", Severity.WARNING),
    ("🟢 Healthy month.", Severity.HEALTHY),
    ("No marker at all.", Severity.HEALTHY),
    ("🟡 Mixed, but 🔴 refunds are critical.", Severity.CRITICAL),
])
def test_health_severity(text, expected):
    assert health_severity(text) == expected


@pytest.mark.parametrize("spend,revenue,expected", [
    (200.0, 240.0, Severity.CRITICAL),  # 1.2x
    (200.0, 400.0, Severity.WARNING),   # 2.0x
    (200.0, 500.0, Severity.WARNING),   # 2.5x is still a warning
    (200.0, 600.0, Severity.HEALTHY),   # 3.0x
    (0.0, 500.0, Severity.HEALTHY),
])
def test_ad_severity(spend, revenue, expected):
    assert ad_severity(AdPlatformData(spend=spend, revenue=revenue)) == expected


def test_ad_severity_without_ads():
    assert ad_severity(None) == Severity.HEALTHY


def test_no_api_key_skips_model(business_context):
    model = RecordingModel()
    tiles = asyncio.run(generate_tile_insights(STATS, None, None, TopProducts(), context=business_context, invoke=model))
    assert tiles is None
    assert model.calls == []


def test_generate_without_ads(ai_enabled, business_context):
    model = RecordingModel(TILE_RESPONSE + "\n### AD PERFORMANCE\n🟢 Should be dropped.\n")
    tiles = asyncio.run(generate_tile_insights(STATS, None, None, TopProducts(), context=business_context, invoke=model))

    assert len(model.calls) == 1
    system_prompt, user_prompt, max_tokens = model.calls[0]
    assert max_tokens == 800
    assert "Hearth & Wick" in system_prompt
    assert "EXACTLY these 4 sections" in user_prompt
    assert tiles.ad_performance == ""
    assert tiles.ad_severity == Severity.HEALTHY
    assert tiles.health_severity == Severity.WARNING
    assert tiles.has_content


def test_generate_with_ads(ai_enabled, business_context):
    ads = AdPlatformData(spend=200.0, impressions=20000, clicks=400, purchases=8, revenue=240.0)
    model = RecordingModel(TILE_RESPONSE + "\n### AD PERFORMANCE\n🟢 Looks fine.\n")
    tiles = asyncio.run(generate_tile_insights(STATS, None, ads, TopProducts(), context=business_context, invoke=model))

    _, user_prompt, max_tokens = model.calls[0]
    assert max_tokens == 1000
    assert "EXACTLY these 5 sections" in user_prompt
    assert tiles.ad_performance == "🟢 Looks fine."
    # Severity follows the connector numbers, not the model's emoji.
    assert tiles.ad_severity == Severity.CRITICAL


def test_context_notes_reach_the_prompt(ai_enabled, business_context):
    stats = ShopifyStats(order_count=100, revenue=2000.0, avg_order_value=20.0, sample_size=100)
    model = RecordingModel()
    asyncio.run(generate_tile_insights(stats, None, None, None, context=business_context, invoke=model))
    assert "CONTEXT NOTES" in model.calls[0][1]
    assert "below your stated £35-60 band" in model.calls[0][1]


def test_model_errors_propagate(ai_enabled, business_context):
    async def failing(system_prompt, user_prompt, max_tokens):
        raise ModelInvocationError("overloaded")

    with pytest.raises(ModelInvocationError):
        asyncio.run(generate_tile_insights(STATS, None, None, None, context=business_context, invoke=failing))


# ── Anthropic client ──────────────────────────────────────────────────────────

def test_client_posts_single_turn_request():
    seen = []

    def handler(request):
        seen.append(request)
        return httpx.Response(200, json={"content": [{"type": "text", "text": "### HEALTH CHECK\n🟢 ok"}]})

    client = AnthropicClient("sk-ant-test", model="test-model", transport=httpx.MockTransport(handler))
    text = asyncio.run(client.invoke("system", "user", 800))

    assert text == "### HEALTH CHECK\n🟢 ok"
    assert seen[0].headers["x-api-key"] == "sk-ant-test"
    body = seen[0].read()
    assert b'"max_tokens":800' in body.replace(b" ", b"")
    assert b'"model":"test-model"' in body.replace(b" ", b"")


def test_client_empty_content_raises():
    transport = httpx.MockTransport(lambda r: httpx.Response(200, json={"content": [], "stop_reason": "max_tokens"}))
    client = AnthropicClient("sk-ant-test", transport=transport)
    with pytest.raises(ModelInvocationError, match="max_tokens"):
        asyncio.run(client.invoke("system", "user", 800))


def test_client_http_error_raises():
    transport = httpx.MockTransport(lambda r: httpx.Response(529, json={"type": "error"}))
    client = AnthropicClient("sk-ant-test", transport=transport)
    with pytest.raises(httpx.HTTPStatusError):
        asyncio.run(client.invoke("system", "user", 800))
