from types import SimpleNamespace

import httpx
import openai
from fastapi.testclient import TestClient

from news_studio import prompts
from news_studio.config import Settings
from news_studio.errors import ScrapeError
from news_studio.models import ArticleBody, NewsItem
from news_studio.providers import ProviderRouter
from news_studio.scraper import NaverNewsScraper
from news_studio.server import create_app


SECTION_HTML = """<html><head><meta charset="euc-kr"></head><body>
<ul class="sa_list">
<li class="sa_item"><a class="sa_text_title" href="/mnews/article/001/1">국제 정상회의 개막</a>
<div class="sa_text_press">연합뉴스</div></li>
<li class="sa_item"><a class="sa_text_title" href="https://n.news.naver.com/mnews/article/002/2">유가 상승 지속</a></li>
<li class="sa_item"><a class="sa_text_title" href="/mnews/article/003/3" title="중동 정세 긴장">중동...</a></li>
</ul></body></html>"""


class FakeOpenAI:
    def __init__(self, reply="기본 응답", error=None):
        self.reply = reply
        self.error = error
        self.requests = []
        self.chat = SimpleNamespace(completions=SimpleNamespace(create=self._create))

    def _create(self, **kwargs):
        self.requests.append(kwargs)
        if self.error is not None:
            raise self.error
        message = SimpleNamespace(content=self.reply)
        return SimpleNamespace(choices=[SimpleNamespace(message=message)])


class FakeScraper:
    def __init__(self, items=None, article=None, error=None):
        self.items = items or []
        self.article = article
        self.error = error
        self.calls = []

    def fetch_list(self, category, max_items=None):
        self.calls.append(("list", category))
        if self.error:
            raise self.error
        return self.items

    def fetch_ranking(self, max_items=None):
        self.calls.append(("ranking", None))
        return self.items

    def fetch_article_body(self, url):
        self.calls.append(("article", url))
        return self.article

    def close(self):
        pass


def make_settings(**overrides) -> Settings:
    base = {"openai_api_key": None, "gemini_api_key": None, "scrape_cache_ttl": 0}
    base.update(overrides)
    return Settings(_env_file=None, **base)


def make_client(fake_openai=None, scraper=None, keys=None, **settings_overrides):
    settings = make_settings(**settings_overrides)
    fake_openai = fake_openai or FakeOpenAI()
    used_keys = keys if keys is not None else []

    def factory(api_key):
        used_keys.append(api_key)
        return fake_openai

    app = create_app(
        settings,
        provider_router=ProviderRouter(settings, openai_factory=factory),
        scraper=scraper or FakeScraper(),
    )
    return TestClient(app)


AUTH = {"Authorization": "Bearer sk-test"}


def sample_items():
    return [
        NewsItem(rank=1, title="첫 기사", link="https://n.news.naver.com/a/1", summary="첫 기사"),
        NewsItem(
            rank=2,
            title="둘째 기사",
            link="https://n.news.naver.com/a/2",
            press="한겨레",
            summary="요약",
        ),
    ]


def test_health():
    client = make_client()
    resp = client.get("/health")
    assert resp.status_code == 200
    assert resp.json()["status"] == "ok"


def test_root_reports_service():
    resp = make_client().get("/")
    assert resp.json() == {"status": "ok", "service": "News Studio Relay"}


def test_cors_wildcard_disables_credentials():
    app = make_client().app
    cors = next(m for m in app.user_middleware if m.cls.__name__ == "CORSMiddleware")
    assert cors.kwargs["allow_origins"] == ["*"]
    assert cors.kwargs["allow_credentials"] is False
    assert "Authorization" in cors.kwargs["allow_headers"]


def test_naver_news_defaults_to_politics():
    scraper = FakeScraper(items=sample_items())
    resp = make_client(scraper=scraper).get("/api/naver-news")
    assert resp.status_code == 200
    assert scraper.calls == [("list", "정치")]
    data = resp.json()
    assert [item["rank"] for item in data] == [1, 2]
    assert data[1]["press"] == "한겨레"


def test_naver_news_world_category_end_to_end():
    seen = []

    def handler(request):
        seen.append(str(request.url))
        return httpx.Response(
            200, content=SECTION_HTML.encode("euc-kr"), headers={"content-type": "text/html"}
        )

    settings = make_settings()
    scraper = NaverNewsScraper(settings, client=httpx.Client(transport=httpx.MockTransport(handler)))
    client = TestClient(create_app(settings, scraper=scraper))

    resp = client.get("/api/naver-news", params={"category": "세계"})

    assert resp.status_code == 200
    assert seen == ["https://news.naver.com/section/104"]
    data = resp.json()
    assert [item["rank"] for item in data] == [1, 2, 3]
    assert all(item["link"].startswith("https://") for item in data)
    assert data[2]["title"] == "중동 정세 긴장"


def test_naver_news_empty_listing_is_empty_array():
    resp = make_client(scraper=FakeScraper(items=[])).get("/api/naver-news?category=경제")
    assert resp.status_code == 200
    assert resp.json() == []


def test_naver_news_scrape_error_returns_json_500():
    scraper = FakeScraper(error=ScrapeError("https://news.naver.com returned HTTP 503"))
    resp = make_client(scraper=scraper).get("/api/naver-news?category=사회")
    assert resp.status_code == 500
    assert "503" in resp.json()["error"]


def test_naver_ranking():
    scraper = FakeScraper(items=sample_items())
    resp = make_client(scraper=scraper).get("/api/naver-ranking")
    assert resp.status_code == 200
    assert scraper.calls == [("ranking", None)]
    assert len(resp.json()) == 2


def test_article_endpoints_share_handler():
    article = ArticleBody(title="제목", body_text="본문", url="https://n.news.naver.com/a/1")
    scraper = FakeScraper(article=article)
    client = make_client(scraper=scraper)

    for path in ("/api/news-content", "/api/naver-article"):
        resp = client.post(path, json={"url": "https://n.news.naver.com/a/1"})
        assert resp.status_code == 200
        assert resp.json() == {
            "title": "제목",
            "bodyText": "본문",
            "url": "https://n.news.naver.com/a/1",
        }
    assert len(scraper.calls) == 2


def test_article_requires_url():
    resp = make_client().post("/api/news-content", json={})
    assert resp.status_code == 400
    assert resp.json()["error"] == "Missing required fields: url"


def test_summary_returns_provider_text():
    fake = FakeOpenAI(reply="첫째 줄\n둘째 줄\n셋째 줄")
    keys = []
    client = make_client(fake_openai=fake, keys=keys)

    resp = client.post(
        "/api/ai/summary",
        json={"text": "긴 기사 본문...", "model": "gpt-4o-mini"},
        headers=AUTH,
    )

    assert resp.status_code == 200
    assert resp.json() == {"summary": "첫째 줄\n둘째 줄\n셋째 줄"}
    assert keys == ["sk-test"]
    messages = fake.requests[0]["messages"]
    assert messages[0] == {"role": "system", "content": prompts.SUMMARY_INSTRUCTION}
    assert messages[1] == {"role": "user", "content": "긴 기사 본문..."}


def test_summary_requires_text():
    resp = make_client().post("/api/ai/summary", json={"text": "  ", "model": "gpt-4o-mini"}, headers=AUTH)
    assert resp.status_code == 400
    assert resp.json()["error"] == "Missing required fields: text"


def test_missing_model_uses_configured_default():
    fake = FakeOpenAI()
    client = make_client(fake_openai=fake, default_model="gpt-4o")
    resp = client.post("/api/ai/structure", json={"text": "본문"}, headers=AUTH)
    assert resp.status_code == 200
    assert resp.json() == {"structure": "기본 응답"}
    assert fake.requests[0]["model"] == "gpt-4o"


def test_configured_key_is_used_when_header_is_absent():
    keys = []
    client = make_client(keys=keys, openai_api_key="sk-env")
    resp = client.post("/api/ai/summary", json={"text": "본문", "model": "gpt-4o-mini"})
    assert resp.status_code == 200
    assert keys == ["sk-env"]


def test_ai_endpoint_without_any_credential_is_401():
    resp = make_client().post("/api/ai/summary", json={"text": "본문", "model": "gpt-4o-mini"})
    assert resp.status_code == 401
    assert resp.json()["error"]


def test_unsupported_model_is_400():
    resp = make_client().post(
        "/api/ai/summary", json={"text": "본문", "model": "claude-3"}, headers=AUTH
    )
    assert resp.status_code == 400
    assert "claude-3" in resp.json()["error"]


def test_unsupported_model_without_key_is_400_not_401():
    keys = []
    resp = make_client(keys=keys).post("/api/ai/summary", json={"text": "본문", "model": "claude-3"})
    assert resp.status_code == 400
    assert "claude-3" in resp.json()["error"]
    assert keys == []


def test_check_key_unsupported_model_without_key_is_400():
    resp = make_client().post("/api/ai/check-key", json={"model": "claude-3"})
    assert resp.status_code == 400


def test_article_endpoint_refuses_hosts_outside_naver():
    def handler(request):
        raise AssertionError(f"unexpected request to {request.url}")

    scraper = NaverNewsScraper(
        make_settings(), client=httpx.Client(transport=httpx.MockTransport(handler))
    )
    resp = make_client(scraper=scraper).post(
        "/api/news-content", json={"url": "http://169.254.169.254/latest/meta-data/"}
    )
    assert resp.status_code == 400
    assert "naver.com" in resp.json()["error"]


def test_provider_failure_is_json_500():
    request = httpx.Request("POST", "https://api.openai.com/v1/chat/completions")
    fake = FakeOpenAI(error=openai.APIConnectionError(request=request))
    resp = make_client(fake_openai=fake).post(
        "/api/ai/summary", json={"text": "본문", "model": "gpt-4o-mini"}, headers=AUTH
    )
    assert resp.status_code == 500
    assert resp.json()["error"].startswith("OpenAI error:")


def test_check_key_without_authorization_header_is_401():
    # The configured fallback key must not stand in for the caller's key here.
    client = make_client(openai_api_key="sk-env")
    resp = client.post("/api/ai/check-key", json={"model": "gpt-4o-mini"})
    assert resp.status_code == 401
    assert isinstance(resp.json()["error"], str)
    assert resp.json()["error"]


def test_check_key_accepts_missing_body():
    resp = make_client().post("/api/ai/check-key", headers=AUTH)
    assert resp.status_code == 200
    assert resp.json()["status"] == "ok"


def test_check_key_reports_rejected_key():
    request = httpx.Request("POST", "https://api.openai.com/v1/chat/completions")
    error = openai.AuthenticationError(
        "Error code: 401",
        response=httpx.Response(401, request=request),
        body={"message": "Incorrect API key provided"},
    )
    resp = make_client(fake_openai=FakeOpenAI(error=error)).post(
        "/api/ai/check-key", json={"model": "gpt-4o-mini"}, headers=AUTH
    )
    assert resp.status_code == 401
    assert "Incorrect API key provided" in resp.json()["error"]


def test_script_transform_interpolates_options():
    fake = FakeOpenAI(reply="대본")
    resp = make_client(fake_openai=fake).post(
        "/api/ai/script-transform",
        json={
            "text": "기사 본문",
            "concept": "뉴스 브리핑",
            "lengthOption": "3분",
            "instruction": "숫자는 강조",
            "model": "gpt-4o-mini",
        },
        headers=AUTH,
    )
    assert resp.status_code == 200
    assert resp.json() == {"script": "대본"}
    system = fake.requests[0]["messages"][0]["content"]
    assert "콘셉트: 뉴스 브리핑" in system
    assert "분량: 3분" in system
    assert f"말투: {prompts.DEFAULT_STYLE}" in system
    assert "추가 지시: 숫자는 강조" in system


def test_script_new_requires_topic_and_applies_defaults():
    fake = FakeOpenAI(reply="새 대본")
    client = make_client(fake_openai=fake)

    missing = client.post("/api/ai/script-new", json={"model": "gpt-4o-mini"}, headers=AUTH)
    assert missing.status_code == 400
    assert missing.json()["error"] == "Missing required fields: topic"

    resp = client.post(
        "/api/ai/script-new", json={"topic": "금리 인하", "model": "gpt-4o-mini"}, headers=AUTH
    )
    assert resp.json() == {"script": "새 대본"}
    system = fake.requests[0]["messages"][0]["content"]
    assert "주제: 금리 인하" in system
    assert f"콘셉트: {prompts.DEFAULT_CONCEPT}" in system
    assert f"분량: {prompts.DEFAULT_LENGTH}" in system
    assert "추가 지시" not in system


def test_titles_repairs_fenced_json_with_commentary():
    reply = (
        "요청하신 제목입니다.\n```json\n"
        '{"safeTitles": ["안전한 제목"], "clickbaitTitles": ["자극적인 제목"]}\n```\n감사합니다.'
    )
    resp = make_client(fake_openai=FakeOpenAI(reply=reply)).post(
        "/api/ai/titles", json={"text": "본문", "model": "gpt-4o-mini"}, headers=AUTH
    )
    assert resp.status_code == 200
    assert resp.json() == {"safeTitles": ["안전한 제목"], "clickbaitTitles": ["자극적인 제목"]}


def test_titles_malformed_output_returns_fallback_shape():
    resp = make_client(fake_openai=FakeOpenAI(reply="제목을 만들 수 없습니다 {oops")).post(
        "/api/ai/titles", json={"text": "본문", "model": "gpt-4o-mini"}, headers=AUTH
    )
    assert resp.status_code == 200
    assert resp.json() == {"safeTitles": ["에러 발생: 내용을 확인하세요"], "clickbaitTitles": []}


def test_thumbnail_copies_parses_and_passes_length():
    fake = FakeOpenAI(
        reply='{"emotional": ["울컥"], "informational": ["핵심 정리"], "visual": ["빨간 화살표"]}'
    )
    resp = make_client(fake_openai=fake).post(
        "/api/ai/thumbnail-copies",
        json={"text": "본문", "lengthOption": "10자 이내", "model": "gpt-4o-mini"},
        headers=AUTH,
    )
    assert resp.status_code == 200
    assert resp.json() == {
        "emotional": ["울컥"],
        "informational": ["핵심 정리"],
        "visual": ["빨간 화살표"],
    }
    assert "길이: 10자 이내" in fake.requests[0]["messages"][0]["content"]


def test_thumbnail_copies_malformed_output_returns_fallback_shape():
    resp = make_client(fake_openai=FakeOpenAI(reply="```\nnot json\n```")).post(
        "/api/ai/thumbnail-copies", json={"text": "본문", "model": "gpt-4o-mini"}, headers=AUTH
    )
    assert resp.status_code == 200
    assert resp.json() == {"emotional": ["에러 발생"], "informational": [], "visual": []}


def test_non_json_body_is_400_with_error():
    resp = make_client().post(
        "/api/ai/summary",
        content=b"not json",
        headers={**AUTH, "Content-Type": "application/json"},
    )
    assert resp.status_code == 400
    assert resp.json()["error"].startswith("Invalid request")


def test_unknown_route_returns_json_error():
    resp = make_client().get("/api/does-not-exist")
    assert resp.status_code == 404
    assert resp.json()["error"]
