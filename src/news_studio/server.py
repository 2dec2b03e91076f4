"""FastAPI relay: news scraping endpoints and AI text-generation endpoints."""

from __future__ import annotations

import logging
import time
from contextlib import asynccontextmanager
from typing import Any, Dict, Iterable, List, Optional

from fastapi import APIRouter, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from starlette.exceptions import HTTPException as StarletteHTTPException

from . import prompts
from .config import Settings, configure_logging, get_settings
from .errors import (
    BadRequest,
    InvalidCredential,
    MissingCredential,
    ProviderError,
    RelayError,
)
from .json_repair import repair_model_json
from .models import (
    ArticleBody,
    ArticleRequest,
    KeyCheckResponse,
    ModelRequest,
    NewsItem,
    ScriptNewRequest,
    ScriptResponse,
    ScriptTransformRequest,
    StructureResponse,
    SummaryResponse,
    TextRequest,
    ThumbnailCopies,
    ThumbnailRequest,
    TitleIdeas,
)
from .providers import ProviderRouter, resolve_provider
from .scraper import NaverNewsScraper

logger = logging.getLogger(__name__)

SERVICE_NAME = "News Studio Relay"

api = APIRouter()


def _add_cors(app: FastAPI, settings: Settings) -> None:
    """Allow the browser UI (hosted elsewhere) to call the API."""
    origins = [o.strip() for o in settings.cors_allow_origins.split(",") if o.strip()]
    if settings.cors_allow_all or not origins:
        origins = ["*"]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        # Starlette/FastAPI disallow wildcard origins when credentials are enabled.
        allow_credentials=origins != ["*"],
        allow_methods=["GET", "POST"],
        allow_headers=["Content-Type", "Authorization"],
    )


def _add_request_logging(app: FastAPI) -> None:
    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        started = time.perf_counter()
        response = await call_next(request)
        elapsed_ms = int((time.perf_counter() - started) * 1000)
        logger.info(
            "%s %s -> %s (%dms)",
            request.method,
            request.url.path,
            response.status_code,
            elapsed_ms,
        )
        return response


def format_validation_errors(errors: Iterable[Dict[str, Any]]) -> str:
    """Turn request validation errors into a concise human-readable string."""
    parts = []
    for err in errors:
        location = ".".join(str(piece) for piece in err.get("loc", ()) if piece != "body")
        parts.append(f"{location or '<body>'}: {err.get('msg', 'invalid')}")
    return "; ".join(parts)


def _add_error_handlers(app: FastAPI) -> None:
    """Every failure path answers with a JSON ``{"error": ...}`` body."""

    @app.exception_handler(RelayError)
    async def relay_error(request: Request, exc: RelayError) -> JSONResponse:
        log = logger.error if exc.status_code >= 500 else logger.info
        log("%s %s failed: %s", request.method, request.url.path, exc.message)
        return JSONResponse(status_code=exc.status_code, content={"error": exc.message})

    @app.exception_handler(RequestValidationError)
    async def validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
        message = f"Invalid request: {format_validation_errors(exc.errors())}"
        return JSONResponse(status_code=400, content={"error": message})

    @app.exception_handler(StarletteHTTPException)
    async def http_error(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        return JSONResponse(status_code=exc.status_code, content={"error": str(exc.detail)})

    @app.exception_handler(Exception)
    async def unexpected_error(request: Request, exc: Exception) -> JSONResponse:
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return JSONResponse(status_code=500, content={"error": "Internal server error"})


def _require_fields(payload: Optional[BaseModel], *names: str) -> None:
    missing = [
        name for name in names if not (getattr(payload, name, None) or "").strip()
    ]
    if missing:
        raise BadRequest(f"Missing required fields: {', '.join(missing)}")


def _bearer_token(request: Request) -> Optional[str]:
    header = request.headers.get("authorization", "")
    scheme, _, token = header.partition(" ")
    if scheme.lower() != "bearer":
        return None
    return token.strip() or None


def _complete(
    request: Request,
    system_instruction: str,
    user_content: str,
    model: Optional[str],
    *,
    allow_fallback_key: bool = True,
) -> str:
    settings: Settings = request.app.state.settings
    router: ProviderRouter = request.app.state.provider_router
    model_name = (model or "").strip() or settings.default_model
    # Unknown models are rejected before any credential lookup.
    resolve_provider(model_name)
    credential = _bearer_token(request)
    if credential is None and allow_fallback_key:
        credential = router.fallback_credential(model_name)
    return router.complete(system_instruction, user_content, model_name, credential)


def _scraper(request: Request) -> NaverNewsScraper:
    return request.app.state.scraper


# --- Service endpoints --------------------------------------------------------

@api.get("/")
def root() -> Dict[str, str]:
    return {"status": "ok", "service": SERVICE_NAME}


@api.get("/health")
def health() -> Dict[str, str]:
    return {"status": "ok"}


# --- News endpoints -----------------------------------------------------------

@api.get("/api/naver-news", response_model=List[NewsItem])
def naver_news(request: Request, category: str = "정치") -> List[NewsItem]:
    return _scraper(request).fetch_list(category)


@api.get("/api/naver-ranking", response_model=List[NewsItem])
def naver_ranking(request: Request) -> List[NewsItem]:
    return _scraper(request).fetch_ranking()


@api.post("/api/news-content", response_model=ArticleBody)
@api.post("/api/naver-article", response_model=ArticleBody)
def article_content(payload: ArticleRequest, request: Request) -> ArticleBody:
    _require_fields(payload, "url")
    return _scraper(request).fetch_article_body(payload.url)


# --- AI endpoints -------------------------------------------------------------

@api.post("/api/ai/check-key", response_model=KeyCheckResponse)
def check_key(request: Request, payload: Optional[ModelRequest] = None):
    """Validate the caller's own Bearer key with a minimal completion."""
    model = payload.model if payload else None
    try:
        _complete(
            request,
            prompts.KEY_CHECK_INSTRUCTION,
            prompts.KEY_CHECK_INPUT,
            model,
            allow_fallback_key=False,
        )
    except (MissingCredential, InvalidCredential, ProviderError) as exc:
        logger.info("API key check failed: %s", exc.message)
        return JSONResponse(status_code=401, content={"error": exc.message})
    return KeyCheckResponse(status="ok", message="API 키가 유효합니다.")


@api.post("/api/ai/script-transform", response_model=ScriptResponse)
def script_transform(payload: ScriptTransformRequest, request: Request) -> ScriptResponse:
    _require_fields(payload, "text")
    options = prompts.PromptOptions.from_values(
        payload.concept, payload.length_option, payload.style, payload.instruction
    )
    script = _complete(
        request, prompts.script_transform_instruction(options), payload.text, payload.model
    )
    return ScriptResponse(script=script)


@api.post("/api/ai/script-new", response_model=ScriptResponse)
def script_new(payload: ScriptNewRequest, request: Request) -> ScriptResponse:
    _require_fields(payload, "topic")
    topic = payload.topic.strip()
    options = prompts.PromptOptions.from_values(
        payload.concept, payload.length_option, payload.style, payload.instruction
    )
    script = _complete(
        request, prompts.script_new_instruction(topic, options), topic, payload.model
    )
    return ScriptResponse(script=script)


@api.post("/api/ai/structure", response_model=StructureResponse)
def structure(payload: TextRequest, request: Request) -> StructureResponse:
    _require_fields(payload, "text")
    text = _complete(request, prompts.STRUCTURE_INSTRUCTION, payload.text, payload.model)
    return StructureResponse(structure=text)


@api.post("/api/ai/summary", response_model=SummaryResponse)
def summary(payload: TextRequest, request: Request) -> SummaryResponse:
    _require_fields(payload, "text")
    text = _complete(request, prompts.SUMMARY_INSTRUCTION, payload.text, payload.model)
    return SummaryResponse(summary=text)


@api.post("/api/ai/titles", response_model=TitleIdeas)
def titles(payload: TextRequest, request: Request) -> TitleIdeas:
    _require_fields(payload, "text")
    raw = _complete(request, prompts.titles_instruction(), payload.text, payload.model)
    return repair_model_json(raw, TitleIdeas, prompts.TITLES_FALLBACK)


@api.post("/api/ai/thumbnail-copies", response_model=ThumbnailCopies)
def thumbnail_copies(payload: ThumbnailRequest, request: Request) -> ThumbnailCopies:
    _require_fields(payload, "text")
    raw = _complete(
        request,
        prompts.thumbnail_instruction(payload.length_option),
        payload.text,
        payload.model,
    )
    return repair_model_json(raw, ThumbnailCopies, prompts.THUMBNAIL_FALLBACK)


# --- Application factory ------------------------------------------------------

@asynccontextmanager
async def _lifespan(app: FastAPI):
    yield
    app.state.scraper.close()


def create_app(
    settings: Settings | None = None,
    *,
    provider_router: ProviderRouter | None = None,
    scraper: NaverNewsScraper | None = None,
) -> FastAPI:
    """
    Build the relay application.

    Settings are read once here and handed to the router and scraper; tests
    inject fakes for either collaborator.
    """
    settings = settings or get_settings()
    configure_logging(settings)

    app = FastAPI(title=SERVICE_NAME, lifespan=_lifespan)
    app.state.settings = settings
    app.state.provider_router = provider_router or ProviderRouter(settings)
    app.state.scraper = scraper or NaverNewsScraper(settings)

    _add_cors(app, settings)
    _add_request_logging(app)
    _add_error_handlers(app)
    app.include_router(api)
    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    _settings = get_settings()
    uvicorn.run("news_studio.server:app", host=_settings.host, port=_settings.port)
