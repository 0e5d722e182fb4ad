# notewright/api/server.py
"""
FastAPI server for notewright:

- /interview-turn, /generate-article, /rewrite-article : generation endpoints
- /themes, /memos, /style-refs, /refs                : record management
- /interviews/*                                       : stateful interview sessions (answer, skip, complete, close)
- /articles/*                                         : edits, history, restore
- /prompt-versions/{category}                         : prompt release notes
- /health                                             : basic health check

Errors are always returned as {"error": "..."}; the status code comes from
the exception type (see _STATUS_BY_ERROR). The acting user is read from the
X-User-Id header on every route that touches stored records.
"""

import time
import uuid
from typing import List, Literal, Optional, Union

from fastapi import FastAPI, Header, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel
from starlette.exceptions import HTTPException as StarletteHTTPException

from notewright.core import readiness as readiness_scale
from notewright.core.conductor import CompletionOptions, TurnOutcome, may_complete
from notewright.core.errors import (
    AuthRequired,
    GenerationFailed,
    InvalidTransition,
    NotewrightError,
    NotFound,
    RegistryInconsistent,
    StaleWrite,
    StoreUnavailable,
    ValidationError,
)
from notewright.core.ledger import HISTORY_LIMIT
from notewright.core.services import Services, build_services
from notewright.core.validation import (
    MEMO_MAX,
    STYLE_LABEL_MAX,
    STYLE_TEXT_MAX,
    THEME_DESCRIPTION_MAX,
    THEME_TITLE_MAX,
    require_target_length,
    require_text,
    require_user,
    require_writing_style,
)
from notewright.memory import repository
from notewright.prompts.context import DEFAULT_TARGET_LENGTH, PromptContext, memo_excerpts
from notewright.prompts.interview import SKIP_SENTINEL
from notewright.prompts.registry import CATEGORIES
from notewright.utils.logging import get_logger

logger = get_logger(__name__)

app = FastAPI(
    title="notewright API",
    description="Interview-to-article pipeline: guided interviews, article synthesis, edit history.",
    version="1.0.0",
)


def _services() -> Services:
    """Pipeline services, built from settings on first use. Tests assign app.state.services."""
    services = getattr(app.state, "services", None)
    if services is None:
        services = build_services()
        app.state.services = services
    return services


# ---------------------------------------------------------------------------
# Error mapping
# ---------------------------------------------------------------------------

_STATUS_BY_ERROR = (
    (ValidationError, 400),
    (AuthRequired, 401),
    (NotFound, 404),
    (InvalidTransition, 409),
    (StaleWrite, 409),
    (GenerationFailed, 502),
    (StoreUnavailable, 503),
    (RegistryInconsistent, 500),
)


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message})


@app.exception_handler(NotewrightError)
async def _handle_notewright_error(request: Request, exc: NotewrightError) -> JSONResponse:
    status_code = 500
    for err_type, code in _STATUS_BY_ERROR:
        if isinstance(exc, err_type):
            status_code = code
            break
    log = logger.error if status_code >= 500 else logger.warning
    log("[%s] %s -> %d %s: %s", request.method, request.url.path, status_code, type(exc).__name__, exc)
    return _error(status_code, str(exc))


@app.exception_handler(RequestValidationError)
async def _handle_request_validation(request: Request, exc: RequestValidationError) -> JSONResponse:
    problems = []
    for err in exc.errors():
        loc = ".".join(str(p) for p in err.get("loc", ()) if p != "body")
        problems.append(f"{loc}: {err.get('msg')}" if loc else str(err.get("msg")))
    message = "Invalid request: " + "; ".join(problems)
    logger.warning("[%s] %s -> 400 %s", request.method, request.url.path, message)
    return _error(400, message)


@app.exception_handler(StarletteHTTPException)
async def _handle_http_exception(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return _error(exc.status_code, str(exc.detail))


@app.middleware("http")
async def _log_requests(request: Request, call_next):
    request_id = str(uuid.uuid4())
    start_time = time.monotonic()
    logger.info("[http] request_id=%s %s %s", request_id, request.method, request.url.path)
    response = await call_next(request)
    latency_ms = int((time.monotonic() - start_time) * 1000)
    logger.info("[http] request_id=%s status=%d latency_ms=%d", request_id, response.status_code, latency_ms)
    response.headers["X-Request-Id"] = request_id
    return response


def _dropped(what: str) -> JSONResponse:
    return _error(409, f"A generation for this interview is already in progress; {what} was ignored.")


# ---------------------------------------------------------------------------
# Models
# ---------------------------------------------------------------------------

class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


class MemoRef(CamelModel):
    content: str


class ChatMessageIn(CamelModel):
    role: Literal["assistant", "user"]
    content: str


class InterviewTurnRequest(CamelModel):
    theme_title: str = Field(..., description="Theme title; must not be empty.")
    theme_description: str = ""
    memos: List[Union[MemoRef, str]] = Field(default_factory=list)
    messages: List[ChatMessageIn] = Field(default_factory=list)
    is_skip: bool = False


class InterviewTurnResponse(CamelModel):
    content: str
    readiness: Optional[int] = None
    readiness_display: Optional[int] = None


class GenerateArticleRequest(CamelModel):
    theme_title: str
    theme_description: str = ""
    memos: List[Union[MemoRef, str]] = Field(default_factory=list)
    messages: List[ChatMessageIn] = Field(default_factory=list)
    target_length: int = DEFAULT_TARGET_LENGTH
    pronoun: Optional[str] = None
    writing_style: Optional[str] = None
    style_reference_id: Optional[int] = None


class ArticleTextResponse(CamelModel):
    title: str
    content: str


class RewriteRequest(CamelModel):
    article_id: int
    style_reference_id: int


class RewriteResponse(CamelModel):
    success: bool
    title: str
    content: str


class ThemeIn(CamelModel):
    title: str
    description: str = ""


class ThemeOut(CamelModel):
    id: int
    title: str
    description: str
    created_at: str
    updated_at: str


class MemoIn(CamelModel):
    content: str


class MemoOut(CamelModel):
    id: int
    theme_id: int
    content: str
    created_at: str


class StyleReferenceIn(CamelModel):
    label: str
    source_text: str
    is_default: bool = False


class StyleReferenceOut(CamelModel):
    id: int
    label: str
    source_text: str
    is_default: bool
    created_at: str
    updated_at: str


class ArticleRefIn(CamelModel):
    article_id: int


class ArticleRefOut(CamelModel):
    id: int
    theme_id: int
    article_id: int
    created_at: str
    article_title: str


class StartInterviewRequest(CamelModel):
    theme_id: int
    target_length: int = DEFAULT_TARGET_LENGTH


class AnswerRequest(CamelModel):
    content: str


class CompleteRequest(CamelModel):
    pronoun: Optional[str] = None
    writing_style: Optional[str] = None
    style_reference_id: Optional[int] = None
    article_id: Optional[int] = None


class InterviewOut(CamelModel):
    id: int
    theme_id: int
    target_length: int
    status: str
    created_at: str
    updated_at: str


class MessageOut(CamelModel):
    id: int
    role: str
    content: str
    created_at: str


class InterviewStateResponse(CamelModel):
    interview: InterviewOut
    messages: List[MessageOut]
    readiness: Optional[int] = None
    readiness_display: Optional[int] = None
    progress: int = 0
    stage: str = ""
    stage_message: str = ""
    can_complete: bool = False


class ArticleOut(CamelModel):
    id: int
    theme_id: int
    interview_id: Optional[int]
    title: str
    content: str
    word_count: int
    revision: int
    created_at: str
    updated_at: str


class CompleteResponse(CamelModel):
    interview: InterviewOut
    article: ArticleOut


class ArticleEditRequest(CamelModel):
    title: str
    content: str
    label: str = ""
    expected_revision: Optional[int] = None


class HistoryOut(CamelModel):
    id: int
    article_id: int
    title: str
    content: str
    word_count: int
    edit_label: str
    created_at: str


class RestoreRequest(CamelModel):
    history_id: int


class PromptVersionOut(CamelModel):
    id: str
    date: str
    model: str
    summary: str
    description: str
    changelog: Optional[str] = None
    is_current: bool = False


class PromptVersionsResponse(CamelModel):
    category: str
    current: str
    versions: List[PromptVersionOut]


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _memo_texts(memos: List[Union[MemoRef, str]]) -> List[str]:
    return [m.content if isinstance(m, MemoRef) else m for m in memos]


def _theme_context(title: str, description: str, memos: List[Union[MemoRef, str]], **extra) -> PromptContext:
    return PromptContext(
        theme_title=require_text(title, "themeTitle", THEME_TITLE_MAX),
        theme_description=(description or "").strip(),
        memos=memo_excerpts(_memo_texts(memos)),
        **extra,
    )


def _interview_state(outcome: TurnOutcome) -> InterviewStateResponse:
    display = outcome.readiness_display
    stage_label, stage_message = readiness_scale.stage(display)
    return InterviewStateResponse(
        interview=InterviewOut.model_validate(outcome.interview),
        messages=[MessageOut.model_validate(m) for m in outcome.messages],
        readiness=outcome.readiness,
        readiness_display=display,
        progress=readiness_scale.progress_percent(display),
        stage=stage_label,
        stage_message=stage_message,
        can_complete=outcome.can_complete,
    )


# ---------------------------------------------------------------------------
# Generation endpoints
# ---------------------------------------------------------------------------

@app.post("/interview-turn", response_model=InterviewTurnResponse, response_model_exclude_none=True)
async def interview_turn(req: InterviewTurnRequest) -> InterviewTurnResponse:
    """
    Stateless interview step: the caller sends the whole dialogue and gets
    the next question. With isSkip the pending question is answered by the
    skip sentinel first.
    """
    ctx = _theme_context(req.theme_title, req.theme_description, req.memos)
    messages = [{"role": m.role, "content": m.content} for m in req.messages]
    if req.is_skip:
        messages.append({"role": "user", "content": SKIP_SENTINEL})

    services = _services()
    reply = await services.engine.next_question(ctx, messages, registry=services.registry)
    logger.info("[interview-turn] msg_count=%d skip=%s readiness=%s prompt=%s",
                len(messages), req.is_skip, reply.readiness, reply.prompt_version)
    return InterviewTurnResponse(
        content=reply.content,
        readiness=reply.readiness,
        readiness_display=readiness_scale.rescale(reply.readiness),
    )


@app.post("/generate-article", response_model=ArticleTextResponse)
async def generate_article(
    req: GenerateArticleRequest,
    x_user_id: Optional[str] = Header(default=None),
) -> ArticleTextResponse:
    """
    Stateless synthesis from a full transcript. Using a stored style
    reference needs an acting user.
    """
    if not req.messages:
        raise ValidationError("messages must not be empty.")

    style_text = None
    if req.style_reference_id is not None:
        user_id = require_user(x_user_id)
        style_text = repository.get_style_reference(user_id, req.style_reference_id).source_text

    ctx = _theme_context(
        req.theme_title, req.theme_description, req.memos,
        target_length=require_target_length(req.target_length),
        pronoun=req.pronoun,
        writing_style=require_writing_style(req.writing_style),
        style_reference_text=style_text,
    )
    transcript = [{"role": m.role, "content": m.content} for m in req.messages]

    services = _services()
    draft = await services.engine.write_article(ctx, transcript, registry=services.registry)
    logger.info("[generate-article] chars=%d prompt=%s dropped_lines=%d",
                len(draft.content), draft.prompt_version, draft.dropped_lines)
    return ArticleTextResponse(title=draft.title, content=draft.content)


@app.post("/rewrite-article", response_model=RewriteResponse)
async def rewrite_article(
    req: RewriteRequest,
    x_user_id: Optional[str] = Header(default=None),
) -> RewriteResponse:
    article = await _services().editor.rewrite(x_user_id, req.article_id, req.style_reference_id)
    return RewriteResponse(success=True, title=article.title, content=article.content)


# ---------------------------------------------------------------------------
# Themes, memos, reference articles
# ---------------------------------------------------------------------------

@app.get("/themes", response_model=List[ThemeOut])
def list_themes(x_user_id: Optional[str] = Header(default=None)) -> List[ThemeOut]:
    user_id = require_user(x_user_id)
    return [ThemeOut.model_validate(t) for t in repository.list_themes(user_id)]


@app.post("/themes", response_model=ThemeOut, status_code=201)
def create_theme(req: ThemeIn, x_user_id: Optional[str] = Header(default=None)) -> ThemeOut:
    user_id = require_user(x_user_id)
    theme = repository.create_theme(
        user_id,
        require_text(req.title, "title", THEME_TITLE_MAX),
        require_text(req.description, "description", THEME_DESCRIPTION_MAX, min_len=0),
    )
    return ThemeOut.model_validate(theme)


@app.get("/themes/{theme_id}", response_model=ThemeOut)
def get_theme(theme_id: int, x_user_id: Optional[str] = Header(default=None)) -> ThemeOut:
    return ThemeOut.model_validate(repository.get_theme(require_user(x_user_id), theme_id))


@app.put("/themes/{theme_id}", response_model=ThemeOut)
def update_theme(theme_id: int, req: ThemeIn, x_user_id: Optional[str] = Header(default=None)) -> ThemeOut:
    user_id = require_user(x_user_id)
    theme = repository.update_theme(
        user_id,
        theme_id,
        require_text(req.title, "title", THEME_TITLE_MAX),
        require_text(req.description, "description", THEME_DESCRIPTION_MAX, min_len=0),
    )
    return ThemeOut.model_validate(theme)


@app.delete("/themes/{theme_id}", status_code=204)
def delete_theme(theme_id: int, x_user_id: Optional[str] = Header(default=None)) -> None:
    repository.delete_theme(require_user(x_user_id), theme_id)


@app.get("/themes/{theme_id}/memos", response_model=List[MemoOut])
def list_memos(theme_id: int, x_user_id: Optional[str] = Header(default=None)) -> List[MemoOut]:
    user_id = require_user(x_user_id)
    repository.get_theme(user_id, theme_id)
    return [MemoOut.model_validate(m) for m in repository.list_memos(user_id, theme_id)]


@app.post("/themes/{theme_id}/memos", response_model=MemoOut, status_code=201)
def create_memo(theme_id: int, req: MemoIn, x_user_id: Optional[str] = Header(default=None)) -> MemoOut:
    user_id = require_user(x_user_id)
    memo = repository.create_memo(user_id, theme_id, require_text(req.content, "content", MEMO_MAX))
    return MemoOut.model_validate(memo)


@app.delete("/memos/{memo_id}", status_code=204)
def delete_memo(memo_id: int, x_user_id: Optional[str] = Header(default=None)) -> None:
    repository.delete_memo(require_user(x_user_id), memo_id)


@app.get("/themes/{theme_id}/articles", response_model=List[ArticleOut])
def list_theme_articles(theme_id: int, x_user_id: Optional[str] = Header(default=None)) -> List[ArticleOut]:
    user_id = require_user(x_user_id)
    repository.get_theme(user_id, theme_id)
    return [ArticleOut.model_validate(a) for a in repository.list_articles(user_id, theme_id=theme_id)]


@app.get("/themes/{theme_id}/refs", response_model=List[ArticleRefOut])
def list_article_refs(theme_id: int, x_user_id: Optional[str] = Header(default=None)) -> List[ArticleRefOut]:
    user_id = require_user(x_user_id)
    return [ArticleRefOut.model_validate(r) for r in repository.list_article_refs(user_id, theme_id)]


@app.post("/themes/{theme_id}/refs", response_model=ArticleRefOut, status_code=201)
def add_article_ref(
    theme_id: int,
    req: ArticleRefIn,
    x_user_id: Optional[str] = Header(default=None),
) -> ArticleRefOut:
    ref = repository.add_article_ref(require_user(x_user_id), theme_id, req.article_id)
    return ArticleRefOut.model_validate(ref)


@app.delete("/refs/{ref_id}", status_code=204)
def remove_article_ref(ref_id: int, x_user_id: Optional[str] = Header(default=None)) -> None:
    repository.remove_article_ref(require_user(x_user_id), ref_id)


# ---------------------------------------------------------------------------
# Style references
# ---------------------------------------------------------------------------

@app.get("/style-refs", response_model=List[StyleReferenceOut])
def list_style_refs(x_user_id: Optional[str] = Header(default=None)) -> List[StyleReferenceOut]:
    user_id = require_user(x_user_id)
    return [StyleReferenceOut.model_validate(s) for s in repository.list_style_references(user_id)]


@app.post("/style-refs", response_model=StyleReferenceOut, status_code=201)
def create_style_ref(req: StyleReferenceIn, x_user_id: Optional[str] = Header(default=None)) -> StyleReferenceOut:
    user_id = require_user(x_user_id)
    style = repository.create_style_reference(
        user_id,
        require_text(req.label, "label", STYLE_LABEL_MAX),
        require_text(req.source_text, "sourceText", STYLE_TEXT_MAX),
        is_default=req.is_default,
    )
    return StyleReferenceOut.model_validate(style)


@app.put("/style-refs/{style_id}", response_model=StyleReferenceOut)
def update_style_ref(
    style_id: int,
    req: StyleReferenceIn,
    x_user_id: Optional[str] = Header(default=None),
) -> StyleReferenceOut:
    user_id = require_user(x_user_id)
    style = repository.update_style_reference(
        user_id,
        style_id,
        require_text(req.label, "label", STYLE_LABEL_MAX),
        require_text(req.source_text, "sourceText", STYLE_TEXT_MAX),
        is_default=req.is_default,
    )
    return StyleReferenceOut.model_validate(style)


@app.delete("/style-refs/{style_id}", status_code=204)
def delete_style_ref(style_id: int, x_user_id: Optional[str] = Header(default=None)) -> None:
    repository.delete_style_reference(require_user(x_user_id), style_id)


# ---------------------------------------------------------------------------
# Interviews (stateful)
# ---------------------------------------------------------------------------

@app.post("/interviews", response_model=InterviewStateResponse)
async def start_interview(
    req: StartInterviewRequest,
    x_user_id: Optional[str] = Header(default=None),
):
    outcome = await _services().conductor.start(x_user_id, req.theme_id, req.target_length)
    if outcome.dropped:
        return _dropped("the opening question")
    return _interview_state(outcome)


@app.get("/interviews/{interview_id}", response_model=InterviewStateResponse)
def get_interview(interview_id: int, x_user_id: Optional[str] = Header(default=None)) -> InterviewStateResponse:
    user_id = require_user(x_user_id)
    outcome = TurnOutcome(
        interview=repository.get_interview(user_id, interview_id),
        messages=repository.list_messages(interview_id),
    )
    return _interview_state(outcome)


@app.post("/interviews/{interview_id}/answer", response_model=InterviewStateResponse)
async def answer_interview(
    interview_id: int,
    req: AnswerRequest,
    x_user_id: Optional[str] = Header(default=None),
):
    outcome = await _services().conductor.answer(x_user_id, interview_id, req.content)
    if outcome.dropped:
        return _dropped("the answer")
    return _interview_state(outcome)


@app.post("/interviews/{interview_id}/skip", response_model=InterviewStateResponse)
async def skip_question(interview_id: int, x_user_id: Optional[str] = Header(default=None)):
    outcome = await _services().conductor.skip(x_user_id, interview_id)
    if outcome.dropped:
        return _dropped("the skip")
    return _interview_state(outcome)


@app.post("/interviews/{interview_id}/complete", response_model=CompleteResponse)
async def complete_interview(
    interview_id: int,
    req: Optional[CompleteRequest] = None,
    x_user_id: Optional[str] = Header(default=None),
):
    """
    Close the interview and write its article. Offered once the dialogue
    has at least one question and one answer.
    """
    user_id = require_user(x_user_id)
    interview = repository.get_interview(user_id, interview_id)
    if interview.is_active and not may_complete(repository.list_messages(interview_id)):
        raise InvalidTransition("The interview needs at least one answer before it can be completed.")

    req = req or CompleteRequest()
    options = CompletionOptions(
        pronoun=req.pronoun,
        writing_style=req.writing_style,
        style_reference_id=req.style_reference_id,
        article_id=req.article_id,
    )
    outcome = await _services().conductor.complete(user_id, interview_id, options)
    if outcome.dropped:
        return _dropped("the completion")
    return CompleteResponse(
        interview=InterviewOut.model_validate(outcome.interview),
        article=ArticleOut.model_validate(outcome.article),
    )


@app.post("/interviews/{interview_id}/close", response_model=InterviewOut)
async def close_interview(interview_id: int, x_user_id: Optional[str] = Header(default=None)) -> InterviewOut:
    """Finish the interview without writing an article."""
    interview = await _services().conductor.close(x_user_id, interview_id)
    return InterviewOut.model_validate(interview)


# ---------------------------------------------------------------------------
# Articles + edit history
# ---------------------------------------------------------------------------

@app.get("/articles/{article_id}", response_model=ArticleOut)
def get_article(article_id: int, x_user_id: Optional[str] = Header(default=None)) -> ArticleOut:
    return ArticleOut.model_validate(repository.get_article(require_user(x_user_id), article_id))


@app.put("/articles/{article_id}", response_model=ArticleOut)
def edit_article(
    article_id: int,
    req: ArticleEditRequest,
    x_user_id: Optional[str] = Header(default=None),
) -> ArticleOut:
    article = _services().editor.edit(
        x_user_id,
        article_id,
        req.title,
        req.content,
        label=req.label,
        expected_revision=req.expected_revision,
    )
    return ArticleOut.model_validate(article)


@app.delete("/articles/{article_id}", status_code=204)
def delete_article(article_id: int, x_user_id: Optional[str] = Header(default=None)) -> None:
    repository.delete_article(require_user(x_user_id), article_id)


@app.get("/articles/{article_id}/history", response_model=List[HistoryOut])
def article_history(
    article_id: int,
    limit: int = Query(HISTORY_LIMIT, ge=1, le=200),
    x_user_id: Optional[str] = Header(default=None),
) -> List[HistoryOut]:
    user_id = require_user(x_user_id)
    entries = _services().ledger.history(user_id, article_id, limit=limit)
    return [HistoryOut.model_validate(e) for e in entries]


@app.post("/articles/{article_id}/restore", response_model=ArticleOut)
def restore_article(
    article_id: int,
    req: RestoreRequest,
    x_user_id: Optional[str] = Header(default=None),
) -> ArticleOut:
    user_id = require_user(x_user_id)
    article = _services().ledger.restore(user_id, article_id, req.history_id)
    return ArticleOut.model_validate(article)


# ---------------------------------------------------------------------------
# Prompt versions + health
# ---------------------------------------------------------------------------

@app.get("/prompt-versions/{category}", response_model=PromptVersionsResponse)
def prompt_versions(category: str) -> PromptVersionsResponse:
    if category not in CATEGORIES:
        raise NotFound(f"Unknown prompt category: {category}")
    registry = _services().registry
    current = registry.current(category)
    versions = [
        PromptVersionOut(**v.to_public_dict(), is_current=(v.id == current.id))
        for v in registry.versions(category)
    ]
    return PromptVersionsResponse(category=category, current=current.id, versions=versions)


@app.get("/health")
def health_check() -> dict:
    """
    Very simple health check endpoint.
    """
    services = _services()
    payload = {
        "status": "ok",
        "generator": getattr(services.generator, "name", "unknown"),
        "interviewPrompt": services.registry.current("interview").id,
        "writingPrompt": services.registry.current("writing").id,
    }
    runtime_config = getattr(services.generator, "runtime_config", None)
    if runtime_config is not None:
        payload["runtime"] = runtime_config()
    return payload
