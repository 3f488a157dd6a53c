from __future__ import annotations

import logging
from functools import lru_cache

from fastapi import Depends, FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware

from tutor.assessment import AssessmentEngine
from tutor.config import SUBJECTS, Settings, get_settings
from tutor.conversation import Tutor
from tutor.errors import SessionBusy, UnsupportedCapability
from tutor.gemini_client import GeminiClient, GenerativeBackend
from tutor.media import MediaJobResolver, PollPolicy
from tutor.memory import SessionState, SessionStore
from tutor.schemas import (
    Attachment,
    AttachmentKind,
    ChatHistoryResponse,
    ChatMessageRequest,
    ChatMessageResponse,
    QuizAnswerRequest,
    QuizAnswerResponse,
    QuizSnapshot,
    QuizStartRequest,
    SpeechStatusResponse,
    SpeechUnsupportedRequest,
    StudyPlanRequest,
    StudyPlanResponse,
)

logger = logging.getLogger(__name__)

app = FastAPI(title="Study Tutor API", version="0.1.0")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)

_settings = get_settings()
store = SessionStore(maxsize=_settings.session_max, ttl_seconds=_settings.session_ttl_seconds)


@lru_cache
def get_backend() -> GenerativeBackend:
    return GeminiClient(get_settings())


def _tutor(backend: GenerativeBackend, settings: Settings) -> Tutor:
    return Tutor(backend, MediaJobResolver(backend, PollPolicy.from_settings(settings)))


def _engine(state: SessionState, backend: GenerativeBackend, settings: Settings) -> AssessmentEngine:
    if state.assessment is None:
        state.assessment = AssessmentEngine(backend, feedback_delay=settings.quiz_feedback_delay)
    return state.assessment


def _check_subject(subject: str) -> None:
    if subject not in SUBJECTS:
        raise HTTPException(status_code=400, detail=f"Unknown subject: {subject}")


def _quiz_or_404(session_id: str) -> QuizSnapshot:
    state = store.get(session_id)
    if state is None or state.assessment is None or state.assessment.session is None:
        raise HTTPException(status_code=404, detail="No quiz has been started for this session.")
    return state.assessment.session.snapshot()


@app.get("/health")
def health() -> dict:
    return {"ok": True}


@app.get("/subjects")
def subjects() -> dict:
    return {"subjects": list(SUBJECTS)}


@app.post("/chat/message", response_model=ChatMessageResponse)
async def chat_message(
    req: ChatMessageRequest,
    backend: GenerativeBackend = Depends(get_backend),
    settings: Settings = Depends(get_settings),
) -> ChatMessageResponse:
    _check_subject(req.subject)
    conversation = store.get_or_create(req.sessionId).conversation(req.subject)

    attachment = Attachment(kind=AttachmentKind.image, uri=req.image) if req.image else None
    try:
        reply = await _tutor(backend, settings).send(conversation, req.text, attachment)
    except SessionBusy as e:
        raise HTTPException(status_code=409, detail=str(e))

    return ChatMessageResponse(
        sessionId=req.sessionId,
        subject=req.subject,
        messages=conversation.messages,
        reply=reply,
    )


@app.get("/chat/history", response_model=ChatHistoryResponse)
def chat_history(sessionId: str, subject: str) -> ChatHistoryResponse:
    _check_subject(subject)
    state = store.get(sessionId)
    messages = state.conversation(subject).messages if state else []
    return ChatHistoryResponse(sessionId=sessionId, subject=subject, messages=messages)


@app.post("/quiz/start", response_model=QuizSnapshot)
async def quiz_start(
    req: QuizStartRequest,
    backend: GenerativeBackend = Depends(get_backend),
    settings: Settings = Depends(get_settings),
) -> QuizSnapshot:
    engine = _engine(store.get_or_create(req.sessionId), backend, settings)
    session = await engine.start_session(req.mode)
    return session.snapshot()


@app.post("/quiz/answer", response_model=QuizAnswerResponse)
async def quiz_answer(req: QuizAnswerRequest) -> QuizAnswerResponse:
    _quiz_or_404(req.sessionId)
    engine = store.get_or_create(req.sessionId).assessment
    # A restart during the feedback delay replaces engine.session; report the run that was graded.
    session = engine.session
    outcome = await engine.submit_answer(req.label)
    return QuizAnswerResponse(outcome=outcome, quiz=session.snapshot())


@app.get("/quiz", response_model=QuizSnapshot)
def quiz_get(sessionId: str) -> QuizSnapshot:
    return _quiz_or_404(sessionId)


@app.post("/study-plan", response_model=StudyPlanResponse)
async def study_plan(
    req: StudyPlanRequest,
    backend: GenerativeBackend = Depends(get_backend),
    settings: Settings = Depends(get_settings),
) -> StudyPlanResponse:
    text = await _tutor(backend, settings).study_plan(req.topic)
    return StudyPlanResponse(topic=req.topic, text=text)


@app.post("/speech/unsupported", response_model=SpeechStatusResponse)
def speech_unsupported(req: SpeechUnsupportedRequest) -> SpeechStatusResponse:
    state = store.get_or_create(req.sessionId)
    err = UnsupportedCapability(req.modality.value)
    logger.warning("Session %s: %s", req.sessionId, err)
    state.disable(err)
    return SpeechStatusResponse(sessionId=req.sessionId, enabled=state.enabled_speech)


@app.get("/speech", response_model=SpeechStatusResponse)
def speech_status(sessionId: str) -> SpeechStatusResponse:
    state = store.get(sessionId)
    enabled = state.enabled_speech if state else SessionState().enabled_speech
    return SpeechStatusResponse(sessionId=sessionId, enabled=enabled)
