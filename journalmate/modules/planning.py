"""
Planning Module for JournalMate.

Handles one user message of a conversational planning session:
1. Resolve the live session for (user, mode), or the one named explicitly
2. Classify the domain (first message only)
3. Extract the stated fields from the transcript
4. Ask the next batch of questions, or generate the plan once ready
5. With a plan pending, read the reply as confirm / reject / refine
6. On confirmation, write the plan as an Activity exactly once

Quick mode generates after 3 questions, smart mode after 5. The whole turn
runs under the per-(user, mode) lock of the session store.

Reference:
- planning_state.py (states and data)
- planning_questions.py, planning_generator.py, planning_confirmation.py
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

import structlog

from journalmate.config.planner import PlannerSettings, PlanningMode
from journalmate.infra.monitoring import record_plan, record_turn
from journalmate.lib.errors import GENERATION_FAILED, MATERIALIZATION_FAILED, get_error_message
from journalmate.lib.exceptions import (
    ContentExtractionError,
    GenerationFailed,
    MaterializationFailed,
    SessionNotFound,
    StateError,
)
from journalmate.lib.logging import bind_planner_context
from journalmate.modules.planning_classifier import DomainClassifier
from journalmate.modules.planning_confirmation import Confirmation, ConfirmationDetector
from journalmate.modules.planning_generator import PlanGenerator, render_plan
from journalmate.modules.planning_materializer import ActivityMaterializer
from journalmate.modules.planning_parsing import FieldExtractor
from journalmate.modules.planning_questions import (
    AskQuestions,
    Progress,
    QuestionPlanner,
    latest_user_turn,
    phrase_questions,
    render_questions,
)
from journalmate.modules.planning_state import (
    Domain,
    Plan,
    PlanningSession,
    PlanningState,
    Speaker,
    Turn,
)
from journalmate.services.content_extraction import ContentExtractor
from journalmate.services.llm import LLMClient
from journalmate.services.planner_storage import PlannerStorage
from journalmate.services.redis_service import RedisService
from journalmate.services.session_store import LockRegistry, SessionStore, advance

logger = structlog.get_logger(__name__)

UNSAVED_PLAN_REPLY = (
    "Your confirmed plan hasn't been saved yet. Reply \"yes\" and I'll try saving it again."
)


# =============================================================================
# Response
# =============================================================================

@dataclass
class PlannerResponse:
    """What one planner turn returns to the caller."""

    text: str
    session_id: str
    state: PlanningState
    mode: PlanningMode
    progress: Progress
    domain: Domain | None = None
    plan: Plan | None = None
    activity_id: str | None = None
    # Set when the turn failed in a retryable way (generation / materialization)
    error_code: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "text": self.text,
            "session_id": self.session_id,
            "state": self.state.value,
            "mode": self.mode.value,
            "domain": self.domain.value if self.domain else None,
            "progress": {
                "gathered": self.progress.gathered,
                "total": self.progress.total,
                "mode": self.progress.mode.value,
                "label": self.progress.render(),
            },
            "plan": self.plan.to_dict() if self.plan else None,
            "activity_id": self.activity_id,
            "error_code": self.error_code,
        }


# =============================================================================
# Planning Module
# =============================================================================

class PlanningModule:
    """
    Conversational planner: one call per user message.

    Collaborators are injected so tests can swap any of them; use
    ``PlanningModule.build`` for the standard wiring.
    """

    name: str = "planning"

    def __init__(
        self,
        store: SessionStore,
        classifier: DomainClassifier,
        extractor: FieldExtractor,
        questions: QuestionPlanner,
        generator: PlanGenerator,
        detector: ConfirmationDetector,
        materializer: ActivityMaterializer,
        content_extractor: ContentExtractor | None = None,
        phrasing_llm: LLMClient | None = None,
    ) -> None:
        self.store = store
        self.classifier = classifier
        self.extractor = extractor
        self.questions = questions
        self.generator = generator
        self.detector = detector
        self.materializer = materializer
        self.content_extractor = content_extractor
        self.phrasing_llm = phrasing_llm

    @classmethod
    def build(
        cls,
        storage: PlannerStorage,
        llm: LLMClient | None = None,
        settings: PlannerSettings | None = None,
        redis_service: RedisService | None = None,
        content_extractor: ContentExtractor | None = None,
        locks: LockRegistry | None = None,
    ) -> PlanningModule:
        settings = settings or PlannerSettings()
        store = SessionStore(
            storage,
            redis_service=redis_service,
            ttl_seconds=settings.session_ttl_seconds,
            locks=locks,
        )
        return cls(
            store=store,
            classifier=DomainClassifier(llm=llm),
            extractor=FieldExtractor(),
            questions=QuestionPlanner(),
            generator=PlanGenerator(llm=llm, ai_enabled=settings.ai_plans_enabled),
            detector=ConfirmationDetector(),
            materializer=ActivityMaterializer(storage),
            content_extractor=content_extractor,
            phrasing_llm=llm if settings.ai_plans_enabled else None,
        )

    # =========================================================================
    # Entry point
    # =========================================================================

    async def handle_message(
        self,
        user_id: str,
        mode: PlanningMode | str,
        text: str,
        session_id: str | None = None,
        source_urls: list[str] | None = None,
    ) -> PlannerResponse:
        """
        Process one user message.

        Raises:
            SessionNotFound: an explicit session_id is unknown or belongs to
                someone else (an abandoned or stale one is replaced by a
                fresh session)
        """
        mode = PlanningMode(mode)
        async with self.store.lock(user_id, mode):
            session = await self._resolve_session(user_id, mode, session_id)
            bind_planner_context(session.session_id, user_id, mode.value)

            if session.state == PlanningState.COMPLETED:
                return await self._replay_completed(session)

            self.store.append_turn(session, Turn(speaker=Speaker.USER, text=text))
            await self._append_sources(session, source_urls or [])

            if session.domain is None:
                session.domain = await self.classifier.classify(text)
                logger.info("planning_domain_classified", domain=session.domain.value)

            if session.state == PlanningState.PLAN_PENDING:
                response = await self._handle_plan_reply(session)
            elif session.state == PlanningState.CONFIRMING:
                response = await self._handle_unsaved_reply(session)
            else:
                response = await self._collect(session)

        record_turn(mode.value, response.state.value)
        return response

    async def retry_materialization(self, user_id: str, session_id: str) -> PlannerResponse:
        """Retry saving a confirmed plan after a failed write (idempotent)."""
        session = await self.store.load(session_id)
        if session is None or session.user_id != user_id:
            raise SessionNotFound(session_id)
        async with self.store.lock(user_id, session.mode):
            session = await self.store.load(session_id)
            if session is None:
                raise SessionNotFound(session_id)
            if session.state == PlanningState.COMPLETED:
                return await self._replay_completed(session)
            if session.state != PlanningState.CONFIRMING:
                raise StateError(f"Session {session_id} is not awaiting a save ({session.state.value})")
            return await self._materialize(session)

    async def get_session(self, user_id: str, session_id: str) -> PlanningSession:
        session = await self.store.load(session_id)
        if session is None or session.user_id != user_id:
            raise SessionNotFound(session_id)
        return session

    # =========================================================================
    # Session resolution
    # =========================================================================

    async def _resolve_session(
        self,
        user_id: str,
        mode: PlanningMode,
        session_id: str | None,
    ) -> PlanningSession:
        if session_id is None:
            return await self.store.get_or_create(user_id, mode)

        loaded = await self.store.load(session_id)
        if loaded is None or loaded.user_id != user_id or loaded.mode != mode:
            raise SessionNotFound(session_id)
        if loaded.state == PlanningState.COMPLETED:
            return loaded
        try:
            return await self.store.get(session_id)
        except SessionNotFound as exc:
            # Abandoned or stale: the message starts a fresh session instead
            logger.info("planning_session_restarted", previous_session_id=session_id, reason=exc.reason)
            return await self.store.get_or_create(user_id, mode)

    async def _append_sources(self, session: PlanningSession, source_urls: list[str]) -> None:
        if self.content_extractor is None:
            return
        for reference in source_urls:
            try:
                content = await self.content_extractor.extract(reference)
            except ContentExtractionError as exc:
                logger.warning("source_extraction_failed", reference=reference[:200], error=str(exc))
                continue
            self.store.append_turn(session, Turn(speaker=Speaker.SOURCE, text=content.text))

    # =========================================================================
    # Collecting
    # =========================================================================

    async def _collect(self, session: PlanningSession) -> PlannerResponse:
        domain = session.domain or Domain.GENERIC
        extraction = self.extractor.extract(session.transcript, domain)
        session.stated_fields = extraction.stated

        if session.state == PlanningState.COLLECTING:
            action = self.questions.next_action(session, extraction)
            if isinstance(action, AskQuestions):
                return await self._ask(session, action)
            logger.info("planning_ready", reason=action.reason, question_count=session.question_count)
            advance(session, PlanningState.READY_TO_GENERATE)

        return await self._generate(session)

    async def _ask(self, session: PlanningSession, action: AskQuestions) -> PlannerResponse:
        first_turn = session.question_count == 0 and not session.asked_fields
        self.questions.record_asked(session, action)
        progress = self.questions.progress(session)
        fallback = render_questions(action, session.domain or Domain.GENERIC, progress, first_turn=first_turn)
        text = await phrase_questions(self.phrasing_llm, session, action, fallback)
        return await self._reply(session, text, asked=action.fields)

    # =========================================================================
    # Generation
    # =========================================================================

    async def _generate(self, session: PlanningSession) -> PlannerResponse:
        sources = [turn.text for turn in session.transcript if turn.speaker == Speaker.SOURCE]
        try:
            plan = await self.generator.generate(session, sources)
        except GenerationFailed as exc:
            logger.warning("plan_generation_failed", error=str(exc))
            return await self._reply(
                session, get_error_message(GENERATION_FAILED), error_code=GENERATION_FAILED,
            )

        # A plan is only accepted while readiness still holds
        extraction = self.extractor.extract(session.transcript, session.domain or Domain.GENERIC)
        action = self.questions.next_action(session, extraction)
        if isinstance(action, AskQuestions):
            logger.warning("premature_plan_discarded", question_count=session.question_count)
            advance(session, PlanningState.COLLECTING)
            return await self._ask(session, action)

        session.pending_plan = plan
        advance(session, PlanningState.PLAN_PENDING)
        record_plan(plan.domain.value, plan.source)
        logger.info("plan_generated", source=plan.source, tasks=len(plan.tasks), budget=plan.budget is not None)
        return await self._reply(session, render_plan(plan, session.stated_fields), plan=plan)

    # =========================================================================
    # Confirmation
    # =========================================================================

    async def _handle_plan_reply(self, session: PlanningSession) -> PlannerResponse:
        turn = latest_user_turn(session.transcript)
        decision = self.detector.detect(turn, session) if turn else Confirmation.REFINE
        logger.info("plan_reply_classified", decision=decision.value)

        if decision == Confirmation.AFFIRM:
            advance(session, PlanningState.CONFIRMING)
            await self.store.save(session)
            return await self._materialize(session)

        if decision == Confirmation.REJECT:
            advance(session, PlanningState.COLLECTING)
            return await self._reply(
                session,
                "No problem, I've set that plan aside. Tell me what you'd like instead.",
            )

        previous = dict(session.stated_fields)
        advance(session, PlanningState.COLLECTING)
        extraction = self.extractor.extract(session.transcript, session.domain or Domain.GENERIC)
        session.stated_fields = extraction.stated
        if extraction.stated != previous:
            return await self._collect(session)
        return await self._reply(
            session,
            "Sure, what would you like to change? For example a different budget, dates or place.",
        )

    async def _handle_unsaved_reply(self, session: PlanningSession) -> PlannerResponse:
        """A confirmed plan whose save failed: only an affirmation retries the save."""
        turn = latest_user_turn(session.transcript)
        if turn is not None and self.detector.detect(turn, session) == Confirmation.AFFIRM:
            return await self._materialize(session)
        return await self._reply(session, UNSAVED_PLAN_REPLY, plan=session.pending_plan)

    async def _materialize(self, session: PlanningSession) -> PlannerResponse:
        plan = session.pending_plan
        try:
            activity_id = await self.materializer.materialize(session)
        except MaterializationFailed:
            # Session stays confirming; a "yes" or the retry endpoint tries again
            return self._response(
                session, get_error_message(MATERIALIZATION_FAILED), plan=plan, error_code=MATERIALIZATION_FAILED,
            )

        title = plan.title if plan else "Your plan"
        count = len(plan.tasks) if plan else 0
        return await self._reply(
            session,
            f"Saved! \"{title}\" is now an activity with {count} tasks.",
            plan=plan,
            activity_id=activity_id,
        )

    async def _replay_completed(self, session: PlanningSession) -> PlannerResponse:
        activity_id = await self.materializer.materialize(session)
        return self._response(session, "This plan is already saved as an activity.", activity_id=activity_id)

    # =========================================================================
    # Helpers
    # =========================================================================

    async def _reply(
        self,
        session: PlanningSession,
        text: str,
        plan: Plan | None = None,
        activity_id: str | None = None,
        error_code: str | None = None,
        asked: list[str] | None = None,
    ) -> PlannerResponse:
        self.store.append_turn(session, Turn(speaker=Speaker.ASSISTANT, text=text, asked=list(asked or [])))
        await self.store.save(session)
        return self._response(session, text, plan=plan, activity_id=activity_id, error_code=error_code)

    def _response(
        self,
        session: PlanningSession,
        text: str,
        plan: Plan | None = None,
        activity_id: str | None = None,
        error_code: str | None = None,
    ) -> PlannerResponse:
        return PlannerResponse(
            text=text,
            session_id=session.session_id,
            state=session.state,
            mode=session.mode,
            progress=self.questions.progress(session),
            domain=session.domain,
            plan=plan or session.pending_plan,
            activity_id=activity_id or session.activity_id,
            error_code=error_code,
        )


__all__ = ["PlannerResponse", "PlanningModule", "UNSAVED_PLAN_REPLY"]
