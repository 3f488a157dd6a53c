"""Quiz runs: batch generation, then a single pass over the items.

States go ``loading -> active -> finished``; a batch that yields no usable items
lands in ``empty`` and stays there until the learner starts again. Every start bumps
a generation counter so a batch that arrives after a restart is thrown away instead
of overwriting the newer run.
"""

from __future__ import annotations

import asyncio
import logging
import math
from dataclasses import dataclass, field
from typing import Awaitable, Callable

from tutor import prompts
from tutor.config import MARATHON_QUIZ_ITEMS, SHORT_QUIZ_ITEMS, SUBJECTS
from tutor.errors import MalformedResponse, UpstreamUnavailable
from tutor.gemini_client import GenerativeBackend
from tutor.protocol import parse_batch
from tutor.schemas import Message, Outcome, QuizMode, QuizSnapshot, QuizState

logger = logging.getLogger(__name__)

FULL_CREDIT = 100.0
CLOSE_CREDIT = 50.0


def item_count(mode: QuizMode) -> int:
    return MARATHON_QUIZ_ITEMS if mode is QuizMode.marathon else SHORT_QUIZ_ITEMS


def grade(item: Message, label: str) -> Outcome:
    # Correctness is checked strictly before closeness; a close label equal to the
    # correct one is ignored so it can never be counted twice.
    if item.correctLabel is not None and label == item.correctLabel:
        return Outcome.correct
    if item.closeLabel is not None and item.closeLabel != item.correctLabel and label == item.closeLabel:
        return Outcome.close
    return Outcome.incorrect


def _usable_items(raw: str, count: int) -> list[Message]:
    items = [item for item in parse_batch(raw) if item.options]
    if not items:
        raise MalformedResponse(f"no usable quiz items in a {len(raw)}-character reply")
    return items[:count]


@dataclass
class QuizSession:
    mode: QuizMode
    generation: int = 0
    state: QuizState = QuizState.loading
    items: list[Message] = field(default_factory=list)
    cursor: int = 0
    outcomes: dict[int, Outcome] = field(default_factory=dict)
    score: float = 0.0
    pendingSelection: str | None = None

    @property
    def current_item(self) -> Message | None:
        if self.state is not QuizState.active:
            return None
        return self.items[self.cursor]

    @property
    def final_score(self) -> int:
        return int(math.floor(min(self.score, FULL_CREDIT) + 0.5))

    def load(self, items: list[Message]) -> None:
        self.items = list(items)
        self.state = QuizState.active if self.items else QuizState.empty

    def record(self, label: str) -> Outcome:
        """Grade ``label`` against the current item and hold it as the pending selection."""
        item = self.current_item
        if item is None:
            raise RuntimeError(f"quiz is {self.state.value}, nothing to answer")
        if self.cursor in self.outcomes:
            raise RuntimeError(f"item {self.cursor} already has an outcome")
        outcome = grade(item, label)
        n = len(self.items)
        if outcome is Outcome.correct:
            self.score += FULL_CREDIT / n
        elif outcome is Outcome.close:
            self.score += CLOSE_CREDIT / n
        self.outcomes[self.cursor] = outcome
        self.pendingSelection = label
        return outcome

    def advance(self) -> None:
        self.pendingSelection = None
        self.cursor += 1
        if self.cursor == len(self.items):
            self.state = QuizState.finished

    def snapshot(self) -> QuizSnapshot:
        return QuizSnapshot(
            mode=self.mode,
            state=self.state,
            items=self.items,
            cursor=self.cursor,
            outcomes=dict(self.outcomes),
            score=self.score,
            finalScore=self.final_score,
            pendingSelection=self.pendingSelection,
        )


class AssessmentEngine:
    def __init__(
        self,
        backend: GenerativeBackend,
        *,
        feedback_delay: float = 1.5,
        subjects: tuple[str, ...] = SUBJECTS,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.backend = backend
        self.feedback_delay = feedback_delay
        self.subjects = subjects
        self._sleep = sleep
        self._generation = 0
        self.session: QuizSession | None = None

    async def start_session(self, mode: QuizMode) -> QuizSession:
        self._generation += 1
        generation = self._generation
        session = QuizSession(mode=mode, generation=generation)
        self.session = session

        count = item_count(mode)
        try:
            raw = await self.backend.generate_text(prompts.quiz_batch_prompt(count, self.subjects))
        except UpstreamUnavailable:
            logger.exception("Quiz batch generation failed")
            raw = None

        if generation != self._generation:
            logger.info("Discarding quiz batch for generation %d (current is %d)", generation, self._generation)
            return self.session

        items: list[Message] = []
        if raw is not None:
            try:
                items = _usable_items(raw, count)
            except MalformedResponse as e:
                logger.warning("Quiz batch for %s mode: %s", mode.value, e)
        session.load(items)
        return session

    async def submit_answer(self, label: str) -> Outcome | None:
        """Grade ``label``, hold it for the feedback delay, then move to the next item.

        Returns None when the answer is ignored: no active run, or a previous answer
        is still being shown.
        """
        session = self.session
        if session is None or session.state is not QuizState.active or session.pendingSelection is not None:
            return None

        outcome = session.record(label)
        await self._sleep(self.feedback_delay)
        session.advance()
        return outcome
