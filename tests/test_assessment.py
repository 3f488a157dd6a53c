"""Tests for the quiz state machine."""

from __future__ import annotations

import asyncio

import pytest

from tutor.assessment import AssessmentEngine, QuizSession, grade, item_count
from tutor.config import SUBJECTS
from tutor.errors import UpstreamUnavailable
from tutor.protocol import parse_batch, parse_single
from tutor.schemas import Outcome, QuizMode, QuizState


def _batch(n: int, correct: str = "A", close: str = "B") -> str:
    return "\n---\n".join(
        f"SORU: Soru {i}\nA) a{i}\nB) b{i}\nC) c{i}\nD) d{i}\nCEVAP: {correct}\nYAKIN: {close}" for i in range(1, n + 1)
    )


@pytest.fixture
def engine(backend, clock) -> AssessmentEngine:
    return AssessmentEngine(backend, feedback_delay=1.5, sleep=clock.sleep)


async def _answer_all(engine: AssessmentEngine, labels: list[str]) -> list[Outcome | None]:
    return [await engine.submit_answer(label) for label in labels]


# ── Generation ───────────────────────────────────────────────


class TestStartSession:
    def test_item_counts(self):
        assert item_count(QuizMode.short) == 5
        assert item_count(QuizMode.marathon) == 100

    async def test_short_quiz_loads_items(self, engine, backend):
        backend.text_replies = [_batch(5)]
        session = await engine.start_session(QuizMode.short)

        assert session.state is QuizState.active
        assert len(session.items) == 5
        assert session.cursor == 0
        assert session.score == 0
        assert session.outcomes == {}
        prompt = backend.text_calls[0]["prompt"]
        assert "5" in prompt
        for subject in SUBJECTS:
            assert subject in prompt

    async def test_marathon_requests_hundred(self, engine, backend):
        backend.text_replies = [_batch(3)]
        session = await engine.start_session(QuizMode.marathon)
        assert "100" in backend.text_calls[0]["prompt"]
        assert session.mode is QuizMode.marathon
        assert len(session.items) == 3

    async def test_extra_items_are_cut_to_mode_size(self, engine, backend):
        backend.text_replies = [_batch(7)]
        session = await engine.start_session(QuizMode.short)
        assert len(session.items) == 5

    @pytest.mark.parametrize("reply", ["Üzgünüm, soru hazırlayamadım.", "", UpstreamUnavailable("down")])
    async def test_unusable_batch_is_empty(self, engine, backend, reply):
        backend.text_replies = [reply]
        session = await engine.start_session(QuizMode.short)
        assert session.state is QuizState.empty
        assert session.items == []
        assert await engine.submit_answer("A") is None

    async def test_restart_discards_previous_run(self, engine, backend):
        backend.text_replies = [_batch(5), _batch(5)]
        await engine.start_session(QuizMode.short)
        await _answer_all(engine, ["A", "A"])

        session = await engine.start_session(QuizMode.short)
        assert session.cursor == 0
        assert session.score == 0
        assert session.outcomes == {}
        assert engine.session is session

    async def test_stale_batch_is_dropped(self, engine, backend):
        gate = asyncio.Event()
        backend.text_replies = [(gate, _batch(5, correct="A")), _batch(2, correct="D")]

        stale = asyncio.create_task(engine.start_session(QuizMode.short))
        await asyncio.sleep(0)
        fresh = await engine.start_session(QuizMode.short)
        gate.set()
        returned = await stale

        assert returned is fresh
        assert engine.session is fresh
        assert len(fresh.items) == 2
        assert [i.correctLabel for i in fresh.items] == ["D", "D"]


# ── Answering ────────────────────────────────────────────────


class TestSubmitAnswer:
    async def test_all_correct(self, engine, backend, clock):
        backend.text_replies = [_batch(5)]
        await engine.start_session(QuizMode.short)
        outcomes = await _answer_all(engine, ["A"] * 5)

        session = engine.session
        assert outcomes == [Outcome.correct] * 5
        assert session.state is QuizState.finished
        assert session.cursor == 5
        assert session.final_score == 100
        assert clock.sleeps == [1.5] * 5

    async def test_all_incorrect(self, engine, backend):
        backend.text_replies = [_batch(5)]
        await engine.start_session(QuizMode.short)
        await _answer_all(engine, ["D"] * 5)
        assert engine.session.final_score == 0
        assert set(engine.session.outcomes.values()) == {Outcome.incorrect}

    async def test_three_correct_two_close(self, engine, backend):
        backend.text_replies = [_batch(5)]
        await engine.start_session(QuizMode.short)
        await _answer_all(engine, ["A", "B", "A", "B", "A"])

        session = engine.session
        assert session.outcomes == {
            0: Outcome.correct,
            1: Outcome.close,
            2: Outcome.correct,
            3: Outcome.close,
            4: Outcome.correct,
        }
        assert session.final_score == 80

    async def test_score_rounds_half_up(self, engine, backend):
        backend.text_replies = [_batch(4)]
        await engine.start_session(QuizMode.short)
        await _answer_all(engine, ["B", "C", "C", "C"])
        assert engine.session.score == 12.5
        assert engine.session.final_score == 13

    async def test_score_never_exceeds_hundred(self, engine, backend):
        backend.text_replies = [_batch(3)]
        await engine.start_session(QuizMode.short)
        await _answer_all(engine, ["A"] * 3)
        assert engine.session.final_score == 100

    async def test_double_submission_registers_first_only(self, engine, backend):
        backend.text_replies = [_batch(5)]
        await engine.start_session(QuizMode.short)

        first, second = await asyncio.gather(engine.submit_answer("A"), engine.submit_answer("D"))

        assert first is Outcome.correct
        assert second is None
        assert engine.session.outcomes == {0: Outcome.correct}
        assert engine.session.cursor == 1

    async def test_pending_selection_during_feedback(self, backend):
        gate = asyncio.Event()

        async def held(_seconds):
            await gate.wait()

        engine = AssessmentEngine(backend, sleep=held)
        backend.text_replies = [_batch(5)]
        await engine.start_session(QuizMode.short)

        task = asyncio.create_task(engine.submit_answer("B"))
        await asyncio.sleep(0)
        assert engine.session.pendingSelection == "B"
        assert engine.session.cursor == 0
        assert engine.session.snapshot().pendingSelection == "B"

        gate.set()
        assert await task is Outcome.close
        assert engine.session.pendingSelection is None
        assert engine.session.cursor == 1

    async def test_finished_run_is_read_only(self, engine, backend):
        backend.text_replies = [_batch(1)]
        await engine.start_session(QuizMode.short)
        await engine.submit_answer("A")
        assert engine.session.state is QuizState.finished
        assert await engine.submit_answer("A") is None
        assert engine.session.cursor == 1

    async def test_no_session(self, engine):
        assert await engine.submit_answer("A") is None


# ── Grading rules ────────────────────────────────────────────


class TestGrade:
    def test_correct_beats_close(self):
        item = parse_single("SORU: Q A) a B) b CEVAP: A YAKIN: A")
        assert grade(item, "A") is Outcome.correct
        assert grade(item, "B") is Outcome.incorrect

    def test_ungradable_item(self):
        item = parse_single("SORU: Q A) a B) b C) c YAKIN: C")
        assert grade(item, "A") is Outcome.incorrect
        assert grade(item, "C") is Outcome.close

    def test_outcome_is_never_overwritten(self):
        session = QuizSession(mode=QuizMode.short)
        session.load([parse_single("SORU: Q A) a B) b CEVAP: A")])
        session.record("A")
        with pytest.raises(RuntimeError):
            session.record("B")

    def test_nothing_to_answer_outside_active_run(self):
        session = QuizSession(mode=QuizMode.short)
        session.load([])
        assert session.state is QuizState.empty
        with pytest.raises(RuntimeError):
            session.record("A")

    def test_current_item_follows_cursor(self):
        session = QuizSession(mode=QuizMode.short)
        session.load(parse_batch("SORU: Q1 A) a CEVAP: A --- SORU: Q2 A) a CEVAP: A"))
        assert session.current_item.body == "Q1"
        session.record("A")
        session.advance()
        assert session.current_item.body == "Q2"
        session.record("A")
        session.advance()
        assert session.current_item is None
