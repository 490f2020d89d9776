"""
Navigation through a running exam.

The controller owns the live Session of one (user, test) pair. Every user
action mutates the session and is followed by a save before it returns.
The countdown and autosave timers call back into the controller from
their own threads, so all public methods take the controller lock. The
remote submission of a finished session runs outside it.
"""
from __future__ import annotations

import logging
import threading

from satsession.engine.highlights import Highlight, HighlightController
from satsession.engine.scoring import CompletionReporter, CompletionResult, build_summary
from satsession.engine.session import SaveTier, Session, SessionStatus, SessionView
from satsession.engine.timers import SessionTimers
from satsession.errors import InvalidActionError
from satsession.models.content import AnswerKind, Question, Section, Test
from satsession.services.session_store import SessionStore
from satsession.utils import format_clock

log = logging.getLogger(__name__)

FINISHED = (SessionStatus.COMPLETED_PENDING, SessionStatus.COMPLETED)


class NavigationController:
    """Moves a session through questions, sections and completion."""

    def __init__(
        self,
        test: Test,
        session: Session,
        store: SessionStore,
        reporter: CompletionReporter,
    ):
        self.test = test
        self.session = session
        self.store = store
        self.reporter = reporter
        self.lock = threading.RLock()
        self.highlighter = HighlightController(session.highlights)
        self.timers: SessionTimers | None = None
        self.last_result: CompletionResult | None = None
        # Transient per-question state, rebuilt on every question change
        self.selected_answer: str | None = None
        self.eliminated: set[str] = set()
        self.marked = False

    @classmethod
    def open(
        cls,
        test: Test,
        store: SessionStore,
        reporter: CompletionReporter,
    ) -> "NavigationController":
        """Resume the stored session of ``test`` or start a fresh one."""
        session = store.load(test.id, test)
        if session is None or session.status is SessionStatus.COMPLETED:
            session = Session(
                test_id=test.id,
                user_id=store.user_id,
                time_left=test.sections[0].time_limit_seconds,
            )
            log.info("Starting test %s for %s", test.id, store.user_id)
        else:
            log.info(
                "Resuming test %s for %s at %d-%d",
                test.id,
                store.user_id,
                session.current_section,
                session.current_question,
            )
        if session.status is SessionStatus.INCOMPLETE_EXIT:
            session.status = SessionStatus.IN_PROGRESS

        controller = cls(test, session, store, reporter)
        controller._normalize_position()
        controller._load_question()
        store.save(session)
        return controller

    # ------------------------------------------------------------------
    # State helpers
    # ------------------------------------------------------------------

    @property
    def section(self) -> Section:
        return self.test.sections[self.session.current_section]

    @property
    def question(self) -> Question:
        return self.section.questions[self.session.current_question - 1]

    @property
    def is_finished(self) -> bool:
        return self.session.status in FINISHED

    def _normalize_position(self) -> None:
        session = self.session
        session.current_section = min(max(session.current_section, 0), len(self.test.sections) - 1)
        count = len(self.section.questions)
        session.current_question = min(max(session.current_question, 1), count)
        if session.status is SessionStatus.COMPLETED_PENDING:
            session.view = SessionView.COMPLETED
        elif session.view is SessionView.COMPLETED:
            session.view = SessionView.SECTION_REVIEW

    def _load_question(self) -> None:
        """Reset transient state and show the current question's record."""
        question = self.question
        self.selected_answer = self.session.answers.get(question.id)
        self.eliminated = set()
        self.marked = question.id in self.session.marked
        self.highlighter.display(question.id, question.display_text)

    def _persist(self) -> SaveTier | None:
        return self.store.save(self.session)

    def _require_active(self) -> None:
        if self.is_finished:
            raise InvalidActionError(f"Test {self.test.id} is already finished")

    def _require_answering(self) -> None:
        self._require_active()
        if self.session.view is not SessionView.ANSWERING:
            raise InvalidActionError("No question is open")

    # ------------------------------------------------------------------
    # Answers
    # ------------------------------------------------------------------

    def select_answer(self, value: str) -> None:
        with self.lock:
            self._require_answering()
            question = self.question
            if question.kind is not AnswerKind.CHOICE:
                raise InvalidActionError("Question expects a written answer")
            if value not in [option.content for option in question.options]:
                raise InvalidActionError("Answer is not one of the options")
            if value in self.eliminated:
                raise InvalidActionError("Option has been eliminated")
            self.session.record_answer(question.id, value)
            self.selected_answer = value
            self._persist()

    def write_answer(self, value: str) -> None:
        with self.lock:
            self._require_answering()
            question = self.question
            if question.kind is not AnswerKind.FREE_RESPONSE:
                raise InvalidActionError("Question expects an option to be selected")
            self.session.record_answer(question.id, value)
            self.selected_answer = value
            self._persist()

    def toggle_mark_for_review(self) -> bool:
        with self.lock:
            self._require_answering()
            question_id = self.question.id
            if question_id in self.session.marked:
                self.session.marked.discard(question_id)
            else:
                self.session.marked.add(question_id)
            self.marked = question_id in self.session.marked
            self._persist()
            return self.marked

    def toggle_eliminate(self, value: str) -> bool:
        """Cross an option out or back in. The stored answer is untouched."""
        with self.lock:
            self._require_answering()
            question = self.question
            if question.kind is not AnswerKind.CHOICE:
                raise InvalidActionError("Only options can be eliminated")
            if value not in [option.content for option in question.options]:
                raise InvalidActionError("Answer is not one of the options")
            if value in self.eliminated:
                self.eliminated.discard(value)
                return False
            self.eliminated.add(value)
            return True

    # ------------------------------------------------------------------
    # Navigation
    # ------------------------------------------------------------------

    def go_to(self, ordinal: int) -> None:
        with self.lock:
            self._require_active()
            if not 1 <= ordinal <= len(self.section.questions):
                raise InvalidActionError(f"No question {ordinal} in this section")
            self.session.current_question = ordinal
            self.session.view = SessionView.ANSWERING
            self._load_question()
            log.debug("Test %s: go to %d-%d", self.test.id, self.session.current_section, ordinal)
            self._persist()

    def next(self) -> SessionView:
        with self.lock:
            self._require_answering()
            if self.session.current_question < len(self.section.questions):
                self.session.current_question += 1
                self._load_question()
            else:
                self.highlighter.cancel()
                self.session.view = SessionView.SECTION_REVIEW
            log.debug("Test %s: next -> %s", self.test.id, self.session.view.value)
            self._persist()
            return self.session.view

    def back(self) -> bool:
        """Previous question of the section; no-op on the first one."""
        with self.lock:
            self._require_answering()
            if self.session.current_question <= 1:
                return False
            self.session.current_question -= 1
            self._load_question()
            self._persist()
            return True

    def open_review(self) -> None:
        with self.lock:
            self._require_answering()
            self.highlighter.cancel()
            self.session.view = SessionView.SECTION_REVIEW
            self._persist()

    def review_back(self) -> None:
        """Return from the review grid to the section's last question."""
        with self.lock:
            self._require_active()
            if self.session.view is not SessionView.SECTION_REVIEW:
                raise InvalidActionError("Section review is not open")
            self.session.current_question = len(self.section.questions)
            self.session.view = SessionView.ANSWERING
            self._load_question()
            self._persist()

    def advance_from_review(self) -> CompletionResult | None:
        """Start the next section, or finalize after the last one."""
        with self.lock:
            self._require_active()
            if self.session.view is not SessionView.SECTION_REVIEW:
                raise InvalidActionError("Section review is not open")
            if self.session.current_section + 1 < len(self.test.sections):
                self.session.current_section += 1
                self.session.current_question = 1
                self.session.time_left = self.section.time_limit_seconds
                self.session.view = SessionView.ANSWERING
                self._load_question()
                log.info(
                    "Test %s: starting section %d (%s)",
                    self.test.id,
                    self.session.current_section + 1,
                    self.section.name,
                )
                self._persist()
                return None
            self._freeze()
        return self._submit()

    # ------------------------------------------------------------------
    # Completion
    # ------------------------------------------------------------------

    def _freeze(self) -> None:
        """Stop the session before submission. Caller holds the lock."""
        self.session.view = SessionView.COMPLETED
        self.session.status = SessionStatus.COMPLETED_PENDING
        self.highlighter.cancel()
        self.stop_timers()
        self._persist()

    def _submit(self) -> CompletionResult:
        # Runs without the controller lock; the frozen session rejects
        # every mutating action while the results service is called.
        result = self.reporter.finalize(self.session, self.test)
        with self.lock:
            self.last_result = result
        if result.pending:
            log.warning("Test %s finalize pending: %s", self.test.id, result.error)
        return result

    def retry_finalize(self) -> CompletionResult:
        with self.lock:
            if self.session.status is SessionStatus.COMPLETED and self.last_result:
                return self.last_result
            if self.session.status is not SessionStatus.COMPLETED_PENDING:
                raise InvalidActionError("Test has not been submitted")
        return self._submit()

    # ------------------------------------------------------------------
    # Timer
    # ------------------------------------------------------------------

    def tick(self, seconds: int = 1) -> bool:
        """Count the active section down; stops at zero, never below."""
        with self.lock:
            session = self.session
            if session.paused or self.is_finished or session.view is SessionView.COMPLETED:
                return False
            if session.time_left <= 0:
                return False
            step = min(seconds, session.time_left)
            session.time_left -= step
            session.elapsed_seconds += step
            if session.time_left == 0:
                log.info("Test %s: time is up for section %d", self.test.id, session.current_section + 1)
            return True

    def toggle_pause(self) -> bool:
        with self.lock:
            self._require_active()
            self.session.paused = not self.session.paused
            self._persist()
            return self.session.paused

    def format_time(self) -> str:
        return format_clock(self.session.time_left)

    def autosave(self) -> SaveTier | None:
        with self.lock:
            if self.session.status is SessionStatus.COMPLETED:
                return None
            return self._persist()

    def start_timers(self) -> None:
        with self.lock:
            if self.timers is not None or self.is_finished:
                return
            self.timers = SessionTimers(self.tick, self.autosave, label=f"test-{self.test.id}")
            self.timers.start()

    def stop_timers(self) -> None:
        if self.timers is not None:
            self.timers.stop()
            self.timers = None

    # ------------------------------------------------------------------
    # Exit
    # ------------------------------------------------------------------

    def save_and_exit(self) -> SaveTier | None:
        """Persist as an incomplete exit without scoring."""
        with self.lock:
            self._require_active()
            self.stop_timers()
            self.highlighter.cancel()
            self.session.status = SessionStatus.INCOMPLETE_EXIT
            self.store.save_summary(self.test.id, build_summary(self.session, self.test, "incomplete"))
            log.info("Test %s saved and exited at %d-%d", self.test.id,
                     self.session.current_section, self.session.current_question)
            return self._persist()

    def abandon(self) -> None:
        with self.lock:
            self.stop_timers()
            self.store.discard(self.test.id)
            log.info("Test %s abandoned by %s", self.test.id, self.session.user_id)

    def teardown(self) -> None:
        with self.lock:
            self.stop_timers()
            if self.session.status is not SessionStatus.COMPLETED:
                self._persist()

    # ------------------------------------------------------------------
    # Highlights
    # ------------------------------------------------------------------

    def toggle_highlight_mode(self) -> bool:
        with self.lock:
            return self.highlighter.toggle_mode()

    def begin_selection(self, start: int, end: int) -> bool:
        with self.lock:
            self._require_answering()
            return self.highlighter.begin_selection(start, end)

    def release_selection(self, start: int | None = None, end: int | None = None) -> bool:
        with self.lock:
            self._require_answering()
            return self.highlighter.release_selection(start, end)

    def commit_highlight(self, color: str) -> Highlight:
        with self.lock:
            self._require_answering()
            highlight = self.highlighter.commit(color)
            self._persist()
            return highlight

    def cancel_highlight(self) -> None:
        with self.lock:
            self.highlighter.cancel()

    def remove_highlight(self, highlight_id: str) -> bool:
        with self.lock:
            self._require_answering()
            removed = self.highlighter.remove(highlight_id)
            if removed:
                self._persist()
            return removed

    def clear_highlights(self) -> None:
        with self.lock:
            self._require_answering()
            self.highlighter.clear_all()
            self._persist()

    def render(self) -> str:
        with self.lock:
            return self.highlighter.render()

    # ------------------------------------------------------------------
    # Views
    # ------------------------------------------------------------------

    def question_states(self) -> list[dict[str, object]]:
        """Review grid of the active section."""
        states = []
        session = self.session
        for ordinal, question in enumerate(self.section.questions, start=1):
            answered = question.id in session.answers
            marked = question.id in session.marked
            if ordinal == session.current_question and session.view is SessionView.ANSWERING:
                state = "current"
            elif marked:
                state = "for-review"
            elif answered:
                state = "answered"
            else:
                state = "unanswered"
            states.append(
                {
                    "ordinal": ordinal,
                    "questionId": question.id,
                    "key": f"{session.current_section}-{ordinal}",
                    "answered": answered,
                    "markedForReview": marked,
                    "state": state,
                }
            )
        return states

    def snapshot(self) -> dict[str, object]:
        with self.lock:
            session = self.session
            question = self.question
            section = self.section
            return {
                "testId": self.test.id,
                "title": self.test.title,
                "userId": session.user_id,
                "status": session.status.value,
                "view": session.view.value,
                "currentSection": session.current_section,
                "sectionCount": len(self.test.sections),
                "sectionName": section.name,
                "sectionType": section.type.value,
                "currentQuestion": session.current_question,
                "questionCount": len(section.questions),
                "timeLeft": session.time_left,
                "clock": self.format_time(),
                "isTimerStopped": session.paused,
                "elapsedSeconds": session.elapsed_seconds,
                "question": {
                    "id": question.id,
                    "kind": question.kind.value,
                    "content": question.content,
                    "passage": question.passage,
                    "options": [
                        {
                            "content": option.content,
                            "eliminated": option.content in self.eliminated,
                        }
                        for option in question.options
                    ],
                },
                "selectedAnswer": self.selected_answer,
                "markedForReview": self.marked,
                "answeredCount": len(session.answers),
                "totalQuestions": self.test.total_questions,
                "highlightMode": self.highlighter.mode_enabled,
                "highlightState": self.highlighter.state.value,
                "highlights": [h.to_dict() for h in self.highlighter.current],
                "questionStates": self.question_states(),
                "correlationId": session.correlation_id,
                "lastSaved": session.last_saved,
                "result": self.last_result.to_dict() if self.last_result else None,
            }
