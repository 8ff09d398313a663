"""
Plan mode: step 1 research over a list of keywords.

Keywords run one at a time with a delay between them, or in chunks where
each keyword is pinned to its own credential for the duration of its call.
A failed keyword is recorded on its idea and never stops the session.
"""

import asyncio
from datetime import datetime, timezone
from typing import Callable, List, Optional

from shared.config import settings
from shared.errors import GenerationError, ValidationError
from shared.logging import get_logger
from shared.models.plan import PlanIdea, PlanProgress, PlanSession
from shared.retry import SleepFunc

from modules.batch_orchestrator.orchestrator import BatchOrchestrator

logger = get_logger("scheduler.planner")

RESEARCH_STEP = 1

PlanProgressCallback = Callable[[PlanProgress], None]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class PlanService:
    """Generates one research idea per keyword."""

    def __init__(
        self,
        orchestrator: BatchOrchestrator,
        max_keywords: Optional[int] = None,
        keyword_delay: Optional[float] = None,
        sleep: SleepFunc = asyncio.sleep
    ):
        self.orchestrator = orchestrator
        self.factory = orchestrator.factory
        self.max_keywords = max_keywords or settings.plan_max_keywords
        self.keyword_delay = keyword_delay if keyword_delay is not None else settings.plan_keyword_delay_seconds
        self._sleep = sleep
        self._cancelled = False
        self.current_session: Optional[PlanSession] = None

    def cancel(self) -> None:
        self._cancelled = True

    def _start(self, keywords: List[str]) -> PlanSession:
        valid = [k.strip() for k in keywords if k and k.strip()][:self.max_keywords]
        if not valid:
            raise ValidationError("No valid keywords provided")
        self._cancelled = False
        self.current_session = PlanSession(keywords=valid, total_keywords=len(valid))
        return self.current_session

    @staticmethod
    def _record(session: PlanSession, idea: PlanIdea, topic: str = "", error: Optional[str] = None) -> None:
        if error is None:
            idea.topic = topic
            idea.status = "completed"
            session.completed_count += 1
        else:
            idea.status = "failed"
            idea.error = error
            session.failed_count += 1
            logger.error(f"Failed to process keyword '{idea.keyword}': {error}")

    @staticmethod
    def _close(session: PlanSession) -> PlanSession:
        if session.status != "cancelled":
            session.status = "completed"
        session.completed_at = _utcnow()
        logger.info(
            f"Plan session finished: {session.completed_count} completed, {session.failed_count} failed",
            extra={"status": session.status}
        )
        return session

    async def generate_ideas(
        self,
        keywords: List[str],
        on_progress: Optional[PlanProgressCallback] = None
    ) -> PlanSession:
        """
        Research keywords one at a time.

        Raises:
            ValidationError: If no keyword is left after trimming
        """
        session = self._start(keywords)
        total = len(session.keywords)

        for i, keyword in enumerate(session.keywords):
            if self._cancelled:
                session.status = "cancelled"
                break

            idea = PlanIdea(keyword=keyword)
            if on_progress:
                on_progress(PlanProgress(
                    current=i + 1, total=total, current_keyword=keyword,
                    status="processing", completed_ideas=session.completed_count
                ))

            try:
                topic = await self.orchestrator.research(keyword)
                self._record(session, idea, topic=topic)
            except GenerationError as e:
                self._record(session, idea, error=str(e))
            session.ideas.append(idea)

            if on_progress:
                on_progress(PlanProgress(
                    current=i + 1, total=total, current_keyword=keyword,
                    status=idea.status, completed_ideas=session.completed_count, last_error=idea.error
                ))

            if i < total - 1 and self.keyword_delay > 0:
                await self._sleep(self.keyword_delay)

        return self._close(session)

    async def _research_pinned(self, session: PlanSession, keyword: str) -> PlanIdea:
        idea = PlanIdea(keyword=keyword)
        model_id = self.factory.model_id_for_step(RESEARCH_STEP)
        pool = self.factory.pools.get(self.factory.get_adapter(model_id).provider)

        key = pool.next()
        if key is None:
            self._record(session, idea, error="No available API key")
            return idea

        adapter = self.factory.pinned_adapter_for_step(RESEARCH_STEP, key)
        try:
            topic = await self.orchestrator.research(keyword, adapter=adapter)
        except GenerationError as e:
            pool.report_failure(key, str(e))
            self._record(session, idea, error=str(e))
            return idea

        pool.report_success(key)
        self._record(session, idea, topic=topic)
        return idea

    async def generate_ideas_concurrent(
        self,
        keywords: List[str],
        max_concurrent: int,
        delay_between: Optional[float] = None,
        on_progress: Optional[PlanProgressCallback] = None
    ) -> PlanSession:
        """
        Research keywords in chunks of `max_concurrent`, one pooled credential per keyword.

        Raises:
            ValidationError: If no keyword is left, or max_concurrent < 1
        """
        if max_concurrent < 1:
            raise ValidationError("max_concurrent must be at least 1")
        session = self._start(keywords)
        total = len(session.keywords)
        delay = delay_between if delay_between is not None else self.keyword_delay
        chunks = [session.keywords[i:i + max_concurrent] for i in range(0, total, max_concurrent)]

        for chunk_index, chunk in enumerate(chunks):
            if self._cancelled:
                session.status = "cancelled"
                break

            if on_progress:
                on_progress(PlanProgress(
                    current=chunk_index * max_concurrent + 1, total=total, current_keyword=chunk[0],
                    status="processing", completed_ideas=session.completed_count
                ))

            ideas = await asyncio.gather(*(self._research_pinned(session, keyword) for keyword in chunk))
            session.ideas.extend(ideas)

            if on_progress:
                last = ideas[-1]
                on_progress(PlanProgress(
                    current=min((chunk_index + 1) * max_concurrent, total), total=total,
                    current_keyword=last.keyword, status="processing",
                    completed_ideas=session.completed_count, last_error=last.error
                ))

            if chunk_index < len(chunks) - 1 and delay > 0:
                await self._sleep(delay)

        return self._close(session)


def export_to_text(session: PlanSession, generated_at: Optional[datetime] = None) -> str:
    """Plain-text listing of the session's completed ideas."""
    completed = [idea for idea in session.ideas if idea.status == "completed"]
    if not completed:
        return "No ideas generated successfully.\n"

    generated_at = generated_at or _utcnow()
    lines = [
        "=== Multi-Idea Plan Export ===",
        f"Generated: {generated_at.strftime('%Y-%m-%d %H:%M:%S')}",
        f"Total: {len(completed)} ideas",
        "================================",
        "",
    ]
    for idea in completed:
        lines.extend([f"=== {idea.keyword} ===", "", "Topic/Outline:", idea.topic, "", "---", ""])
    return "\n".join(lines)
