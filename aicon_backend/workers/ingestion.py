from __future__ import annotations

import asyncio
import random
import time
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable

import httpx

from aicon_backend.core.canvas import CanvasModel
from aicon_backend.core.errors import (
    AnalysisFailed,
    ElementNotFound,
    IngestionInProgress,
    InvalidTransition,
    ScrapeFailed,
    ScrapeTimeout,
    ServiceError,
)
from aicon_backend.core.ingestion import (
    AnalysisFailedState,
    AnalyzedState,
    AnalyzingState,
    IdleState,
    IngestionState,
    ScrapeFailedState,
    ScrapingState,
    check_transition,
    is_in_progress,
    is_terminal,
    read_state,
    state_metadata,
)
from aicon_backend.core.log import get_logger
from aicon_backend.core.platforms import PLATFORM_DISPLAY_NAMES, parse_content_url, placeholder_thumbnail, poll_ceiling
from aicon_backend.core.schema import ContentAnalysis
from aicon_backend.domain import IngestionJob
from aicon_backend.infrastructure.scraping import ScrapeService, get_scrape_service

logger = get_logger(__name__)

Sleep = Callable[[float], Awaitable[Any]]

INTERRUPTED = "Ingestion interrupted"


class _JobAbandoned(Exception):
    """The owning element was deleted or moved on; the job stops quietly."""


def generate_element_id() -> str:
    return f"{int(time.time() * 1000)}-{random.randint(0, 999999)}"


class IngestionCoordinator:
    """Runs one scrape/poll/analyze task per content element.

    Jobs only touch the canvas through :class:`CanvasModel` operations and
    record every outcome, success or failure, on the element's metadata.
    """

    def __init__(
        self,
        model: CanvasModel,
        service: ScrapeService | None = None,
        *,
        workspace_id: str | None = None,
        poll_interval: float = 1.0,
        poll_ceiling_video: int = 120,
        poll_ceiling_default: int = 60,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self._model = model
        self._service = service or get_scrape_service()
        self.workspace_id = workspace_id
        self._poll_interval = poll_interval
        self._ceiling_video = poll_ceiling_video
        self._ceiling_default = poll_ceiling_default
        self._sleep = sleep
        self._tasks: dict[str, asyncio.Task[None]] = {}

    # ------------------------------------------------------------------
    # public API
    # ------------------------------------------------------------------
    def submit(
        self,
        url: str,
        element_id: str | int | None = None,
        *,
        position: tuple[float, float] | None = None,
    ) -> IngestionJob:
        """Validate ``url``, put its element into ``scraping`` and start the job.

        Must be called from inside a running event loop.  Raises
        :class:`InvalidUrl` before touching the canvas when the URL is not
        from a supported platform.
        """

        parsed = parse_content_url(url)
        key = str(element_id) if element_id is not None else generate_element_id()
        if self.is_running(key):
            raise IngestionInProgress(f"ingestion already running for element {key}")

        loop = asyncio.get_running_loop()
        display = PLATFORM_DISPLAY_NAMES.get(parsed.platform, parsed.platform)
        fields: dict[str, Any] = {
            "type": "content",
            "url": parsed.url,
            "platform": parsed.platform,
            "title": f"Loading {display} content...",
            "thumbnail": placeholder_thumbnail(parsed.platform),
        }
        metadata = {
            "contentScope": parsed.scope,
            "startedAt": datetime.now(timezone.utc).isoformat(),
        }

        if self._model.has_element(key):
            current = read_state(self._model.get_element(key).metadata)
            if is_in_progress(current):
                # no live task owns it: left over from a closed or crashed session
                current = self._interrupt(key, current)
            if is_terminal(current):
                self._reset(key, current)
            self._transition(key, ScrapingState(), fields=fields, metadata=metadata)
        else:
            x, y = position or (random.uniform(100, 500), random.uniform(100, 400))
            self._model.add_element(
                {
                    "id": key,
                    "x": x,
                    "y": y,
                    "width": 320,
                    "height": 280,
                    **fields,
                    "metadata": {**metadata, **state_metadata(ScrapingState())},
                }
            )

        job = IngestionJob(
            element_id=key,
            url=parsed.url,
            platform=parsed.platform,
            workspace_id=self.workspace_id,
            max_attempts=poll_ceiling(parsed.platform, video=self._ceiling_video, default=self._ceiling_default),
        )
        logger.info("Ingestion started for element %s (%s)", key, parsed.platform)
        task = loop.create_task(self._run(job), name=f"ingest-{key}")
        self._tasks[key] = task
        task.add_done_callback(lambda done, key=key: self._forget(key, done))
        return job

    def retry(self, element_id: str | int) -> IngestionJob:
        """Re-run ingestion for an element that has no running job."""

        element = self._model.get_element(element_id)
        if element.type != "content" or not element.url:
            raise ValueError(f"element {element_id} has no content URL to ingest")
        if self.is_running(element.id):
            raise IngestionInProgress(f"ingestion already running for element {element.id}")
        return self.submit(element.url, element.id)

    def interrupt_stale(self) -> list[str]:
        """Fail every in-progress element that no job of this coordinator owns.

        Called after a workspace is hydrated so content saved mid-ingestion
        does not stay in ``scraping``/``analyzing`` forever.
        """

        interrupted: list[str] = []
        for element in self._model.elements:
            if element.type != "content" or self.is_running(element.id):
                continue
            state = read_state(element.metadata)
            if is_in_progress(state):
                self._interrupt(element.id, state)
                interrupted.append(element.id)
        return interrupted

    def is_running(self, element_id: str | int) -> bool:
        task = self._tasks.get(str(element_id))
        return task is not None and not task.done()

    def active_jobs(self) -> list[str]:
        return [key for key, task in self._tasks.items() if not task.done()]

    async def wait(self, element_id: str | int) -> None:
        task = self._tasks.get(str(element_id))
        if task is not None:
            await asyncio.gather(task, return_exceptions=True)

    async def drain(self) -> None:
        """Wait until every in-flight job has finished."""

        while self._tasks:
            await asyncio.gather(*list(self._tasks.values()), return_exceptions=True)

    async def shutdown(self) -> None:
        tasks = list(self._tasks.values())
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        self._tasks.clear()

    # ------------------------------------------------------------------
    # state helpers
    # ------------------------------------------------------------------
    def _forget(self, key: str, task: asyncio.Task[None]) -> None:
        if self._tasks.get(key) is task:
            del self._tasks[key]

    def _transition(
        self,
        element_id: str,
        target: IngestionState,
        *,
        fields: dict[str, Any] | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> bool:
        """Apply ``target`` to the element; ``False`` when the job should stop."""

        try:
            element = self._model.get_element(element_id)
        except ElementNotFound:
            logger.info("Element %s removed during ingestion", element_id)
            return False
        try:
            check_transition(read_state(element.metadata), target)
        except InvalidTransition as exc:
            logger.warning("Ingestion for element %s abandoned: %s", element_id, exc)
            return False
        update: dict[str, Any] = dict(fields or {})
        update["metadata"] = {**(metadata or {}), **state_metadata(target)}
        self._model.update_element(element_id, update)
        logger.info("Element %s ingestion -> %s", element_id, target.status)
        return True

    def _reset(self, element_id: str, current: IngestionState) -> None:
        logger.info("Resetting element %s from %s", element_id, current.status)
        self._transition(
            element_id,
            IdleState(),
            metadata={"analysis": None, "processedData": None, "scrapeId": None},
        )

    def _interrupt(self, element_id: str, current: IngestionState) -> IngestionState:
        if current.status == "analyzing":
            target: IngestionState = AnalysisFailedState(scrape_id=str(current.scrape_id), error=INTERRUPTED)
        else:
            target = ScrapeFailedState(scrape_id=current.scrape_id, error=INTERRUPTED)
        logger.warning("Element %s was left %s without a running job", element_id, current.status)
        self._transition(element_id, target)
        return target

    def _fail_unexpected(self, job: IngestionJob, exc: Exception) -> None:
        logger.error("Unexpected ingestion error for element %s", job.element_id, exc_info=exc)
        if not self._model.has_element(job.element_id):
            return
        current = read_state(self._model.get_element(job.element_id).metadata)
        message = str(exc) or type(exc).__name__
        if current.status == "analyzing":
            self._transition(job.element_id, AnalysisFailedState(scrape_id=str(current.scrape_id), error=message))
        elif current.status == "scraping":
            self._transition(job.element_id, ScrapeFailedState(scrape_id=current.scrape_id, error=message))

    def _still_scraping(self, job: IngestionJob) -> bool:
        if not self._model.has_element(job.element_id):
            return False
        state = read_state(self._model.get_element(job.element_id).metadata)
        return state.status == "scraping" and state.scrape_id == job.scrape_id

    # ------------------------------------------------------------------
    # job body
    # ------------------------------------------------------------------
    async def _run(self, job: IngestionJob) -> None:
        try:
            processed = await self._scrape(job)
        except _JobAbandoned:
            return
        except ScrapeFailed as exc:
            logger.warning("Scraping failed for element %s: %s", job.element_id, exc)
            self._transition(job.element_id, ScrapeFailedState(error=str(exc), scrape_id=job.scrape_id))
            return
        except Exception as exc:
            self._fail_unexpected(job, exc)
            return

        job.processed_data = processed
        try:
            await self._analyze(job)
        except Exception as exc:
            self._fail_unexpected(job, exc)

    async def _scrape(self, job: IngestionJob) -> dict[str, Any]:
        try:
            submission = await self._service.submit(job.url, job.workspace_id)
        except (ServiceError, httpx.HTTPError) as exc:
            raise ScrapeFailed(str(exc) or "Failed to start scraping") from exc

        job.scrape_id = submission.scrape_id
        if not self._transition(job.element_id, ScrapingState(scrape_id=job.scrape_id)):
            raise _JobAbandoned()

        # cached content comes back completed straight from the submission
        if submission.status == "completed":
            return submission.processed_data or {}

        while job.attempts < job.max_attempts:
            await self._sleep(self._poll_interval)
            if not self._still_scraping(job):
                raise _JobAbandoned()
            try:
                status = await self._service.status(job.scrape_id)
            except (ServiceError, httpx.HTTPError) as exc:
                logger.warning("Status check failed for scrape %s: %s", job.scrape_id, exc)
                raise ScrapeFailed("Failed to check status") from exc

            if status.status == "completed":
                return status.processed_data or {}
            if status.status == "failed":
                raise ScrapeFailed(status.error or "Scraping failed")
            job.attempts += 1
            logger.debug("Scrape %s still processing (%d/%d)", job.scrape_id, job.attempts, job.max_attempts)

        raise ScrapeTimeout("Scraping timeout")

    async def _analyze(self, job: IngestionJob) -> None:
        scrape_id = str(job.scrape_id)
        processed = job.processed_data if isinstance(job.processed_data, dict) else {}
        title = processed.get("title")
        fields: dict[str, Any] = {"title": str(title) if title not in (None, "") else "Content loaded"}
        thumbnail = processed.get("thumbnailUrl")
        if isinstance(thumbnail, str) and thumbnail:
            fields["thumbnail"] = thumbnail
        if not self._transition(
            job.element_id,
            AnalyzingState(scrape_id=scrape_id),
            fields=fields,
            metadata={"processedData": processed},
        ):
            return

        try:
            analysis = await self._request_analysis(scrape_id)
        except AnalysisFailed as exc:
            logger.warning("Analysis failed for element %s: %s", job.element_id, exc)
            self._transition(
                job.element_id,
                AnalysisFailedState(scrape_id=scrape_id, error=str(exc)),
            )
            return

        self._transition(
            job.element_id,
            AnalyzedState(scrape_id=scrape_id),
            metadata={"analysis": analysis.to_metadata()},
        )

    async def _request_analysis(self, scrape_id: str) -> ContentAnalysis:
        try:
            return await self._service.analyze(scrape_id)
        except Exception as exc:
            raise AnalysisFailed(str(exc) or "Failed to analyze content") from exc
