"""Job dispatch gateway: validate, assign an id, enqueue, seed status."""

from __future__ import annotations

import logging
import secrets
from datetime import datetime
from typing import List, Optional, Tuple

from app.battles.phase import ARENA, battle_phase
from app.battles.service import BattleService
from app.core.config import get_settings
from app.core.database import Database
from app.core.exceptions import (
    AppException,
    BadRequestException,
    ConflictException,
    NotParticipantException,
)
from app.jobs.models import LANGUAGES, CodeSnippet, JobPayload, QuestionRunJob, RunJob
from app.jobs.queue import JobQueueClient
from app.jobs.status import QUEUED, StatusStore
from app.questions.service import QuestionService

logger = logging.getLogger(__name__)


def new_job_id() -> str:
    """40 hex chars (160 random bits); doubles as the worker's folder name."""
    return secrets.token_hex(20)


def _validate_code(language: Optional[str], code: Optional[str]) -> Tuple[str, str]:
    if language is None or language == "":
        raise BadRequestException("Language Not Received")
    if language not in LANGUAGES:
        raise BadRequestException(f"Language Not Supported: {language}")
    if code is None:
        raise BadRequestException("Code Not Received")
    return language, code


def _validate_timeout(timeout: Optional[int]) -> int:
    if timeout is None:
        return int(get_settings().DEFAULT_JOB_TIMEOUT_MS)
    if timeout <= 0:
        raise BadRequestException("Timeout must be a positive number of milliseconds")
    return int(timeout)


def _solution_of(question: dict) -> CodeSnippet:
    solution = question.get("solution") or {}
    if not solution.get("language") or solution.get("code") is None:
        raise ConflictException("Question has no reference solution")
    return CodeSnippet(language=solution["language"], code=solution["code"])


class JobDispatchService:
    """
    Front door for code execution requests.

    Every submit is enqueue -> seed "Queued" -> return id. The sequence is not
    transactional: if seeding fails after a successful enqueue the job still
    runs and polling reads nothing until the worker writes its result.
    """

    def __init__(self, queue: JobQueueClient, status_store: StatusStore):
        self.queue = queue
        self.status_store = status_store

    @staticmethod
    def _submissions():
        return Database.get_collection("submissions")

    async def _dispatch(self, job_id: str, job: JobPayload) -> None:
        queue_name = getattr(get_settings(), job.QUEUE_SETTING)
        await self.queue.enqueue(queue_name, job.to_bytes())
        try:
            await self.status_store.set(job_id, QUEUED)
        except AppException as e:
            logger.warning(f"Job {job_id} enqueued but status seed failed: {e.detail}")
        logger.info(f"Request {job_id} received on {queue_name}")

    async def submit_run(
        self,
        language: Optional[str],
        code: Optional[str],
        input: Optional[str] = None,
        timeout: Optional[int] = None,
    ) -> str:
        language, code = _validate_code(language, code)
        timeout = _validate_timeout(timeout)

        job_id = new_job_id()
        job = RunJob(
            language=language,
            code=code,
            folder_name=job_id,
            input=input if input is not None else "",
            timeout=timeout,
        )
        await self._dispatch(job_id, job)
        return job_id

    async def submit_question_run(
        self,
        question_id: Optional[str],
        language: Optional[str],
        code: Optional[str],
        test_inputs: Optional[List[str]] = None,
        timeout: Optional[int] = None,
    ) -> str:
        language, code = _validate_code(language, code)
        timeout = _validate_timeout(timeout)
        if not question_id:
            raise BadRequestException("Question Id Not Received")

        question = await QuestionService.get_question(question_id)
        solution = _solution_of(question)

        job_id = new_job_id()
        job = QuestionRunJob(
            input_code=CodeSnippet(language=language, code=code),
            folder_name=job_id,
            test_inputs=list(test_inputs or []),
            timeout=timeout,
            solution=solution,
        )
        await self._dispatch(job_id, job)
        return job_id

    async def submit_question_submit(
        self,
        question_id: Optional[str],
        language: Optional[str],
        code: Optional[str],
        user_id: str,
        timeout: Optional[int] = None,
        battle_id: Optional[str] = None,
    ) -> str:
        """
        Graded submission. Runs the question's hidden test cases and records a
        submission document keyed by the job id, which update-submission later
        scores against.
        """
        language, code = _validate_code(language, code)
        timeout = _validate_timeout(timeout)
        if not question_id:
            raise BadRequestException("Question Id Not Received")

        question = await QuestionService.get_question(question_id)
        test_cases = question.get("test_cases") or []
        if not test_cases:
            raise ConflictException("Question has no test cases")
        solution = _solution_of(question)

        if battle_id:
            await self._check_battle_entry(battle_id, question_id, user_id)

        job_id = new_job_id()
        job = QuestionRunJob(
            input_code=CodeSnippet(language=language, code=code),
            folder_name=job_id,
            test_inputs=list(test_cases),
            timeout=timeout,
            solution=solution,
        )

        # Submission first so a fast worker result always has a record to land on.
        await self._submissions().insert_one({
            "_id": job_id,
            "battle_id": battle_id or None,
            "question_id": question_id,
            "user_id": user_id,
            "language": language,
            "created_at": datetime.utcnow(),
            "score": "0",
            "status": None,
            "scored_at": None,
        })
        try:
            await self._dispatch(job_id, job)
        except AppException:
            await self._submissions().delete_one({"_id": job_id})
            raise
        return job_id

    @staticmethod
    async def _check_battle_entry(battle_id: str, question_id: str, user_id: str) -> None:
        battle = await BattleService.get_battle(battle_id)
        if user_id not in (battle.get("players") or {}):
            raise NotParticipantException()
        if battle_phase(battle) != ARENA:
            raise ConflictException("Battle is not in progress")
        if question_id not in (battle.get("questions") or []):
            raise BadRequestException("Question is not part of this battle")

    async def get_status(self, job_id: str) -> Optional[str]:
        return await self.status_store.get(job_id)
