"""Code execution API endpoints."""

from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Path, Query
from pymongo.errors import PyMongoError

from app.core.dependencies import get_current_user, get_dispatch_service
from app.core.exceptions import AppException, StoreUnavailableException
from app.jobs.models import (
    JobStatusResponse,
    QuestionRunRequest,
    QuestionSubmitRequest,
    RunRequest,
)
from app.jobs.service import JobDispatchService


router = APIRouter(prefix="/code", tags=["Code"])
logger = logging.getLogger(__name__)


@router.post("/run", response_model=str)
async def run_code(
    body: RunRequest,
    dispatcher: JobDispatchService = Depends(get_dispatch_service),
):
    """Queue a free-form run. Returns the job id to poll."""
    try:
        return await dispatcher.submit_run(
            language=body.language,
            code=body.code,
            input=body.input,
            timeout=body.timeout,
        )
    except AppException:
        raise
    except PyMongoError as e:
        logger.error(f"Run request failed, database unavailable: {e}")
        raise StoreUnavailableException("Database unavailable") from e
    except Exception as e:
        logger.exception("Run request failed")
        raise AppException(f"Internal Server Error: {type(e).__name__}")


@router.post("/question-run", response_model=str)
async def run_question(
    body: QuestionRunRequest,
    question_id: Optional[str] = Query(None, description="Question id"),
    dispatcher: JobDispatchService = Depends(get_dispatch_service),
):
    """Run against custom inputs; the worker diffs output with the reference solution."""
    try:
        return await dispatcher.submit_question_run(
            question_id=question_id,
            language=body.language,
            code=body.code,
            test_inputs=body.test_inputs,
            timeout=body.timeout,
        )
    except AppException:
        raise
    except PyMongoError as e:
        logger.error(f"Question run request failed, database unavailable: {e}")
        raise StoreUnavailableException("Database unavailable") from e
    except Exception as e:
        logger.exception("Question run request failed")
        raise AppException(f"Internal Server Error: {type(e).__name__}")


@router.post("/question-submit", response_model=str)
async def submit_question(
    body: QuestionSubmitRequest,
    question_id: Optional[str] = Query(None, description="Question id"),
    battle_id: Optional[str] = Query(None, description="Battle the submission counts towards"),
    current_user: dict = Depends(get_current_user),
    dispatcher: JobDispatchService = Depends(get_dispatch_service),
):
    """Graded submission against the question's hidden test cases."""
    try:
        return await dispatcher.submit_question_submit(
            question_id=question_id,
            language=body.language,
            code=body.code,
            user_id=current_user["id"],
            timeout=body.timeout,
            battle_id=battle_id,
        )
    except AppException:
        raise
    except PyMongoError as e:
        logger.error(f"Question submit request failed, database unavailable: {e}")
        raise StoreUnavailableException("Database unavailable") from e
    except Exception as e:
        logger.exception("Question submit request failed")
        raise AppException(f"Internal Server Error: {type(e).__name__}")


@router.get("/status/{job_id}", response_model=JobStatusResponse)
async def get_status(
    job_id: str = Path(..., description="Job id returned on submit"),
    dispatcher: JobDispatchService = Depends(get_dispatch_service),
):
    """Non-blocking poll: "Queued", a worker error string, or a JSON result array."""
    return JobStatusResponse(value=await dispatcher.get_status(job_id))
