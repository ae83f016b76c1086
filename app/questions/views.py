"""Question bank API routes."""

import logging
from typing import List

from fastapi import APIRouter, Depends, status
from pymongo.errors import PyMongoError

from app.core.dependencies import get_current_user
from app.core.exceptions import StoreUnavailableException
from app.questions.models import QuestionCreate, QuestionResponse
from app.questions.service import QuestionService, to_response


router = APIRouter(prefix="/question", tags=["Questions"])
logger = logging.getLogger(__name__)


@router.get("/all-questions", response_model=List[QuestionResponse])
async def get_all_questions():
    """List every question in the pool (public fields only)."""
    try:
        docs = await QuestionService.list_questions()
    except PyMongoError as e:
        logger.error(f"Listing questions failed: {e}")
        raise StoreUnavailableException("Question store unavailable") from e
    return [to_response(d) for d in docs]


@router.post("/create-question", response_model=QuestionResponse, status_code=status.HTTP_201_CREATED)
async def create_question(
    body: QuestionCreate,
    current_user: dict = Depends(get_current_user),
):
    """Add a question with its hidden test cases and reference solution."""
    try:
        doc = await QuestionService.create_question(body, current_user["id"])
    except PyMongoError as e:
        logger.error(f"Creating question failed: {e}")
        raise StoreUnavailableException("Question store unavailable") from e
    return to_response(doc)


@router.get("/{question_id}", response_model=QuestionResponse)
async def get_question(question_id: str):
    try:
        doc = await QuestionService.get_question(question_id)
    except PyMongoError as e:
        logger.error(f"Loading question {question_id} failed: {e}")
        raise StoreUnavailableException("Question store unavailable") from e
    return to_response(doc)
