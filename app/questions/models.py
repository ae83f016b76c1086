"""Question bank models."""

from datetime import datetime
from decimal import Decimal
from typing import List, Optional
from pydantic import BaseModel, Field

from app.jobs.models import CodeSnippet


class QuestionCreate(BaseModel):
    """Request to add a question to the pool."""
    title: str = Field(..., min_length=1, max_length=200)
    description: str = ""
    points: Decimal = Field(..., gt=0)
    test_cases: List[str] = Field(..., min_length=1, description="Hidden test inputs")
    solution: CodeSnippet


class QuestionResponse(BaseModel):
    """Public view of a question (hidden test cases and solution excluded)."""
    id: str
    title: str
    description: str = ""
    points: Decimal
    test_case_count: int = 0
    created_at: Optional[datetime] = None
