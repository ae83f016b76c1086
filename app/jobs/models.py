"""Job request models and worker-facing queue payloads."""

from __future__ import annotations

from typing import ClassVar, List, Optional, Union

from pydantic import BaseModel, Field


LANGUAGES = ("cpp", "java", "py", "js")


# ============================================================================
# Request Schemas
# ============================================================================
# Fields are optional here on purpose: the gateway reports exactly which one
# is missing or unsupported as a 400 instead of a generic 422.

class RunRequest(BaseModel):
    """Free-form run: code plus optional stdin."""
    language: Optional[str] = None
    code: Optional[str] = None
    input: Optional[str] = None
    timeout: Optional[int] = Field(default=None, description="Milliseconds")


class QuestionRunRequest(BaseModel):
    """Run against caller-supplied inputs, diffed with the question's solution."""
    language: Optional[str] = None
    code: Optional[str] = None
    test_inputs: Optional[List[str]] = None
    timeout: Optional[int] = Field(default=None, description="Milliseconds")


class QuestionSubmitRequest(BaseModel):
    """Graded submission against the question's hidden test cases."""
    language: Optional[str] = None
    code: Optional[str] = None
    timeout: Optional[int] = Field(default=None, description="Milliseconds")


class JobStatusResponse(BaseModel):
    value: Optional[str] = None


# ============================================================================
# Queue Payloads
# ============================================================================

class CodeSnippet(BaseModel):
    language: str
    code: str


class RunJob(BaseModel):
    """Payload on the single-execution queue."""
    QUEUE_SETTING: ClassVar[str] = "SINGLE_EXECUTION_QUEUE"

    language: str
    code: str
    folder_name: str
    input: str = ""
    timeout: int

    def to_bytes(self) -> bytes:
        return self.model_dump_json().encode("utf-8")


class QuestionRunJob(BaseModel):
    """Payload on the multi-execution queue; carries the reference solution."""
    QUEUE_SETTING: ClassVar[str] = "MULTI_EXECUTION_QUEUE"

    input_code: CodeSnippet
    folder_name: str
    test_inputs: List[str] = Field(default_factory=list)
    timeout: int
    solution: CodeSnippet

    def to_bytes(self) -> bytes:
        return self.model_dump_json().encode("utf-8")


JobPayload = Union[RunJob, QuestionRunJob]
