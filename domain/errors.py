from enum import Enum
from typing import Any, Dict, List, Optional


class ErrorCategory(str, Enum):
    QUOTA_EXCEEDED = "quota_exceeded"
    RATE_LIMIT = "rate_limit"
    TIMEOUT = "timeout"
    PARSE_ERROR = "parse_error"
    NETWORK = "network"
    UNKNOWN = "unknown"


NON_RETRYABLE = {ErrorCategory.QUOTA_EXCEEDED, ErrorCategory.PARSE_ERROR}


class EvaluatorError(Exception):
    """Base class for errors raised by the evaluation core."""


class RemoteCallError(EvaluatorError):
    """A call to the LLM / embedding provider failed.

    `category` is set at the provider boundary when the failure can be typed
    from the transport (status code, timeout, connection error). When it is
    None the retry executor classifies the message heuristically.
    """

    def __init__(self, message: str, category: Optional[ErrorCategory] = None,
                 attempts: Optional[List[Dict[str, Any]]] = None):
        super().__init__(message)
        self.category = category
        self.attempts = attempts or []


class ExtractionError(EvaluatorError):
    """No parsing strategy recovered structured data from a model response."""

    category = ErrorCategory.PARSE_ERROR

    def __init__(self, message: str, attempts: Optional[List[Dict[str, str]]] = None):
        super().__init__(message)
        self.attempts = attempts or []


class TextExtractionError(EvaluatorError):
    pass


class NotFound(EvaluatorError):
    def __init__(self, kind: str, ident: str):
        super().__init__(f"{kind} not found: {ident}")
        self.kind = kind
        self.ident = ident


class InvalidTransition(EvaluatorError):
    def __init__(self, job_id: str, current: str, target: str):
        super().__init__(f"Cannot move job {job_id} from {current} to {target}")
        self.job_id = job_id
        self.current = current
        self.target = target


class BothEvaluationsFailed(EvaluatorError):
    def __init__(self, issues: List[Dict[str, str]]):
        super().__init__("Both CV and Project evaluation failed")
        self.issues = issues
