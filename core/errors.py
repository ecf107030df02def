"""
DPR Assessor Errors
Exception taxonomy for the document analysis and scoring pipeline

Input-shape problems are clamped or defaulted by each stage and never raise.
Only state errors (uninitialized service, unknown session) and wrapped stage
failures propagate to callers.
"""

from typing import Optional


class DPRAnalysisError(Exception):
    """Base class for every error raised by the analysis core"""


class ServiceNotInitializedError(DPRAnalysisError):
    """An operation was invoked before the service was initialized"""

    def __init__(self, service_name: str):
        self.service_name = service_name
        super().__init__(f"{service_name} service not initialized")


class SessionNotFoundError(DPRAnalysisError, KeyError):
    """No simulation session exists for the given id"""

    def __init__(self, session_id: str):
        self.session_id = session_id
        super().__init__(f"Simulation session not found: {session_id}")

    def __str__(self) -> str:
        # KeyError.__str__ would quote the message
        return self.args[0]


class ChecklistValidationError(DPRAnalysisError, ValueError):
    """Checklist weights are inconsistent with the declared totals"""

    def __init__(self, checklist_id: str, issues: list):
        self.checklist_id = checklist_id
        self.issues = list(issues)
        super().__init__(f"Invalid checklist '{checklist_id}': " + "; ".join(self.issues))


class StageError(DPRAnalysisError):
    """
    A pipeline stage failed.

    The message names the stage so callers can tell classification failures
    from gap analysis or scheme matching failures. The original exception is
    chained as __cause__.
    """

    def __init__(self, stage: str, original: Optional[BaseException] = None):
        self.stage = stage
        self.original = original
        detail = str(original) if original is not None else "unknown error"
        super().__init__(f"{stage} failed: {detail}")
