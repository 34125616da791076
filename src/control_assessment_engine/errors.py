"""Error types raised by the assessment engine.

Only construction failures surface as exceptions. Step outcomes, applicability
mismatches and revert failures are communicated through Result values and the
corruption flags stored on the entities.
"""

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from control_assessment_engine.evaluation.assessment import Assessment


class AssessmentEngineError(Exception):
    """Base class for all assessment engine errors."""


class ValidationError(AssessmentEngineError):
    """Raised when an entity fails its precondition checks."""


class AssessmentConstructionError(ValidationError):
    """Raised when an Assessment is built without its required fields.

    Attributes:
        assessment: The rejected assessment. Its result is Unknown and its
            message holds the diagnostic.
    """

    def __init__(self, message: str, assessment: "Assessment | None" = None) -> None:
        super().__init__(message)
        self.assessment = assessment
