"""Assessment outcomes and the severity rule used to combine them.

Aggregation dominance: Failed > Unknown > Needs Review > Passed.
Not Run and Not Applicable are assigned directly by the engine and are never
produced by the aggregation rule.
"""

from collections.abc import Iterable
from enum import Enum


class Result(Enum):
    """Outcome of a step, an assessment, or a control evaluation.

    Member values are the serialized tokens used in structured output.
    """

    PASSED = "Passed"
    FAILED = "Failed"
    NEEDS_REVIEW = "Needs Review"
    NOT_APPLICABLE = "Not Applicable"
    UNKNOWN = "Unknown"
    NOT_RUN = "Not Run"

    def __str__(self) -> str:
        return self.value

    @classmethod
    def from_token(cls, token: str) -> "Result":
        """Parse a serialized result token.

        Args:
            token: One of the serialized tokens, e.g. "Needs Review".

        Returns:
            The matching Result member.

        Raises:
            ValueError: If the token is not a known result.
        """
        try:
            return cls(token)
        except ValueError:
            valid = ", ".join(repr(member.value) for member in cls)
            raise ValueError(f"Unknown result token {token!r}. Expected one of: {valid}") from None


def update_aggregate_result(previous: Result, new: Result) -> Result:
    """Return the more severe of two results.

    Args:
        previous: The running aggregate.
        new: The result being folded in.

    Returns:
        FAILED if either is FAILED, else UNKNOWN if either is UNKNOWN, else
        NEEDS_REVIEW if either is NEEDS_REVIEW, else PASSED.
    """
    if previous is Result.FAILED or new is Result.FAILED:
        return Result.FAILED
    if previous is Result.UNKNOWN or new is Result.UNKNOWN:
        return Result.UNKNOWN
    if previous is Result.NEEDS_REVIEW or new is Result.NEEDS_REVIEW:
        return Result.NEEDS_REVIEW
    return Result.PASSED


def aggregate_results(results: Iterable[Result], initial: Result = Result.NOT_RUN) -> Result:
    """Fold a sequence of results with update_aggregate_result.

    Args:
        results: Results in processing order.
        initial: Starting value. NOT_RUN is returned unchanged for an empty
            sequence.

    Returns:
        The aggregated result.
    """
    aggregate = initial
    for result in results:
        aggregate = update_aggregate_result(aggregate, result)
    return aggregate
