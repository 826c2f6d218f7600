"""
Exceptions raised while deploying a CloudFormation change set.

Every failure surfaces as a ``DeploymentError`` subclass. The ``phase``
attribute names the step that failed; the underlying boto3 error, when there
is one, is chained as ``__cause__``.
"""

from typing import Optional


class DeploymentError(Exception):
    """Base class for deployment failures."""

    phase = "deploy"

    def __init__(self, message: str, stack_name: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.stack_name = stack_name


class UnexpectedProbeError(DeploymentError):
    """Checking whether the stack exists failed for a reason other than not-found."""

    phase = "resolve"


class ChangeSetSubmissionError(DeploymentError):
    """CloudFormation rejected a change-set request."""


class ChangeSetCreationError(ChangeSetSubmissionError):
    """Creating or describing the change set failed."""

    phase = "create-change-set"


class ChangeSetExecutionError(ChangeSetSubmissionError):
    """Triggering change-set execution failed."""

    phase = "execute-change-set"


class ChangeSetTimeoutError(DeploymentError):
    """The change set did not finish creating and is not empty."""

    phase = "create-change-set"

    def __init__(
        self,
        message: str,
        stack_name: Optional[str] = None,
        change_set_name: Optional[str] = None,
        reason: Optional[str] = None,
    ):
        super().__init__(message, stack_name)
        self.change_set_name = change_set_name
        self.reason = reason


class ConvergenceTimeoutError(DeploymentError):
    """The stack was still in progress when the wait ceiling ran out."""

    phase = "wait-for-stack"

    def __init__(
        self,
        stack_name: Optional[str],
        ceiling: float,
        last_reason: Optional[str],
    ):
        super().__init__(
            f"stack {stack_name} did not reach a completed state within "
            f"{ceiling:g}s: {last_reason}",
            stack_name,
        )
        self.ceiling = ceiling
        self.last_reason = last_reason


class ConvergenceQueryError(DeploymentError):
    """Too many consecutive errors while polling the stack status."""

    phase = "wait-for-stack"

    def __init__(self, stack_name: Optional[str], errors: int, last_reason: Optional[str]):
        super().__init__(
            f"giving up on stack {stack_name} after {errors} consecutive "
            f"describe errors: {last_reason}",
            stack_name,
        )
        self.errors = errors
        self.last_reason = last_reason


class UnexpectedStackStatusError(DeploymentError):
    """The stack reached a status that waiting longer cannot fix."""

    phase = "wait-for-stack"

    def __init__(self, message: str, stack_name: Optional[str] = None, status: Optional[str] = None):
        super().__init__(message, stack_name)
        self.status = status


class DeploymentCancelledError(DeploymentError):
    """The caller's cancellation event was set while waiting."""

    phase = "cancelled"
