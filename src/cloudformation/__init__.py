"""
CloudFormation change-set deployment.
"""

from .change_set import ChangeSetDriver, change_set_is_empty, create_change_set_name
from .deployer import CloudFormationDeployer, deploy
from .exceptions import (
    ChangeSetCreationError,
    ChangeSetExecutionError,
    ChangeSetSubmissionError,
    ChangeSetTimeoutError,
    ConvergenceQueryError,
    ConvergenceTimeoutError,
    DeploymentCancelledError,
    DeploymentError,
    UnexpectedProbeError,
    UnexpectedStackStatusError,
)
from .execution import ExecutionWaiter
from .models import (
    ChangeSetHandle,
    ChangeSetOutcome,
    ChangeSetType,
    DeploymentRequest,
    DeploymentResult,
)
from .retry import ExponentialBackoffPolicy, FixedIntervalPolicy
from .stack_manager import StackManager, is_stack_missing_error

__all__ = [
    "ChangeSetCreationError",
    "ChangeSetDriver",
    "ChangeSetExecutionError",
    "ChangeSetHandle",
    "ChangeSetOutcome",
    "ChangeSetSubmissionError",
    "ChangeSetTimeoutError",
    "ChangeSetType",
    "CloudFormationDeployer",
    "ConvergenceQueryError",
    "ConvergenceTimeoutError",
    "DeploymentCancelledError",
    "DeploymentError",
    "DeploymentRequest",
    "DeploymentResult",
    "ExecutionWaiter",
    "ExponentialBackoffPolicy",
    "FixedIntervalPolicy",
    "StackManager",
    "UnexpectedProbeError",
    "UnexpectedStackStatusError",
    "change_set_is_empty",
    "create_change_set_name",
    "deploy",
    "is_stack_missing_error",
]
