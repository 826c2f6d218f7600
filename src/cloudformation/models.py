"""
Value types shared by the deployment steps.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional

CREATE_IN_PROGRESS = "CREATE_IN_PROGRESS"
UPDATE_IN_PROGRESS = "UPDATE_IN_PROGRESS"
CREATE_COMPLETE = "CREATE_COMPLETE"
UPDATE_COMPLETE = "UPDATE_COMPLETE"
UPDATE_COMPLETE_CLEANUP_IN_PROGRESS = "UPDATE_COMPLETE_CLEANUP_IN_PROGRESS"

# Stack statuses that end a convergence wait successfully
COMPLETE_STATUSES = frozenset(
    [CREATE_COMPLETE, UPDATE_COMPLETE, UPDATE_COMPLETE_CLEANUP_IN_PROGRESS]
)

# Stack statuses worth waiting on
IN_PROGRESS_STATUSES = frozenset([CREATE_IN_PROGRESS, UPDATE_IN_PROGRESS])

CHANGE_SET_CREATE_COMPLETE = "CREATE_COMPLETE"
CHANGE_SET_FAILED = "FAILED"

CAPABILITY_NAMED_IAM = "CAPABILITY_NAMED_IAM"


class ChangeSetType(Enum):
    """Whether a change set creates a new stack or updates an existing one."""
    CREATE = "CREATE"
    UPDATE = "UPDATE"


class ChangeSetOutcome(Enum):
    """Result of waiting for a change set to be created."""
    READY = "ready"
    EMPTY = "empty"


@dataclass(frozen=True)
class DeploymentRequest:
    """A single deployment attempt."""
    stack_name: str
    template_body: str
    named_iam: bool = False

    def __post_init__(self) -> None:
        if not self.stack_name:
            raise ValueError("stack_name must not be empty")


@dataclass(frozen=True)
class ChangeSetHandle:
    """A change set created for one deployment attempt."""
    id: str
    name: str
    stack_name: str
    change_set_type: ChangeSetType
    outcome: ChangeSetOutcome

    @property
    def is_empty(self) -> bool:
        return self.outcome == ChangeSetOutcome.EMPTY


@dataclass
class DeploymentResult:
    """Result of a successful deployment."""
    stack_name: str
    change_set_name: str
    change_set_type: ChangeSetType
    outcome: ChangeSetOutcome
    duration: float
    stack_status: Optional[str] = None

    @property
    def executed(self) -> bool:
        """Check if a change set was actually executed."""
        return self.outcome == ChangeSetOutcome.READY
