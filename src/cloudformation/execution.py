"""
Change-set execution and stack convergence.
"""

import logging
import random
import threading
import time
from typing import Any, Callable, Optional

from botocore.exceptions import BotoCoreError, ClientError

from .exceptions import (
    ChangeSetExecutionError,
    ConvergenceQueryError,
    ConvergenceTimeoutError,
    UnexpectedStackStatusError,
)
from .models import COMPLETE_STATUSES, IN_PROGRESS_STATUSES
from .retry import (
    ExponentialBackoffPolicy,
    RetryableCondition,
    RetryCeilingExceeded,
    RetryErrorLimitExceeded,
    retry_with_backoff,
)

logger = logging.getLogger(__name__)


class ExecutionWaiter:
    """Execute a change set and wait for the stack to converge."""

    def __init__(
        self,
        client: Any,
        policy: Optional[ExponentialBackoffPolicy] = None,
        cancel_event: Optional[threading.Event] = None,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
        rng: Optional[random.Random] = None,
    ):
        self.cloudformation = client
        self.policy = policy or ExponentialBackoffPolicy()
        self.cancel_event = cancel_event
        self.clock = clock
        self.sleep = sleep
        self.rng = rng

    def execute(
        self, stack_name: str, change_set_name: str, started_at: Optional[float] = None
    ) -> str:
        """
        Execute a change set and block until the stack is complete.

        Args:
            stack_name: Name of the CloudFormation stack
            change_set_name: Change set to execute
            started_at: Clock value the wait ceiling is measured from;
                defaults to the start of the wait

        Returns:
            The completed stack status

        Raises:
            ChangeSetExecutionError: If CloudFormation refused to execute the change set
            UnexpectedStackStatusError: If the stack reached a non-complete terminal status
            ConvergenceTimeoutError: If the stack was still in progress at the ceiling
            ConvergenceQueryError: If describing the stack failed too often in a row
            DeploymentCancelledError: If the cancellation event was set
        """
        try:
            self.cloudformation.execute_change_set(
                ChangeSetName=change_set_name, StackName=stack_name
            )
        except (BotoCoreError, ClientError) as e:
            raise ChangeSetExecutionError(
                f"error executing the ChangeSet: {e}", stack_name
            ) from e

        logger.info(f"Executing ChangeSet '{change_set_name}' on stack {stack_name}")

        try:
            status = retry_with_backoff(
                lambda: self.check_stack_status(stack_name),
                self.policy,
                cancel_event=self.cancel_event,
                clock=self.clock,
                sleep=self.sleep,
                rng=self.rng,
                started_at=started_at,
            )
        except RetryCeilingExceeded as e:
            raise ConvergenceTimeoutError(stack_name, e.ceiling, e.last_reason) from e
        except RetryErrorLimitExceeded as e:
            raise ConvergenceQueryError(stack_name, e.errors, e.last_reason) from e

        logger.info(f"ChangeSet '{change_set_name}' has been successfully executed.")
        return status

    def check_stack_status(self, stack_name: str) -> str:
        """
        Classify the current stack status.

        Returns the status if it is complete, raises ``RetryableCondition`` if
        it is worth waiting on and ``UnexpectedStackStatusError`` otherwise.
        """
        try:
            response = self.cloudformation.describe_stacks(StackName=stack_name)
        except (BotoCoreError, ClientError) as e:
            logger.warning(f"Error describing stack {stack_name}, will retry: {e}")
            raise RetryableCondition(f"error describing the stack: {e}", query_error=True) from e

        stacks = response.get("Stacks", [])
        if len(stacks) != 1:
            raise UnexpectedStackStatusError(
                f"unexpected (!=1) number of stacks in result: {len(stacks)}",
                stack_name,
            )

        status = stacks[0]["StackStatus"]
        if status in COMPLETE_STATUSES:
            return status

        if status in IN_PROGRESS_STATUSES:
            logger.debug(f"Stack {stack_name} is {status}")
            raise RetryableCondition(f"stack not yet in completed state: {status}")

        raise UnexpectedStackStatusError(
            f"unexpected stack status for stack {stacks[0].get('StackName', stack_name)}: {status}",
            stack_name,
            status,
        )
