"""
Change-set creation.

A change set is created for every deployment attempt under a fresh name and
polled with a ``FixedIntervalPolicy`` until CloudFormation finishes computing
it. A change set that failed only because the template changes nothing is
reported as ``ChangeSetOutcome.EMPTY`` rather than as an error.
"""

import logging
import threading
import time
import uuid
from typing import Any, Callable, Dict, Optional

from botocore.exceptions import BotoCoreError, ClientError

from naming import MAX_NAME_LENGTH, trim_name

from .exceptions import ChangeSetCreationError, ChangeSetTimeoutError
from .models import (
    CAPABILITY_NAMED_IAM,
    CHANGE_SET_CREATE_COMPLETE,
    CHANGE_SET_FAILED,
    ChangeSetHandle,
    ChangeSetOutcome,
    ChangeSetType,
)
from .retry import FixedIntervalPolicy, PollExhaustedError, StopPolling, poll_fixed

logger = logging.getLogger(__name__)

EMPTY_CHANGE_SET_REASON = "submitted information didn't contain changes"

# Leaves room for "-" and a 36 character UUID within MAX_NAME_LENGTH
CHANGE_SET_PREFIX_LENGTH = MAX_NAME_LENGTH - 37


def create_change_set_name(stack_name: str) -> str:
    """Build a unique change-set name for ``stack_name``."""
    return f"{trim_name(stack_name, CHANGE_SET_PREFIX_LENGTH)}-{uuid.uuid4()}"


def change_set_is_empty(description: Dict[str, Any]) -> bool:
    """Check if a DescribeChangeSet response is a change set without changes."""
    return description.get("Status") == CHANGE_SET_FAILED and EMPTY_CHANGE_SET_REASON in (
        description.get("StatusReason") or ""
    )


class ChangeSetDriver:
    """Create change sets and wait for them to be ready."""

    def __init__(
        self,
        client: Any,
        policy: Optional[FixedIntervalPolicy] = None,
        cancel_event: Optional[threading.Event] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.cloudformation = client
        self.policy = policy or FixedIntervalPolicy()
        self.cancel_event = cancel_event
        self.sleep = sleep

    def submit_and_wait(
        self,
        stack_name: str,
        template_body: str,
        named_iam: bool,
        change_set_type: ChangeSetType,
    ) -> ChangeSetHandle:
        """
        Create a change set and wait until it is ready or known to be empty.

        Args:
            stack_name: Target stack name (trimmed to the CloudFormation limit)
            template_body: Template to deploy
            named_iam: Acknowledge CAPABILITY_NAMED_IAM
            change_set_type: CREATE for a new stack, UPDATE otherwise

        Returns:
            Handle whose outcome is READY or EMPTY

        Raises:
            ChangeSetCreationError: If CloudFormation rejected the change set
            ChangeSetTimeoutError: If the change set never became ready and is not empty
        """
        change_set_name = create_change_set_name(stack_name)
        stack_name = trim_name(stack_name, MAX_NAME_LENGTH)

        params: Dict[str, Any] = {
            "ChangeSetName": change_set_name,
            "ChangeSetType": change_set_type.value,
            "StackName": stack_name,
            "TemplateBody": template_body,
        }
        if named_iam:
            params["Capabilities"] = [CAPABILITY_NAMED_IAM]

        try:
            response = self.cloudformation.create_change_set(**params)
        except (BotoCoreError, ClientError) as e:
            raise ChangeSetCreationError(
                f"the ChangeSetType was {change_set_type.value}, error in creating ChangeSet: {e}",
                stack_name,
            ) from e

        change_set_id = response["Id"]
        logger.info(f"Created {change_set_type.value} ChangeSet '{change_set_name}' for stack {stack_name}")

        handle_args = {
            "id": change_set_id,
            "name": change_set_name,
            "stack_name": stack_name,
            "change_set_type": change_set_type,
        }

        try:
            self._wait_for_creation(change_set_id, stack_name)
        except (PollExhaustedError, BotoCoreError, ClientError) as e:
            description = self._describe(change_set_id, stack_name)
            if change_set_is_empty(description):
                logger.info(f"ChangeSet '{change_set_id}' is empty. Nothing to do.")
                return ChangeSetHandle(outcome=ChangeSetOutcome.EMPTY, **handle_args)

            raise ChangeSetTimeoutError(
                "changeset is not empty but waiting for changeset completion still timed out. "
                f"Error was: {e}",
                stack_name=stack_name,
                change_set_name=change_set_name,
                reason=description.get("StatusReason"),
            ) from e

        return ChangeSetHandle(outcome=ChangeSetOutcome.READY, **handle_args)

    def _describe(self, change_set_id: str, stack_name: str) -> Dict[str, Any]:
        try:
            return self.cloudformation.describe_change_set(
                ChangeSetName=change_set_id, StackName=stack_name
            )
        except (BotoCoreError, ClientError) as e:
            raise ChangeSetCreationError(
                f"error describing the ChangeSet: {e}", stack_name
            ) from e

    def _wait_for_creation(self, change_set_id: str, stack_name: str) -> None:
        # Same acceptors as the boto3 "change_set_create_complete" waiter,
        # polled here so the cancellation event can interrupt the wait.
        def is_created() -> bool:
            description = self.cloudformation.describe_change_set(
                ChangeSetName=change_set_id, StackName=stack_name
            )
            status = description.get("Status")
            logger.debug(f"ChangeSet '{change_set_id}' status: {status}")
            if status == CHANGE_SET_CREATE_COMPLETE:
                return True
            if status == CHANGE_SET_FAILED:
                raise StopPolling(
                    f"ChangeSet failed: {description.get('StatusReason', 'no reason given')}"
                )
            return False

        poll_fixed(is_created, self.policy, self.cancel_event, self.sleep)
