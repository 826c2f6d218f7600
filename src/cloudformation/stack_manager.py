"""
CloudFormation stack lookups.
"""

import logging
from typing import Any, Dict, List, Optional

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from .exceptions import UnexpectedProbeError
from .models import ChangeSetType

logger = logging.getLogger(__name__)

FAILED_RESOURCE_STATUSES = ("CREATE_FAILED", "UPDATE_FAILED", "DELETE_FAILED")


def is_stack_missing_error(error: Exception) -> bool:
    """
    Check whether a DescribeStacks error means the stack does not exist.

    CloudFormation reports a missing stack as a generic ``ValidationError``,
    so the message text is the only signal.
    """
    return "does not exist" in str(error)


def create_client(region: Optional[str] = None, profile: Optional[str] = None) -> Any:
    """Create a CloudFormation client for the given region and profile."""
    session_args = {}
    if region:
        session_args["region_name"] = region
    if profile:
        session_args["profile_name"] = profile

    session = boto3.Session(**session_args)
    return session.client("cloudformation")


class StackManager:
    """Read CloudFormation stack state."""

    def __init__(
        self,
        region: Optional[str] = None,
        profile: Optional[str] = None,
        client: Optional[Any] = None,
    ):
        """
        Initialize stack manager.

        Args:
            region: AWS region
            profile: AWS profile to use
            client: Existing CloudFormation client (created from region/profile if omitted)
        """
        self.region = region
        self.profile = profile
        self.cloudformation = client or create_client(region, profile)

    def resolve_change_set_type(self, stack_name: str) -> ChangeSetType:
        """
        Decide whether a change set must create or update the stack.

        Args:
            stack_name: Name of the CloudFormation stack

        Returns:
            ``ChangeSetType.CREATE`` if the stack does not exist, otherwise
            ``ChangeSetType.UPDATE``

        Raises:
            UnexpectedProbeError: If describing the stack failed for any other reason
        """
        try:
            self.cloudformation.describe_stacks(StackName=stack_name)
        except (BotoCoreError, ClientError) as e:
            if is_stack_missing_error(e):
                logger.info(f"Stack {stack_name} does not exist, creating it")
                return ChangeSetType.CREATE
            raise UnexpectedProbeError(
                f"unexpected error while describing stack {stack_name}: {e}", stack_name
            ) from e

        logger.info(f"Stack {stack_name} exists, updating it")
        return ChangeSetType.UPDATE

    def get_stack_status(self, stack_name: str) -> Optional[str]:
        """Get current stack status, or None if the stack does not exist."""
        try:
            response = self.cloudformation.describe_stacks(StackName=stack_name)
            if response["Stacks"]:
                return str(response["Stacks"][0]["StackStatus"])
        except (BotoCoreError, ClientError) as e:
            if is_stack_missing_error(e):
                return None
            raise
        return None

    def get_failed_events(self, stack_name: str, limit: int = 10) -> List[Dict[str, Any]]:
        """
        Get the most recent failed resource events of a stack.

        Args:
            stack_name: Name of the CloudFormation stack
            limit: Maximum number of events to return

        Returns:
            List of dicts with logical_id, resource_type, status, reason and timestamp
        """
        failed: List[Dict[str, Any]] = []

        try:
            response = self.cloudformation.describe_stack_events(StackName=stack_name)
        except (BotoCoreError, ClientError) as e:
            logger.warning(f"Could not read events of stack {stack_name}: {e}")
            return failed

        for event in response.get("StackEvents", []):
            if event.get("ResourceStatus") not in FAILED_RESOURCE_STATUSES:
                continue
            failed.append(
                {
                    "logical_id": event["LogicalResourceId"],
                    "resource_type": event.get("ResourceType", "Unknown"),
                    "status": event["ResourceStatus"],
                    "reason": event.get("ResourceStatusReason", "No reason provided"),
                    "timestamp": str(event.get("Timestamp", "")),
                }
            )
            if len(failed) >= limit:
                break

        return failed
