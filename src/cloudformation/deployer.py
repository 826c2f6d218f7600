"""
Deploy a CloudFormation template through a change set.
"""

import logging
import random
import threading
import time
from typing import Any, Callable, Optional

from naming import MAX_NAME_LENGTH, trim_name

from .change_set import ChangeSetDriver
from .execution import ExecutionWaiter
from .models import DeploymentRequest, DeploymentResult
from .retry import ExponentialBackoffPolicy, FixedIntervalPolicy
from .stack_manager import StackManager

logger = logging.getLogger(__name__)

CEILING_SCOPE_EXECUTION = "execution"
CEILING_SCOPE_DEPLOYMENT = "deployment"
CEILING_SCOPES = (CEILING_SCOPE_EXECUTION, CEILING_SCOPE_DEPLOYMENT)


class CloudFormationDeployer:
    """
    Deploy templates to a single CloudFormation stack.

    A deployment resolves whether the stack must be created or updated,
    creates a change set, and, unless the change set turns out to be empty,
    executes it and waits for the stack to complete.
    """

    def __init__(
        self,
        stack_name: str,
        region: Optional[str] = None,
        profile: Optional[str] = None,
        client: Optional[Any] = None,
        change_set_policy: Optional[FixedIntervalPolicy] = None,
        convergence_policy: Optional[ExponentialBackoffPolicy] = None,
        ceiling_scope: str = CEILING_SCOPE_EXECUTION,
        cancel_event: Optional[threading.Event] = None,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
        rng: Optional[random.Random] = None,
    ):
        """
        Initialize deployer.

        Args:
            stack_name: Name of the CloudFormation stack
            region: AWS region
            profile: AWS profile to use
            client: Existing CloudFormation client
            change_set_policy: Polling policy while the change set is created
            convergence_policy: Backoff policy while the stack converges
            ceiling_scope: Measure the convergence ceiling from the start of the
                wait ("execution") or of the whole deploy call ("deployment")
            cancel_event: Event that aborts any wait when set
            clock: Monotonic clock
            sleep: Sleep function
            rng: Random source for backoff jitter
        """
        if ceiling_scope not in CEILING_SCOPES:
            raise ValueError(
                f"ceiling_scope must be one of {', '.join(CEILING_SCOPES)}: {ceiling_scope}"
            )

        self.stack_name = stack_name
        self.ceiling_scope = ceiling_scope
        self.clock = clock
        self.stack_manager = StackManager(region=region, profile=profile, client=client)
        self.cloudformation = self.stack_manager.cloudformation
        self.change_sets = ChangeSetDriver(
            self.cloudformation, change_set_policy, cancel_event, sleep
        )
        self.executor = ExecutionWaiter(
            self.cloudformation, convergence_policy, cancel_event, clock, sleep, rng
        )

    def deploy(self, template_body: str, named_iam: bool = False) -> DeploymentResult:
        """
        Deploy a template to the stack.

        Args:
            template_body: CloudFormation template
            named_iam: Acknowledge CAPABILITY_NAMED_IAM

        Returns:
            DeploymentResult describing what happened

        Raises:
            DeploymentError: If any step failed
        """
        return self.deploy_request(
            DeploymentRequest(self.stack_name, template_body, named_iam)
        )

    def deploy_request(self, request: DeploymentRequest) -> DeploymentResult:
        started_at = self.clock()
        stack_name = trim_name(request.stack_name, MAX_NAME_LENGTH)

        change_set_type = self.stack_manager.resolve_change_set_type(stack_name)

        handle = self.change_sets.submit_and_wait(
            stack_name,
            request.template_body,
            request.named_iam,
            change_set_type,
        )

        result = DeploymentResult(
            stack_name=handle.stack_name,
            change_set_name=handle.name,
            change_set_type=change_set_type,
            outcome=handle.outcome,
            duration=0.0,
        )

        if not handle.is_empty:
            result.stack_status = self.executor.execute(
                handle.stack_name,
                handle.name,
                started_at=started_at
                if self.ceiling_scope == CEILING_SCOPE_DEPLOYMENT
                else None,
            )

        result.duration = self.clock() - started_at
        logger.info(
            f"Deployment of stack {result.stack_name} finished in {result.duration:.1f}s "
            f"({result.outcome.value})"
        )
        return result


def deploy(
    stack_name: str, template_body: str, named_iam: bool = False, **kwargs: Any
) -> DeploymentResult:
    """Deploy ``template_body`` to ``stack_name``; see ``CloudFormationDeployer``."""
    return CloudFormationDeployer(stack_name, **kwargs).deploy(template_body, named_iam)
