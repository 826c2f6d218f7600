#!/usr/bin/env python3
"""
CloudFormation deployment CLI commands.
"""

import logging
import sys
from pathlib import Path
from typing import Optional

import click

from cloudformation import (
    DeploymentError,
    StackManager,
    UnexpectedStackStatusError,
)
from config import ConfigurationError, load_deploy_config
from naming import validate_stack_name


def setup_logging(verbose: bool) -> None:
    """Send log records to stderr."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    # botocore is very chatty at DEBUG
    logging.getLogger("botocore").setLevel(logging.WARNING)
    logging.getLogger("urllib3").setLevel(logging.WARNING)


def print_failed_events(manager: StackManager, stack_name: str) -> None:
    events = manager.get_failed_events(stack_name)
    if not events:
        return
    click.echo("\nFailed resources:", err=True)
    for event in events:
        click.echo(
            f"  - {event['logical_id']} ({event['resource_type']}) "
            f"{event['status']}: {event['reason']}",
            err=True,
        )


@click.group()
def main() -> None:
    """CloudFormation change-set deployment commands."""
    pass


@main.command()
@click.option("--stack-name", "-s", required=True, help="CloudFormation stack name")
@click.option(
    "--template",
    "-t",
    required=True,
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help="CloudFormation template path",
)
@click.option("--named-iam", is_flag=True, help="Acknowledge CAPABILITY_NAMED_IAM")
@click.option("--region", help="AWS region")
@click.option("--profile", help="AWS profile to use")
@click.option(
    "--config",
    "config_path",
    type=click.Path(dir_okay=False, path_type=Path),
    help="Deployment settings (YAML)",
)
@click.option("--verbose", "-v", is_flag=True, help="Log every poll")
def deploy(
    stack_name: str,
    template: Path,
    named_iam: bool,
    region: Optional[str],
    profile: Optional[str],
    config_path: Optional[Path],
    verbose: bool,
) -> None:
    """Deploy a template to a stack through a change set."""
    setup_logging(verbose)

    if not validate_stack_name(stack_name):
        click.echo(
            f"❌ Invalid stack name: {stack_name}. Use letters, numbers and hyphens, "
            "starting with a letter.",
            err=True,
        )
        sys.exit(1)

    try:
        config = load_deploy_config(config_path, region=region, profile=profile)
    except ConfigurationError as e:
        click.echo(f"❌ {e}", err=True)
        sys.exit(1)

    template_body = template.read_text()
    deployer = config.create_deployer(stack_name)

    click.echo(f"🚀 Deploying {template} to stack {stack_name}...")
    try:
        result = deployer.deploy(template_body, named_iam=named_iam)
    except KeyboardInterrupt:
        click.echo("❌ Deployment interrupted", err=True)
        sys.exit(130)
    except UnexpectedStackStatusError as e:
        click.echo(f"❌ Deployment failed ({e.phase}): {e}", err=True)
        print_failed_events(deployer.stack_manager, stack_name)
        sys.exit(1)
    except DeploymentError as e:
        click.echo(f"❌ Deployment failed ({e.phase}): {e}", err=True)
        sys.exit(1)

    if result.executed:
        click.echo(
            f"✅ Stack {result.stack_name} is {result.stack_status} "
            f"({result.duration:.0f}s)"
        )
    else:
        click.echo(f"✅ No changes to deploy for stack {result.stack_name}")


@main.command()
@click.option("--stack-name", "-s", required=True, help="CloudFormation stack name")
@click.option("--region", help="AWS region")
@click.option("--profile", help="AWS profile to use")
def status(stack_name: str, region: Optional[str], profile: Optional[str]) -> None:
    """Show CloudFormation stack status."""
    try:
        config = load_deploy_config(region=region, profile=profile)
        manager = StackManager(region=config.region, profile=config.profile)
        stack_status = manager.get_stack_status(stack_name)
    except Exception as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    if stack_status:
        click.echo(f"Stack: {stack_name}")
        click.echo(f"Status: {stack_status}")
    else:
        click.echo(f"Stack {stack_name} does not exist")
