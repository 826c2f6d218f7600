#!/usr/bin/env python3
"""Main CLI entry point for change-set deployments."""

import click

from naming import logical_name_from_label, stack_name_from_label

from .cloudformation import deploy, main as cf_commands, status


@click.group()
@click.version_option(package_name="cfn-changeset-deploy")
def cli() -> None:
    """Deploy CloudFormation templates through change sets.

    Creates or updates a stack with a freshly named change set, skips empty
    change sets and waits for the stack to finish.
    """
    pass


cli.add_command(cf_commands, name="cloudformation")
cli.add_command(deploy)
cli.add_command(status)


@cli.command("stack-name")
@click.argument("label")
def stack_name(label: str) -> None:
    """Print the stack name derived from LABEL."""
    click.echo(stack_name_from_label(label))


@cli.command("logical-name")
@click.argument("label")
def logical_name(label: str) -> None:
    """Print the template logical ID derived from LABEL."""
    click.echo(logical_name_from_label(label))


if __name__ == "__main__":
    cli()
