"""
Naming utilities for CloudFormation identifiers.

Stack names, change-set names and template logical IDs have different
character rules. These helpers turn free-form labels (for example CloudWatch
metric names such as ``AWS/Lambda/Global/ConcurrentExecutions``) into
identifiers CloudFormation accepts.
"""

import re

# CloudFormation rejects stack and change-set names longer than this
MAX_NAME_LENGTH = 128

STACK_NAME_REPLACED_CHARS = ("/", ".")
LOGICAL_NAME_STRIPPED_CHARS = ("-", "/", "_", ".", " ")

STACK_NAME_PATTERN = re.compile(r"^[a-zA-Z][-a-zA-Z0-9]*$")


def stack_name_from_label(label: str) -> str:
    """
    Create a stack name from a label.

    Lower-cases the label and replaces ``/`` and ``.`` with ``-``.

    Args:
        label: Free-form label (e.g., "AWS/Lambda/Global/ConcurrentExecutions")

    Returns:
        Stack name (e.g., "aws-lambda-global-concurrentexecutions")
    """
    name = label.lower()
    for char in STACK_NAME_REPLACED_CHARS:
        name = name.replace(char, "-")
    return name


def logical_name_from_label(label: str) -> str:
    """
    Create a template logical ID from a label.

    Removes ``-``, ``/``, ``_``, ``.`` and spaces. Case is preserved.

    Args:
        label: Free-form label (e.g., "Foo/Bar-baz_bux.foo")

    Returns:
        Logical name (e.g., "FooBarbazbuxfoo")
    """
    name = label
    for char in LOGICAL_NAME_STRIPPED_CHARS:
        name = name.replace(char, "")
    return name


def trim_name(name: str, max_length: int = MAX_NAME_LENGTH) -> str:
    """Return the first ``max_length`` characters of ``name``."""
    if max_length < 0:
        raise ValueError(f"max_length must not be negative: {max_length}")
    return name[:max_length]


def validate_stack_name(name: str) -> bool:
    """Check a stack name against CloudFormation's naming rules."""
    return len(name) <= MAX_NAME_LENGTH and bool(STACK_NAME_PATTERN.match(name))
