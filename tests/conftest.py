"""
Shared fixtures for deployment tests.
"""

from typing import List

import pytest
from botocore.exceptions import ClientError, EndpointConnectionError

EMPTY_REASON = (
    "The submitted information didn't contain changes. "
    "Submit different information to create a change set."
)


class FakeClock:
    """Clock whose time only moves when ``sleep`` is called."""

    def __init__(self, now: float = 0.0):
        self.now = now
        self.sleeps: List[float] = []

    def __call__(self) -> float:
        return self.now

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


def client_error(message: str, operation: str = "DescribeStacks", code: str = "ValidationError") -> ClientError:
    """Build a botocore ClientError like CloudFormation returns."""
    return ClientError({"Error": {"Code": code, "Message": message}}, operation)


def connection_error() -> EndpointConnectionError:
    """Build the botocore error raised when the endpoint cannot be reached."""
    return EndpointConnectionError(endpoint_url="https://cloudformation.us-east-1.amazonaws.com/")


def stacks_response(status: str, name: str = "test-stack") -> dict:
    return {"Stacks": [{"StackName": name, "StackStatus": status}]}


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def aws_credentials(monkeypatch):
    """Mocked AWS credentials for moto."""
    monkeypatch.setenv("AWS_ACCESS_KEY_ID", "testing")
    monkeypatch.setenv("AWS_SECRET_ACCESS_KEY", "testing")
    monkeypatch.setenv("AWS_SECURITY_TOKEN", "testing")
    monkeypatch.setenv("AWS_SESSION_TOKEN", "testing")
    monkeypatch.setenv("AWS_DEFAULT_REGION", "us-east-1")
