"""
Configuration management for change-set deployments.

Settings are read from an optional YAML file, validated against a JSON schema
and merged over the defaults. AWS region and profile fall back to the usual
AWS environment variables.
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml
from jsonschema import ValidationError, validate

from cloudformation.deployer import CEILING_SCOPE_EXECUTION, CEILING_SCOPES, CloudFormationDeployer
from cloudformation.retry import ExponentialBackoffPolicy, FixedIntervalPolicy

CONFIG_PATH_ENV = "CFN_DEPLOY_CONFIG"

_NUMBER = {"type": "number", "minimum": 0}

CONFIG_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "additionalProperties": False,
    "properties": {
        "region": {"type": ["string", "null"]},
        "profile": {"type": ["string", "null"]},
        "ceiling_scope": {"enum": list(CEILING_SCOPES)},
        "change_set_policy": {
            "type": "object",
            "additionalProperties": False,
            "properties": {
                "interval": _NUMBER,
                "max_attempts": {"type": "integer", "minimum": 1},
            },
        },
        "convergence_policy": {
            "type": "object",
            "additionalProperties": False,
            "properties": {
                "initial_interval": _NUMBER,
                "multiplier": _NUMBER,
                "max_interval": _NUMBER,
                "randomization_factor": _NUMBER,
                "max_elapsed": _NUMBER,
                "max_consecutive_errors": {"type": ["integer", "null"], "minimum": 1},
            },
        },
    },
}


class ConfigurationError(Exception):
    """Raised when configuration is invalid or cannot be loaded."""

    def __init__(self, message: str, details: Optional[str] = None):
        super().__init__(message if not details else f"{message}: {details}")
        self.message = message
        self.details = details


@dataclass
class DeployConfig:
    """Settings for a deployment."""

    region: Optional[str] = None
    profile: Optional[str] = None
    ceiling_scope: str = CEILING_SCOPE_EXECUTION
    change_set_policy: FixedIntervalPolicy = field(default_factory=FixedIntervalPolicy)
    convergence_policy: ExponentialBackoffPolicy = field(
        default_factory=ExponentialBackoffPolicy
    )

    def to_dict(self) -> Dict[str, Any]:
        """Convert config to dictionary."""
        return {
            "region": self.region,
            "profile": self.profile,
            "ceiling_scope": self.ceiling_scope,
            "change_set_policy": self.change_set_policy.to_dict(),
            "convergence_policy": self.convergence_policy.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "DeployConfig":
        """Create config from dictionary."""
        data = dict(data)
        try:
            if "change_set_policy" in data:
                data["change_set_policy"] = FixedIntervalPolicy.from_dict(
                    data["change_set_policy"]
                )
            if "convergence_policy" in data:
                data["convergence_policy"] = ExponentialBackoffPolicy.from_dict(
                    data["convergence_policy"]
                )
            return cls(**data)
        except (TypeError, ValueError) as e:
            raise ConfigurationError("Invalid deployment configuration", str(e)) from e

    def create_deployer(self, stack_name: str, **kwargs: Any) -> CloudFormationDeployer:
        """Create a deployer for ``stack_name`` using these settings."""
        return CloudFormationDeployer(
            stack_name,
            region=self.region,
            profile=self.profile,
            change_set_policy=self.change_set_policy,
            convergence_policy=self.convergence_policy,
            ceiling_scope=self.ceiling_scope,
            **kwargs,
        )


def read_config_file(path: Union[str, Path]) -> Dict[str, Any]:
    """Read and validate a YAML config file."""
    config_file = Path(path)
    if not config_file.exists():
        raise ConfigurationError(f"Configuration file not found: {config_file}")

    try:
        with open(config_file, "r") as f:
            data = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Invalid YAML in {config_file}", str(e)) from e

    try:
        validate(instance=data, schema=CONFIG_SCHEMA)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid configuration in {config_file}", e.message) from e

    return data


def load_deploy_config(
    path: Optional[Union[str, Path]] = None,
    environ: Optional[Dict[str, str]] = None,
    **overrides: Any,
) -> DeployConfig:
    """
    Load deployment configuration.

    Precedence, highest first: ``overrides`` that are not None, the config
    file, environment variables, defaults.

    Args:
        path: YAML config file (defaults to $CFN_DEPLOY_CONFIG if set)
        environ: Environment mapping (defaults to os.environ)
        **overrides: Explicit top-level settings, e.g. from the command line

    Returns:
        DeployConfig
    """
    environ = os.environ if environ is None else environ

    data: Dict[str, Any] = {
        "region": environ.get("AWS_REGION") or environ.get("AWS_DEFAULT_REGION"),
        "profile": environ.get("AWS_PROFILE"),
    }

    path = path or environ.get(CONFIG_PATH_ENV)
    if path:
        data.update(read_config_file(path))

    data.update({k: v for k, v in overrides.items() if v is not None})

    return DeployConfig.from_dict(data)
