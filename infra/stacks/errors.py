"""Exceptions raised while building the Redash stack."""


class RedashInfraError(Exception):
    """Base class for every error raised by the stack code."""


class ConfigError(RedashInfraError):
    pass


class NetworkLookupError(RedashInfraError):
    """The VPC to look up cannot be resolved."""


class NameCollisionError(RedashInfraError):
    """Two resources were registered under the same logical name."""


class ScalingPolicyError(RedashInfraError):
    pass


class QueueOverlapError(RedashInfraError):
    """A work queue is consumed by more than one worker service."""


class RunbookError(RedashInfraError):
    """A deployed stack is missing what the runbook needs."""
