"""Shared fixtures: a test config and a bare stack to build providers into."""
import aws_cdk as cdk
import pytest

from stacks.config import RedashConfig
from stacks.network import resolve_network

ACCOUNT = "123456789012"
REGION = "us-east-1"


def make_config(**overrides) -> RedashConfig:
    values = dict(stage_name="test", account_id=ACCOUNT, region=REGION)
    values.update(overrides)
    return RedashConfig(**values)


@pytest.fixture
def config() -> RedashConfig:
    return make_config()


@pytest.fixture
def stack(config) -> cdk.Stack:
    app = cdk.App()
    return cdk.Stack(app, "TestStack", env=config.env)


@pytest.fixture
def vpc(stack, config):
    return resolve_network(stack, config)
