"""
Secret provider — Secrets Manager entries consumed by the Redash containers.

Two kinds of secret:
  generated  → random 32-char value created by Secrets Manager
               (REDASH_SECRET_KEY, REDASH_COOKIE_SECRET)
  composed   → assembled from other resources' resolved values
               (REDASH_DATABASE_URL from the RDS credentials + endpoint)

Values only ever leave this module as secret references. compose_secret is
the one place secret material is put together, and it is never logged or
exported as a stack output.
"""
import logging
from typing import Dict

import aws_cdk as cdk
from aws_cdk import (
    aws_ecs as ecs,
    aws_secretsmanager as secretsmanager,
)
from constructs import Construct

from stacks.config import RedashConfig
from stacks.database import DATABASE_NAME, RedashDatabase
from stacks.naming import resource_id

logger = logging.getLogger(__name__)

SECRET_LENGTH = 32


def generate_secret(scope: Construct, config: RedashConfig, name: str) -> secretsmanager.Secret:
    secret_name = resource_id(config, name, "secret")
    logger.info(f"[secrets] generated secret {secret_name}")
    return secretsmanager.Secret(
        scope,
        secret_name,
        secret_name=secret_name,
        generate_secret_string=secretsmanager.SecretStringGenerator(
            password_length=SECRET_LENGTH,
        ),
    )


def compose_secret(
    scope: Construct, config: RedashConfig, name: str, *parts: str
) -> secretsmanager.Secret:
    """Store the concatenation of `parts` (usually tokens) as a new secret."""
    secret_name = resource_id(config, name, "secret")
    logger.info(f"[secrets] composed secret {secret_name} from {len(parts)} part(s)")
    return secretsmanager.Secret(
        scope,
        secret_name,
        secret_name=secret_name,
        secret_string_value=cdk.SecretValue.unsafe_plain_text("".join(parts)),
    )


def compose_database_url(
    scope: Construct, config: RedashConfig, database: RedashDatabase
) -> secretsmanager.Secret:
    # unsafe_unwrap yields {{resolve:secretsmanager:...}} references, not the
    # plaintext; CloudFormation resolves them when creating the new secret.
    username = database.secret.secret_value_from_json("username").unsafe_unwrap()
    password = database.secret.secret_value_from_json("password").unsafe_unwrap()
    return compose_secret(
        scope,
        config,
        "database-url",
        "postgresql://",
        username,
        ":",
        password,
        "@",
        database.endpoint_address,
        ":",
        database.endpoint_port,
        f"/{DATABASE_NAME}",
    )


def container_secrets(
    secret_key: secretsmanager.ISecret,
    cookie_secret: secretsmanager.ISecret,
    database_url: secretsmanager.ISecret,
) -> Dict[str, ecs.Secret]:
    return {
        "REDASH_SECRET_KEY": ecs.Secret.from_secrets_manager(secret_key),
        "REDASH_COOKIE_SECRET": ecs.Secret.from_secrets_manager(cookie_secret),
        "REDASH_DATABASE_URL": ecs.Secret.from_secrets_manager(database_url),
    }
