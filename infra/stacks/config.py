"""
Deployment configuration for the Redash stack.

One RedashConfig is built at process start (see infra/app.py) and handed to
every provider. It is frozen: providers read it, nothing writes to it.

Environment variables (a local .env file is honoured):
  STAGE_NAME                    → namespacing prefix for every resource (default: dev)
  VPC_ID                        → reuse an existing VPC instead of creating one
  CDK_DEFAULT_ACCOUNT           → AWS account ID (falls back to AWS_ACCOUNT_ID)
  CDK_DEFAULT_REGION            → target region (falls back to AWS_DEFAULT_REGION, then us-east-1)
  REDASH_IMAGE                  → container image (default: redash/redash:10.1.0.b50633)
  REDASH_CREATE_ECR_REPOSITORY  → "true" to also create a private ECR repository
"""
import os
import re
from dataclasses import dataclass
from typing import Optional

import aws_cdk as cdk
from dotenv import load_dotenv

from stacks.errors import ConfigError

DEFAULT_STAGE = "dev"
DEFAULT_REGION = "us-east-1"
DEFAULT_IMAGE = "redash/redash:10.1.0.b50633"

# ElastiCache cluster ids are capped at 40 chars: "{stage}-redash-elasticache"
STAGE_PATTERN = re.compile(r"^[a-z][a-z0-9-]{0,15}$")
VPC_ID_PATTERN = re.compile(r"^vpc-([0-9a-f]{8}|[0-9a-f]{17})$")


@dataclass(frozen=True)
class RedashConfig:
    stage_name: str
    account_id: str
    region: str
    redash_image: str = DEFAULT_IMAGE
    vpc_id: Optional[str] = None
    create_ecr_repository: bool = False

    @classmethod
    def from_env(cls) -> "RedashConfig":
        load_dotenv()
        return cls(
            stage_name=os.getenv("STAGE_NAME", DEFAULT_STAGE),
            account_id=os.getenv("CDK_DEFAULT_ACCOUNT", os.getenv("AWS_ACCOUNT_ID", "")),
            region=os.getenv(
                "CDK_DEFAULT_REGION", os.getenv("AWS_DEFAULT_REGION", DEFAULT_REGION)
            ),
            redash_image=os.getenv("REDASH_IMAGE", DEFAULT_IMAGE),
            vpc_id=os.getenv("VPC_ID") or None,
            create_ecr_repository=os.getenv("REDASH_CREATE_ECR_REPOSITORY", "false").lower()
            == "true",
        )

    @property
    def env(self) -> cdk.Environment:
        # Vpc.from_lookup needs a concrete account and region
        return cdk.Environment(account=self.account_id, region=self.region)

    @property
    def stack_id(self) -> str:
        return f"{self.stage_name}-redash-stack"

    def validate(self) -> None:
        if not STAGE_PATTERN.match(self.stage_name):
            raise ConfigError(
                f"Invalid stage name {self.stage_name!r}: use 1-16 lowercase letters, "
                "digits or hyphens, starting with a letter."
            )
        if not self.account_id:
            raise ConfigError(
                "An AWS account ID is required. Set CDK_DEFAULT_ACCOUNT or AWS_ACCOUNT_ID."
            )
        if not self.region:
            raise ConfigError("A region is required. Set CDK_DEFAULT_REGION.")
        if not self.redash_image:
            raise ConfigError("REDASH_IMAGE must not be empty.")
        if self.vpc_id is not None and not VPC_ID_PATTERN.match(self.vpc_id):
            raise ConfigError(f"VPC_ID {self.vpc_id!r} is not a VPC identifier.")
