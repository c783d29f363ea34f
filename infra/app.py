#!/usr/bin/env python3
"""
Redash on ECS Fargate — AWS CDK Application

Deploys Redash (web server, scheduler, two worker pools) with its RDS
PostgreSQL metadata database and ElastiCache Redis, all in one stack.

Stack:
  RedashStack  → VPC (or lookup), ECS cluster, RDS, Redis, Secrets Manager,
                 ALB-fronted server, autoscaled scheduler/workers

Usage:
  cd infra
  pip install -e ..
  cdk bootstrap aws://ACCOUNT_ID/REGION
  cdk deploy

  # After the first deploy, once RDS is available, create the Redash tables:
  python main.py run-create-db --stack dev-redash-stack

Environment variables (set before cdk deploy, or in .env):
  CDK_DEFAULT_ACCOUNT   → your AWS account ID
  CDK_DEFAULT_REGION    → target region (default: us-east-1)
  STAGE_NAME            → resource name prefix (default: dev)
  VPC_ID                → deploy into an existing VPC instead of creating one
  REDASH_IMAGE          → Redash image (default: redash/redash:10.1.0.b50633)
  LOG_LEVEL             → synth-time logging (default: WARNING)
"""
import logging
import os

import aws_cdk as cdk

from stacks.config import RedashConfig
from stacks.redash_stack import RedashStack

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "WARNING").upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

config = RedashConfig.from_env()
config.validate()

app = cdk.App()

RedashStack(app, config)

app.synth()
