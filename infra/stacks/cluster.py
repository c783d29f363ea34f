"""ECS cluster and the optional ECR repository."""
import logging

import aws_cdk as cdk
from aws_cdk import (
    aws_ec2 as ec2,
    aws_ecr as ecr,
    aws_ecs as ecs,
)
from constructs import Construct

from stacks.config import RedashConfig
from stacks.naming import resource_id

logger = logging.getLogger(__name__)

ECR_MAX_IMAGE_COUNT = 10


def make_cluster(scope: Construct, config: RedashConfig, vpc: ec2.IVpc) -> ecs.Cluster:
    cluster_name = resource_id(config, "cluster")
    logger.info(f"[cluster] {cluster_name}")
    return ecs.Cluster(
        scope,
        cluster_name,
        cluster_name=cluster_name,
        vpc=vpc,
        container_insights=True,
    )


def make_repository(scope: Construct, config: RedashConfig) -> ecr.Repository:
    """Private repository for custom Redash images; keeps the last 10 pushes."""
    repository_name = resource_id(config, "ecr", "repository")
    logger.info(f"[cluster] ECR repository {repository_name}")
    return ecr.Repository(
        scope,
        repository_name,
        repository_name=repository_name,
        removal_policy=cdk.RemovalPolicy.RETAIN,  # keep images on stack destroy
        lifecycle_rules=[
            ecr.LifecycleRule(
                description=f"Keep last {ECR_MAX_IMAGE_COUNT} images",
                max_image_count=ECR_MAX_IMAGE_COUNT,
            ),
        ],
    )
