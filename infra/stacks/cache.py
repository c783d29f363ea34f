"""Cache provider — single-node ElastiCache Redis in the private subnets."""
import logging
from dataclasses import dataclass

from aws_cdk import (
    aws_ec2 as ec2,
    aws_elasticache as elasticache,
)
from constructs import Construct

from stacks.config import RedashConfig
from stacks.naming import resource_id
from stacks.network import make_private_ingress_security_group

logger = logging.getLogger(__name__)

REDIS_PORT = 6379
REDIS_ENGINE_VERSION = "5.0.0"
CACHE_NODE_TYPE = "cache.t3.micro"


@dataclass
class RedashCache:
    cluster: elasticache.CfnCacheCluster
    subnet_group: elasticache.CfnSubnetGroup
    security_group: ec2.SecurityGroup

    @property
    def endpoint_address(self) -> str:
        return self.cluster.attr_redis_endpoint_address

    @property
    def endpoint_port(self) -> str:
        return self.cluster.attr_redis_endpoint_port

    @property
    def redis_url(self) -> str:
        return f"redis://{self.endpoint_address}:{self.endpoint_port}/0"


def make_cache(scope: Construct, config: RedashConfig, vpc: ec2.IVpc) -> RedashCache:
    cluster_name = resource_id(config, "elasticache")

    subnet_group_name = resource_id(config, "redis", "subnet-group")
    subnet_group = elasticache.CfnSubnetGroup(
        scope,
        subnet_group_name,
        cache_subnet_group_name=subnet_group_name,
        description="Redash redis Subnet Group",
        subnet_ids=[subnet.subnet_id for subnet in vpc.private_subnets],
    )
    security_group = make_private_ingress_security_group(
        scope,
        config,
        vpc,
        role="redis",
        port=REDIS_PORT,
        description="Redash redis Security Group",
    )

    cluster = elasticache.CfnCacheCluster(
        scope,
        cluster_name,
        auto_minor_version_upgrade=True,
        az_mode="single-az",
        cache_node_type=CACHE_NODE_TYPE,
        cluster_name=cluster_name,
        engine="redis",
        engine_version=REDIS_ENGINE_VERSION,
        num_cache_nodes=1,
        port=REDIS_PORT,
        vpc_security_group_ids=[security_group.security_group_id],
        cache_subnet_group_name=subnet_group.cache_subnet_group_name,
    )
    # The subnet group is referenced by name, not Ref, so CloudFormation
    # would not order the two on its own.
    cluster.add_dependency(subnet_group)
    logger.info(f"[cache] {cluster_name}: redis {REDIS_ENGINE_VERSION}, {CACHE_NODE_TYPE}")

    return RedashCache(cluster=cluster, subnet_group=subnet_group, security_group=security_group)
