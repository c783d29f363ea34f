"""
Database provider — RDS PostgreSQL for Redash metadata.

  - Single t3.micro instance, PostgreSQL 13.6, database "redash" on 5432
  - Isolated subnets only
  - Parameter group pins max_connections
  - Credentials are generated by RDS into a Secrets Manager secret; callers
    only ever get references to it
"""
import logging
from dataclasses import dataclass

from aws_cdk import (
    aws_ec2 as ec2,
    aws_rds as rds,
    aws_secretsmanager as secretsmanager,
)
from constructs import Construct

from stacks.config import RedashConfig
from stacks.naming import resource_id
from stacks.network import make_private_ingress_security_group

logger = logging.getLogger(__name__)

DATABASE_NAME = "redash"
DATABASE_PORT = 5432
INSTANCE_TYPE = "t3.micro"
MAX_CONNECTIONS = "100"
ENGINE_VERSION = rds.PostgresEngineVersion.VER_13_6


@dataclass
class RedashDatabase:
    instance: rds.DatabaseInstance
    parameter_group: rds.ParameterGroup
    security_group: ec2.SecurityGroup

    @property
    def endpoint_address(self) -> str:
        return self.instance.db_instance_endpoint_address

    @property
    def endpoint_port(self) -> str:
        return self.instance.db_instance_endpoint_port

    @property
    def secret(self) -> secretsmanager.ISecret:
        return self.instance.secret

    @property
    def engine_version(self) -> str:
        return ENGINE_VERSION.postgres_full_version


def _engine() -> rds.IInstanceEngine:
    return rds.DatabaseInstanceEngine.postgres(version=ENGINE_VERSION)


def make_database(scope: Construct, config: RedashConfig, vpc: ec2.IVpc) -> RedashDatabase:
    instance_id = resource_id(config, "rds")

    parameter_group = rds.ParameterGroup(
        scope,
        resource_id(config, "metadata-db", "parameter-group"),
        engine=_engine(),
        description="Redash Metadata DB Parameter Group",
        parameters={"max_connections": MAX_CONNECTIONS},
    )
    security_group = make_private_ingress_security_group(
        scope,
        config,
        vpc,
        role="rds",
        port=DATABASE_PORT,
        description="Redash DB Security Group",
    )

    instance = rds.DatabaseInstance(
        scope,
        instance_id,
        engine=_engine(),
        vpc=vpc,
        vpc_subnets=ec2.SubnetSelection(subnet_type=ec2.SubnetType.PRIVATE_ISOLATED),
        database_name=DATABASE_NAME,
        instance_type=ec2.InstanceType(INSTANCE_TYPE),
        instance_identifier=instance_id,
        port=DATABASE_PORT,
        parameter_group=parameter_group,
        security_groups=[security_group],
    )
    logger.info(f"[database] {instance_id}: postgres {ENGINE_VERSION.postgres_full_version}, {INSTANCE_TYPE}")

    return RedashDatabase(
        instance=instance,
        parameter_group=parameter_group,
        security_group=security_group,
    )
