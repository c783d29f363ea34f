"""
Task / service provider — Fargate task definitions and the services that run them.

  define_task        → one task definition, one container, awslogs (1 week retention)
  deploy_public      → ALB-fronted service, public load balancer, 200-399 health check
  deploy_private     → service in the NAT-routed private subnets, no public exposure
  deploy_autoscaled  → deploy_private + independent CPU and memory target tracking

A container gets a port mapping only when the task has a service port, which is
what separates the web server from the queue workers.
"""
import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional

import aws_cdk as cdk
from aws_cdk import (
    aws_ec2 as ec2,
    aws_ecs as ecs,
    aws_ecs_patterns as ecs_patterns,
    aws_logs as logs,
)
from constructs import Construct

from stacks.config import RedashConfig
from stacks.errors import ScalingPolicyError
from stacks.naming import resource_id

logger = logging.getLogger(__name__)

HEALTHY_HTTP_CODES = "200-399"
LOG_RETENTION = logs.RetentionDays.ONE_WEEK

# Worker autoscaling defaults
MAX_CAPACITY = 4
TARGET_UTILIZATION_PERCENT = 80
CPU_SCALE_IN_COOLDOWN_SECONDS = 10
CPU_SCALE_OUT_COOLDOWN_SECONDS = 60
MEMORY_SCALE_IN_COOLDOWN_SECONDS = 10
MEMORY_SCALE_OUT_COOLDOWN_SECONDS = 20


@dataclass
class TaskParams:
    service_name: str
    cpu: int
    memory_limit_mib: int
    image: str
    command: List[str]
    environment: Dict[str, str] = field(default_factory=dict)
    secrets: Dict[str, ecs.Secret] = field(default_factory=dict)
    service_port: Optional[int] = None


@dataclass
class ServiceParams:
    service_name: str
    cluster: ecs.ICluster
    task_definition: ecs.FargateTaskDefinition
    desired_count: int = 1


@dataclass
class AutoscalingParams(ServiceParams):
    max_capacity: int = MAX_CAPACITY
    target_cpu_utilization_percent: int = TARGET_UTILIZATION_PERCENT
    cpu_scale_in_cooldown: cdk.Duration = field(
        default_factory=lambda: cdk.Duration.seconds(CPU_SCALE_IN_COOLDOWN_SECONDS)
    )
    cpu_scale_out_cooldown: cdk.Duration = field(
        default_factory=lambda: cdk.Duration.seconds(CPU_SCALE_OUT_COOLDOWN_SECONDS)
    )
    target_memory_utilization_percent: int = TARGET_UTILIZATION_PERCENT
    memory_scale_in_cooldown: cdk.Duration = field(
        default_factory=lambda: cdk.Duration.seconds(MEMORY_SCALE_IN_COOLDOWN_SECONDS)
    )
    memory_scale_out_cooldown: cdk.Duration = field(
        default_factory=lambda: cdk.Duration.seconds(MEMORY_SCALE_OUT_COOLDOWN_SECONDS)
    )

    def validate(self) -> None:
        if self.max_capacity < 1:
            raise ScalingPolicyError(
                f"{self.service_name}: max_capacity must be at least 1, got {self.max_capacity}"
            )
        if not 1 <= self.desired_count <= self.max_capacity:
            raise ScalingPolicyError(
                f"{self.service_name}: desired_count {self.desired_count} "
                f"must be between 1 and max_capacity {self.max_capacity}"
            )
        for metric, target in (
            ("cpu", self.target_cpu_utilization_percent),
            ("memory", self.target_memory_utilization_percent),
        ):
            if not 0 < target <= 100:
                raise ScalingPolicyError(
                    f"{self.service_name}: {metric} target {target}% is outside (0, 100]"
                )


@dataclass
class LoadBalancedService:
    pattern: ecs_patterns.ApplicationLoadBalancedFargateService

    @property
    def service(self) -> ecs.FargateService:
        return self.pattern.service

    @property
    def load_balancer_dns_name(self) -> str:
        return self.pattern.load_balancer.load_balancer_dns_name


@dataclass
class AutoscalingService:
    service: ecs.FargateService
    scalable_target: ecs.ScalableTaskCount
    params: AutoscalingParams


def define_task(scope: Construct, config: RedashConfig, params: TaskParams) -> ecs.FargateTaskDefinition:
    family = resource_id(config, params.service_name, "task-definition")
    prefix = resource_id(config, params.service_name)

    task_definition = ecs.FargateTaskDefinition(
        scope,
        family,
        family=family,
        cpu=params.cpu,
        memory_limit_mib=params.memory_limit_mib,
    )

    log_group = logs.LogGroup(
        scope,
        resource_id(config, params.service_name, "logs"),
        log_group_name=f"/{config.stage_name}/redash/{params.service_name}",
        retention=LOG_RETENTION,
        removal_policy=cdk.RemovalPolicy.DESTROY,
    )

    container = task_definition.add_container(
        resource_id(config, params.service_name, "container"),
        image=ecs.ContainerImage.from_registry(params.image),
        command=params.command,
        environment=params.environment,
        secrets=params.secrets,
        logging=ecs.LogDrivers.aws_logs(
            stream_prefix=prefix,
            log_group=log_group,
        ),
    )

    if params.service_port:
        container.add_port_mappings(
            ecs.PortMapping(container_port=params.service_port, protocol=ecs.Protocol.TCP)
        )

    logger.info(
        f"[services] task {family}: cpu={params.cpu} memory={params.memory_limit_mib}MiB "
        f"port={params.service_port or '-'}"
    )
    return task_definition


def deploy_public(scope: Construct, config: RedashConfig, params: ServiceParams) -> LoadBalancedService:
    service_name = resource_id(config, params.service_name, "service")
    pattern = ecs_patterns.ApplicationLoadBalancedFargateService(
        scope,
        service_name,
        service_name=service_name,
        cluster=params.cluster,
        task_definition=params.task_definition,
        desired_count=params.desired_count,
        public_load_balancer=True,
    )
    pattern.target_group.configure_health_check(healthy_http_codes=HEALTHY_HTTP_CODES)
    logger.info(f"[services] public service {service_name} behind ALB")
    return LoadBalancedService(pattern=pattern)


def deploy_private(scope: Construct, config: RedashConfig, params: ServiceParams) -> ecs.FargateService:
    service_name = resource_id(config, params.service_name, "service")
    service = ecs.FargateService(
        scope,
        service_name,
        service_name=service_name,
        cluster=params.cluster,
        task_definition=params.task_definition,
        desired_count=params.desired_count,
        assign_public_ip=False,
        vpc_subnets=ec2.SubnetSelection(subnet_type=ec2.SubnetType.PRIVATE_WITH_EGRESS),
    )
    logger.info(f"[services] private service {service_name}")
    return service


def deploy_autoscaled(scope: Construct, config: RedashConfig, params: AutoscalingParams) -> AutoscalingService:
    params.validate()
    service = deploy_private(scope, config, params)

    scaling = service.auto_scale_task_count(
        min_capacity=params.desired_count,
        max_capacity=params.max_capacity,
    )

    scale_memory_id = resource_id(config, params.service_name, "scale-memory")
    scaling.scale_on_memory_utilization(
        scale_memory_id,
        policy_name=scale_memory_id,
        target_utilization_percent=params.target_memory_utilization_percent,
        scale_in_cooldown=params.memory_scale_in_cooldown,
        scale_out_cooldown=params.memory_scale_out_cooldown,
    )

    scale_cpu_id = resource_id(config, params.service_name, "scale-cpu")
    scaling.scale_on_cpu_utilization(
        scale_cpu_id,
        policy_name=scale_cpu_id,
        target_utilization_percent=params.target_cpu_utilization_percent,
        scale_in_cooldown=params.cpu_scale_in_cooldown,
        scale_out_cooldown=params.cpu_scale_out_cooldown,
    )

    logger.info(
        f"[services] autoscaling {params.service_name}: max={params.max_capacity} "
        f"cpu={params.target_cpu_utilization_percent}% memory={params.target_memory_utilization_percent}%"
    )
    return AutoscalingService(service=service, scalable_target=scaling, params=params)
