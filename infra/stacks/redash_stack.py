"""
RedashStack — the whole Redash deployment in one CloudFormation stack.

Build order (each step only uses what the earlier ones produced):
  network  → cluster, database, cache
  database → REDASH_DATABASE_URL secret
  secrets + cache endpoint → every task's environment / secrets
  task definition → its service

Services:
  server            → ALB-facing, port 5000, REDASH_WEB_WORKERS=4
  scheduler         → private, autoscaled, QUEUES=celery
  scheduled_worker  → private, autoscaled, QUEUES=scheduled_queries,schemas
  adhoc_worker      → private, autoscaled, QUEUES=queries
  create_db         → task definition only. CDK cannot run a one-off task, so
                      the stack outputs the `aws ecs run-task` command instead
                      (or use `python main.py run-create-db`).
"""
import logging
from dataclasses import dataclass
from typing import Dict, List

import aws_cdk as cdk
from aws_cdk import aws_ecs as ecs
from constructs import Construct

from stacks.cache import RedashCache, make_cache
from stacks.cluster import make_cluster, make_repository
from stacks.config import RedashConfig
from stacks.database import RedashDatabase, make_database
from stacks.errors import QueueOverlapError
from stacks.naming import ResourceIndex
from stacks.network import resolve_network
from stacks.runbook import build_run_task_command
from stacks.secrets import compose_database_url, container_secrets, generate_secret
from stacks.services import (
    AutoscalingParams,
    LoadBalancedService,
    ServiceParams,
    TaskParams,
    define_task,
    deploy_autoscaled,
    deploy_public,
)

logger = logging.getLogger(__name__)

TASK_CPU = 1024  # 1 vCPU
TASK_MEMORY_MIB = 2048  # 2 GB
SERVER_PORT = 5000
SERVER_WEB_WORKERS = "4"


@dataclass(frozen=True)
class WorkerSpec:
    service_name: str
    command: str
    queues: str
    workers_count: str

    @property
    def queue_set(self) -> frozenset:
        return frozenset(q.strip() for q in self.queues.split(",") if q.strip())


WORKER_SPECS: List[WorkerSpec] = [
    WorkerSpec("scheduler", "scheduler", queues="celery", workers_count="1"),
    WorkerSpec("scheduled_worker", "worker", queues="scheduled_queries,schemas", workers_count="1"),
    WorkerSpec("adhoc_worker", "worker", queues="queries", workers_count="2"),
]


def ensure_disjoint_queues(specs: List[WorkerSpec]) -> None:
    seen: Dict[str, str] = {}
    for spec in specs:
        for queue in spec.queue_set:
            if queue in seen:
                raise QueueOverlapError(
                    f"Queue {queue!r} is consumed by both {seen[queue]} and {spec.service_name}"
                )
            seen[queue] = spec.service_name


class RedashStack(cdk.Stack):
    def __init__(self, scope: Construct, config: RedashConfig, **kwargs) -> None:
        # Vpc.from_lookup needs an explicit account/region on the stack
        super().__init__(scope, config.stack_id, env=config.env, **kwargs)
        ensure_disjoint_queues(WORKER_SPECS)

        self.config = config
        self.resources = ResourceIndex()

        # ── Network / cluster / data tier ──────────────────────────────────────
        vpc = self.resources.add("network", resolve_network(self, config))
        cluster = self.resources.add("cluster", make_cluster(self, config, vpc))
        database: RedashDatabase = self.resources.add("database", make_database(self, config, vpc))
        self.resources.add("cache", make_cache(self, config, vpc))

        if config.create_ecr_repository:
            repository = self.resources.add("ecr-repository", make_repository(self, config))
            cdk.CfnOutput(self, "EcrRepositoryUri", value=repository.repository_uri)

        # ── Secrets ────────────────────────────────────────────────────────────
        self.resources.add("cookie-secret", generate_secret(self, config, "cookie-secret"))
        self.resources.add("secret-key", generate_secret(self, config, "secret"))
        self.resources.add("database-url", compose_database_url(self, config, database))

        default_env = self.make_default_environment()
        secrets = self.make_container_secrets()

        # ── One-off create_db task ─────────────────────────────────────────────
        init_db_task = self._add_task(
            TaskParams(
                service_name="create_db",
                cpu=TASK_CPU,
                memory_limit_mib=TASK_MEMORY_MIB,
                image=config.redash_image,
                command=["create_db"],
                environment=default_env,
                secrets=secrets,
            )
        )

        first_private_subnet_id = vpc.private_subnets[0].subnet_id
        cdk.CfnOutput(
            self,
            "run-this-manually",
            value=build_run_task_command(
                cluster_arn=cluster.cluster_arn,
                task_definition_arn=init_db_task.task_definition_arn,
                subnet_id=first_private_subnet_id,
            ),
            description="Run this command to create the Redash Table after the RDS instance is created",
        )
        cdk.CfnOutput(self, "ClusterArn", value=cluster.cluster_arn)
        cdk.CfnOutput(self, "CreateDbTaskDefinitionArn", value=init_db_task.task_definition_arn)
        cdk.CfnOutput(self, "CreateDbSubnetId", value=first_private_subnet_id)

        # ── Services ───────────────────────────────────────────────────────────
        self.server = self.create_server_service(
            {"REDASH_WEB_WORKERS": SERVER_WEB_WORKERS, **default_env},
            secrets,
        )
        cdk.CfnOutput(
            self,
            f"{config.stage_name}-RedashServerUrl",
            value=self.server.load_balancer_dns_name,
        )

        for spec in WORKER_SPECS:
            self.create_worker_service(
                spec,
                {"QUEUES": spec.queues, "WORKERS_COUNT": spec.workers_count, **default_env},
                secrets,
            )

        logger.info(f"[stack] {self.stack_name}: {len(self.resources)} resources registered")

    def make_default_environment(self) -> Dict[str, str]:
        cache: RedashCache = self.resources.get("cache")
        return {
            "REDASH_LOG_LEVEL": "INFO",
            "PYTHONUNBUFFERED": "0",
            "REDASH_REDIS_URL": cache.redis_url,
        }

    def make_container_secrets(self) -> Dict[str, ecs.Secret]:
        return container_secrets(
            self.resources.get("secret-key"),
            self.resources.get("cookie-secret"),
            self.resources.get("database-url"),
        )

    def create_server_service(
        self, env: Dict[str, str], secrets: Dict[str, ecs.Secret]
    ) -> LoadBalancedService:
        task = self._add_task(
            TaskParams(
                service_name="server",
                cpu=TASK_CPU,
                memory_limit_mib=TASK_MEMORY_MIB,
                image=self.config.redash_image,
                command=["server"],
                environment=env,
                secrets=secrets,
                service_port=SERVER_PORT,
            )
        )
        return self.resources.add(
            "service:server",
            deploy_public(
                self,
                self.config,
                ServiceParams(
                    service_name="server",
                    cluster=self.resources.get("cluster"),
                    task_definition=task,
                    desired_count=1,
                ),
            ),
        )

    def create_worker_service(
        self,
        spec: WorkerSpec,
        env: Dict[str, str],
        secrets: Dict[str, ecs.Secret],
        desired_count: int = 1,
    ):
        task = self._add_task(
            TaskParams(
                service_name=spec.service_name,
                cpu=TASK_CPU,
                memory_limit_mib=TASK_MEMORY_MIB,
                image=self.config.redash_image,
                command=[spec.command],
                environment=env,
                secrets=secrets,
            )
        )
        return self.resources.add(
            f"service:{spec.service_name}",
            deploy_autoscaled(
                self,
                self.config,
                AutoscalingParams(
                    service_name=spec.service_name,
                    cluster=self.resources.get("cluster"),
                    task_definition=task,
                    desired_count=desired_count,
                ),
            ),
        )

    def _add_task(self, params: TaskParams) -> ecs.FargateTaskDefinition:
        return self.resources.add(
            f"task:{params.service_name}", define_task(self, self.config, params)
        )
