"""
Runbook for the one-off create_db task.

CDK cannot run a task as part of a deploy, so after the first deploy (once the
RDS instance is available) the create_db task has to be started by hand,
exactly once:

  1. copy the `run-this-manually` stack output into a shell, or
  2. `python main.py run-create-db --stack dev-redash-stack`, which reads the
     stack outputs and calls ecs:RunTask with boto3.
"""
import json
import logging
from typing import Any, Dict, Optional

import boto3

from stacks.errors import RunbookError

logger = logging.getLogger(__name__)

REQUIRED_OUTPUTS = ("ClusterArn", "CreateDbTaskDefinitionArn", "CreateDbSubnetId")


def network_configuration(subnet_id: str) -> Dict[str, Any]:
    return {"awsvpcConfiguration": {"subnets": [subnet_id]}}


def build_run_task_command(cluster_arn: str, task_definition_arn: str, subnet_id: str) -> str:
    """
    The `aws ecs run-task` command line for create_db.

    Arguments may be CDK tokens; the command then resolves at deploy time.
    """
    network = json.dumps(network_configuration(subnet_id), separators=(",", ":"))
    return (
        f"aws ecs run-task --cluster {cluster_arn} "
        f"--task-definition {task_definition_arn} "
        "--launch-type FARGATE "
        f"--network-configuration '{network}'"
    )


def fetch_stack_outputs(stack_name: str, region: Optional[str] = None, client=None) -> Dict[str, str]:
    cfn = client or boto3.client("cloudformation", region_name=region)
    response = cfn.describe_stacks(StackName=stack_name)
    stacks = response.get("Stacks", [])
    if not stacks:
        raise RunbookError(f"Stack {stack_name!r} not found.")

    outputs = {o["OutputKey"]: o["OutputValue"] for o in stacks[0].get("Outputs", [])}
    missing = [key for key in REQUIRED_OUTPUTS if key not in outputs]
    if missing:
        raise RunbookError(
            f"Stack {stack_name!r} is missing output(s) {', '.join(missing)}. "
            "Was it deployed from this repository?"
        )
    return outputs


def command_from_outputs(outputs: Dict[str, str]) -> str:
    return build_run_task_command(
        cluster_arn=outputs["ClusterArn"],
        task_definition_arn=outputs["CreateDbTaskDefinitionArn"],
        subnet_id=outputs["CreateDbSubnetId"],
    )


def run_create_db(outputs: Dict[str, str], region: Optional[str] = None, client=None) -> str:
    """Start the create_db task and return its task ARN."""
    ecs = client or boto3.client("ecs", region_name=region)
    logger.info(f"[runbook] starting create_db on {outputs['ClusterArn']}")
    response = ecs.run_task(
        cluster=outputs["ClusterArn"],
        taskDefinition=outputs["CreateDbTaskDefinitionArn"],
        launchType="FARGATE",
        count=1,
        networkConfiguration=network_configuration(outputs["CreateDbSubnetId"]),
    )

    failures = response.get("failures") or []
    if failures:
        reasons = ", ".join(f.get("reason", "unknown") for f in failures)
        raise RunbookError(f"ecs:RunTask failed: {reasons}")

    tasks = response.get("tasks") or []
    if not tasks:
        raise RunbookError("ecs:RunTask returned no task.")
    task_arn = tasks[0]["taskArn"]
    logger.info(f"[runbook] create_db task started: {task_arn}")
    return task_arn
