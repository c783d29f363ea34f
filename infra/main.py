"""
Operator CLI for a deployed Redash stack.

Usage:
    # Show the configuration cdk deploy would use
    python main.py show-config

    # Print the create_db run-task command for a deployed stack
    python main.py print-command --stack dev-redash-stack

    # Start the create_db task (once, after RDS is available)
    python main.py run-create-db --stack dev-redash-stack
    python main.py run-create-db --stack dev-redash-stack --dry-run
"""
import argparse
import logging
import os
import sys
from typing import List, Optional

from botocore.exceptions import BotoCoreError, ClientError
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from stacks.config import RedashConfig
from stacks.errors import RedashInfraError
from stacks.runbook import command_from_outputs, fetch_stack_outputs, run_create_db

console = Console()


def show_config(args: argparse.Namespace) -> None:
    config = RedashConfig.from_env()
    config.validate()

    table = Table(title="Redash deployment config", show_header=False)
    table.add_row("Stack", config.stack_id)
    table.add_row("Stage", config.stage_name)
    table.add_row("Account", config.account_id)
    table.add_row("Region", config.region)
    table.add_row("VPC", config.vpc_id or "[dim]new VPC (10.0.0.0/16)[/dim]")
    table.add_row("Image", config.redash_image)
    table.add_row("ECR repository", "yes" if config.create_ecr_repository else "no")
    console.print(table)


def print_command(args: argparse.Namespace) -> None:
    outputs = fetch_stack_outputs(args.stack, region=args.region)
    console.print(Panel(command_from_outputs(outputs), title="[bold]Run this manually[/bold]", border_style="blue"))


def create_db(args: argparse.Namespace) -> None:
    outputs = fetch_stack_outputs(args.stack, region=args.region)

    if args.dry_run:
        console.print(Panel(command_from_outputs(outputs), title="[bold]Dry run[/bold]", border_style="yellow"))
        return

    with console.status("[bold green]Starting create_db task..."):
        task_arn = run_create_db(outputs, region=args.region)

    console.print(f"[bold green]create_db started:[/bold green] {task_arn}")
    console.print("[dim]Follow its logs in CloudWatch before starting to use Redash.[/dim]")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Operate a deployed Redash stack")
    parser.add_argument(
        "--region",
        default=os.getenv("CDK_DEFAULT_REGION", os.getenv("AWS_DEFAULT_REGION")),
        help="AWS region of the stack (default: CDK_DEFAULT_REGION / AWS_DEFAULT_REGION)",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("show-config", help="Print the config read from the environment").set_defaults(
        func=show_config
    )

    cmd = sub.add_parser("print-command", help="Print the create_db run-task command")
    cmd.add_argument("--stack", required=True, help="Stack name, e.g. dev-redash-stack")
    cmd.set_defaults(func=print_command)

    run = sub.add_parser("run-create-db", help="Run the one-off create_db task")
    run.add_argument("--stack", required=True, help="Stack name, e.g. dev-redash-stack")
    run.add_argument("--dry-run", action="store_true", help="Only print what would be run")
    run.set_defaults(func=create_db)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    logging.basicConfig(level=os.getenv("LOG_LEVEL", "WARNING").upper())
    args = build_parser().parse_args(argv)
    try:
        args.func(args)
    except (RedashInfraError, ClientError, BotoCoreError) as exc:
        console.print(f"[bold red]Error:[/bold red] {exc}")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
