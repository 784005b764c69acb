"""
Dealflow Command Line Interface

Lists the built-in templates and runs a workflow for a single opportunity.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import sys
import uuid
from typing import List, Optional

from dealflow.automation.engine import WorkflowEngine
from dealflow.automation.errors import TemplateNotFound
from dealflow.automation.templates.builtin import get_builtin_templates
from dealflow.automation.types import ExecutionStatus, Opportunity
from dealflow.core.config import get_config
from dealflow.core.logging import setup_logging


def main(argv: Optional[List[str]] = None) -> int:
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        prog="dealflow",
        description="Dealflow - sales pipeline workflow engine",
    )
    parser.add_argument("--log-level", default=None, help="Log level (default from config)")
    parser.add_argument("--pretty-logs", action="store_true", help="Console log output")

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # Templates command
    templates_parser = subparsers.add_parser("templates", help="List built-in templates")
    templates_parser.add_argument("--stage", help="Only templates for this stage")

    # Run command
    run_parser = subparsers.add_parser("run", help="Run a workflow for an opportunity")
    run_parser.add_argument("template_id", help="Built-in template ID")
    run_parser.add_argument("--title", required=True, help="Opportunity title")
    run_parser.add_argument("--value", type=float, default=0.0, help="Opportunity value")
    run_parser.add_argument("--stage", default="prospect", help="Opportunity stage")
    run_parser.add_argument("--actor", default="cli", help="User starting the workflow")
    run_parser.add_argument("--opportunity-id", default=None, help="Opportunity ID")
    run_parser.add_argument("--timeout", type=float, default=30.0, help="Seconds to wait")

    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 1

    setup_logging(
        log_level=args.log_level or get_config().log_level.value,
        json_output=not args.pretty_logs,
    )

    if args.command == "templates":
        return cmd_templates(args.stage)

    elif args.command == "run":
        opportunity = Opportunity(
            id=args.opportunity_id or f"opp_{uuid.uuid4().hex[:8]}",
            title=args.title,
            value=args.value,
            stage=args.stage,
        )
        return asyncio.run(cmd_run(args.template_id, opportunity, args.actor, args.timeout))

    parser.print_help()
    return 1


def cmd_templates(stage: Optional[str] = None) -> int:
    """Print the built-in templates."""
    for template in get_builtin_templates():
        if stage and template.stage != stage:
            continue
        print(f"- {template.id} [{template.stage}]: {template.name} ({len(template.steps)} steps)")
    return 0


async def cmd_run(
    template_id: str,
    opportunity: Opportunity,
    actor: str,
    timeout: float,
) -> int:
    """Run one execution to completion and print it as JSON."""
    engine = WorkflowEngine()
    for template in get_builtin_templates():
        engine.register_template(template)

    try:
        execution = await engine.start(template_id, opportunity, actor)
    except TemplateNotFound as e:
        print(f"Error: {e}", file=sys.stderr)
        return 2

    try:
        await engine.wait(execution.id, timeout=timeout)
    except asyncio.TimeoutError:
        print(f"Error: execution {execution.id} did not finish in {timeout}s", file=sys.stderr)
        return 3
    finally:
        await engine.shutdown()

    print(json.dumps(execution.to_dict(), indent=2, default=str))
    return 0 if execution.status == ExecutionStatus.COMPLETED else 1


if __name__ == "__main__":
    sys.exit(main())
