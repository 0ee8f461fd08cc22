"""
Autoflow CLI.

Commands:
    plan       Generate a plan for a request (no execution)
    run        Generate a plan and execute it
    status     Show a recorded execution
    history    List recent executions
    actions    List the available actions
    samples    Show sample workflows and templates
    web        Start the HTTP API

Examples:
    autoflow plan "Send an email to a@example.com with subject 'Hi'"
    autoflow run "Post 'Launch day!' to twitter" --format json
    autoflow run --sample code_review
    autoflow history -n 5
"""

from __future__ import annotations

import argparse
import json
import logging
import sys

import structlog


def configure_logging(verbose: bool = False) -> None:
    """Route structlog output to stderr; DEBUG when verbose, WARNING otherwise."""
    level = logging.DEBUG if verbose else logging.WARNING
    structlog.configure(
        wrapper_class=structlog.make_filtering_bound_logger(level),
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
    )


def _config(args: argparse.Namespace):
    from autoflow.runtime import get_runtime_config

    return get_runtime_config(
        model=getattr(args, "model", None),
        db_path=getattr(args, "db", None),
        step_timeout=getattr(args, "step_timeout", None),
        cache_enabled=False if getattr(args, "no_cache", False) else None,
        verbose=getattr(args, "verbose", False),
    )


def build_services(config):
    """Construct the store, generator and executor for a configuration."""
    from autoflow.storage import SQLiteStore
    from autoflow.workflow import PlanCache, PlanGenerator, WorkflowExecutor, get_llm_client

    store = SQLiteStore(config.db_path)
    cache = PlanCache(store, default_ttl=config.cache_ttl) if config.cache_enabled else None
    generator = PlanGenerator(get_llm_client(config), cache=cache, model=config.model)
    executor = WorkflowExecutor(store, step_timeout=config.step_timeout)
    return store, generator, executor


def _generate_options(config) -> dict:
    return {"use_cache": config.cache_enabled, "cache_ttl": config.cache_ttl}


def _print_plan(plan) -> None:
    print(f"Source: {plan.source}")
    print(f"Complexity: {plan.complexity}")
    if plan.estimated_time is not None:
        print(f"Estimated time: {plan.estimated_time}s")
    print()
    for step in plan.steps:
        print(f"  {step.step}. {step.action}: {step.description}")


def _print_value(value) -> None:
    if isinstance(value, dict):
        print(json.dumps(value, indent=2, default=str))
    elif isinstance(value, list):
        for item in value[:10]:
            print(f"  - {item}")
        if len(value) > 10:
            print(f"  ... and {len(value) - 10} more")
    else:
        print(value)


def cmd_plan(args: argparse.Namespace) -> int:
    """Handle plan command - generate a plan without running it."""
    import asyncio

    from autoflow.workflow import WorkflowError

    config = _config(args)
    store, generator, _ = build_services(config)

    try:
        plan = asyncio.run(generator.generate(args.request, _generate_options(config)))
    except WorkflowError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    finally:
        store.close()

    if args.format == "json":
        print(json.dumps({**plan.to_dict(), "source": plan.source}, indent=2))
    else:
        _print_plan(plan)
    return 0


def cmd_run(args: argparse.Namespace) -> int:
    """Handle run command - plan and execute a request or a sample."""
    import asyncio

    from autoflow.samples import get_sample
    from autoflow.storage import StorageError
    from autoflow.workflow import StepExecutionError, WorkflowError, run_task

    config = _config(args)

    if args.sample:
        try:
            sample = get_sample(args.sample)
        except KeyError as e:
            print(f"Error: {e.args[0]}", file=sys.stderr)
            return 1
        request = sample.prompt
    elif args.request:
        request = args.request
    else:
        print("Error: a request or --sample is required", file=sys.stderr)
        return 1

    store, generator, executor = build_services(config)

    if args.verbose:
        print(f"Running: {request}", file=sys.stderr)
        print(f"Database: {config.db_path}", file=sys.stderr)
        print(file=sys.stderr)

    try:
        if args.sample:
            result = asyncio.run(executor.execute_workflow(sample.plan(), request))
        else:
            result = asyncio.run(
                run_task(request, generator=generator, executor=executor, options=_generate_options(config))
            )
    except StepExecutionError as e:
        result = e.execution
        if result is None:
            print(f"Error: {e}", file=sys.stderr)
            return 1
    except (WorkflowError, StorageError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    finally:
        store.close()

    if args.verbose:
        print(f"Status: {result.status}", file=sys.stderr)
        print(f"Duration: {result.duration_ms}ms", file=sys.stderr)
        print(f"Steps: {len(result.step_results)}", file=sys.stderr)
        print(file=sys.stderr)
        for sr in result.step_results:
            status = "[OK]" if sr.success else "[FAIL]"
            print(f"  {status} {sr.action}: {sr.description}", file=sys.stderr)
        print(file=sys.stderr)

    if args.format == "json":
        print(result.to_json(indent=2))
    else:
        print(f"Request: {request}")
        print(f"Execution: {result.execution_id}")
        print(f"Status: {result.status}")
        print()
        if result.error:
            print(f"Error: {result.error}")
            return 1
        print("Output:")
        _print_value(result.output)

    return 0 if result.status == "completed" else 1


def cmd_status(args: argparse.Namespace) -> int:
    """Handle status command."""
    import asyncio

    from autoflow.storage import NotFoundError, SQLiteStore
    from autoflow.workflow import WorkflowExecutor

    config = _config(args)
    store = SQLiteStore(config.db_path)
    try:
        status = asyncio.run(WorkflowExecutor(store).get_execution_status(args.execution_id))
    except NotFoundError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    finally:
        store.close()

    if args.format == "json":
        print(json.dumps(status, indent=2, default=str))
    else:
        print(f"Execution: {status['id']}")
        print(f"Status: {status['status']}")
        print(f"Created: {status['created_at']}")
        print(f"Updated: {status['updated_at']}")
        print(f"Execution time: {status['execution_time']}ms")
    return 0


def cmd_history(args: argparse.Namespace) -> int:
    """Handle history command."""
    import asyncio

    from autoflow.storage import SQLiteStore
    from autoflow.workflow import WorkflowExecutor

    config = _config(args)
    store = SQLiteStore(config.db_path)
    try:
        history = asyncio.run(WorkflowExecutor(store).get_execution_history(limit=args.limit))
    finally:
        store.close()

    if args.format == "json":
        print(json.dumps(history, indent=2, default=str))
        return 0

    if not history:
        print("No executions recorded.")
        return 0
    for entry in history:
        print(f"{entry['created_at']}  {entry['status']:<10} {entry['id']}  [{entry['category']}]")
    return 0


def cmd_actions(args: argparse.Namespace) -> int:
    """Handle actions command."""
    from autoflow.actions import DEFAULT_REGISTRY

    actions = DEFAULT_REGISTRY.describe()
    if args.format == "json":
        print(json.dumps(actions, indent=2))
    else:
        width = max(len(a["name"]) for a in actions)
        for a in actions:
            print(f"  {a['name']:<{width}}  {a['description']}")
    return 0


def cmd_samples(args: argparse.Namespace) -> int:
    """Handle samples command."""
    from autoflow.samples import SAMPLE_WORKFLOWS, WORKFLOW_TEMPLATES

    if args.format == "json":
        print(
            json.dumps(
                {
                    "samples": [s.to_dict() for s in SAMPLE_WORKFLOWS.values()],
                    "templates": WORKFLOW_TEMPLATES,
                },
                indent=2,
            )
        )
        return 0

    print("Samples:")
    for sample in SAMPLE_WORKFLOWS.values():
        print(f"  {sample.name}: {sample.prompt}")
    print()
    print("Templates:")
    for name, template in WORKFLOW_TEMPLATES.items():
        actions = " -> ".join(s["action"] for s in template["workflow"])
        print(f"  {name}: {actions}")
    return 0


def cmd_web(args: argparse.Namespace) -> int:
    """Handle web command - start the HTTP API."""
    from autoflow.web import run_server

    try:
        run_server(_config(args), host=args.host, port=args.port)
        return 0
    except KeyboardInterrupt:
        return 0
    except OSError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


def _add_common(parser: argparse.ArgumentParser, *, output: bool = True) -> None:
    parser.add_argument(
        "--db",
        default=None,
        help="SQLite database path (default: data/autoflow.db or $AUTOFLOW_DB_PATH)",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Show execution details and debug logs",
    )
    if output:
        parser.add_argument(
            "-f",
            "--format",
            choices=["json", "text"],
            default="text",
            help="Output format (default: text)",
        )


def _add_generation(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "-m",
        "--model",
        default=None,
        help="LLM model for planning (default: qwen3:4b via Ollama)",
    )
    parser.add_argument(
        "--no-cache",
        action="store_true",
        help="Bypass the plan cache",
    )


def main(argv: list[str] | None = None) -> int:
    """Main CLI entrypoint."""
    parser = argparse.ArgumentParser(
        prog="autoflow",
        description="Turn natural language requests into executable workflows.",
    )
    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # plan
    plan_parser = subparsers.add_parser("plan", help="Generate a plan for a request")
    plan_parser.add_argument("request", help="Natural language request")
    _add_generation(plan_parser)
    _add_common(plan_parser)

    # run
    run_parser = subparsers.add_parser("run", help="Generate a plan and execute it")
    run_parser.add_argument("request", nargs="?", help="Natural language request")
    run_parser.add_argument("--sample", default=None, help="Execute a named sample workflow instead")
    run_parser.add_argument(
        "--step-timeout",
        type=float,
        default=None,
        help="Seconds each step may take (default: 30)",
    )
    _add_generation(run_parser)
    _add_common(run_parser)

    # status
    status_parser = subparsers.add_parser("status", help="Show a recorded execution")
    status_parser.add_argument("execution_id", help="Execution id")
    _add_common(status_parser)

    # history
    history_parser = subparsers.add_parser("history", help="List recent executions")
    history_parser.add_argument(
        "-n",
        "--limit",
        type=int,
        default=10,
        help="Number of executions to show (default: 10)",
    )
    _add_common(history_parser)

    # actions
    actions_parser = subparsers.add_parser("actions", help="List the available actions")
    actions_parser.add_argument("-f", "--format", choices=["json", "text"], default="text")

    # samples
    samples_parser = subparsers.add_parser("samples", help="Show sample workflows and templates")
    samples_parser.add_argument("-f", "--format", choices=["json", "text"], default="text")

    # web
    web_parser = subparsers.add_parser("web", help="Start the HTTP API")
    web_parser.add_argument(
        "--host",
        default="127.0.0.1",
        help="Host to bind to (default: 127.0.0.1)",
    )
    web_parser.add_argument(
        "-p",
        "--port",
        type=int,
        default=8000,
        help="Port to bind to (default: 8000)",
    )
    _add_generation(web_parser)
    _add_common(web_parser, output=False)

    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 0

    configure_logging(getattr(args, "verbose", False))

    commands = {
        "plan": cmd_plan,
        "run": cmd_run,
        "status": cmd_status,
        "history": cmd_history,
        "actions": cmd_actions,
        "samples": cmd_samples,
        "web": cmd_web,
    }
    try:
        return commands[args.command](args)
    except ValueError as e:
        # Bad configuration values, e.g. a non-numeric AUTOFLOW_STEP_TIMEOUT
        print(f"Error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
