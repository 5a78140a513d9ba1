#!/usr/bin/env python3
"""
Pantheon CLI - analyse and orchestrate tasks from the command line.

Usage:
    pantheon analyze "Design scalable microservices with ML"
    pantheon orchestrate "Write a function" --show-hierarchy
    pantheon orchestrate "Build a distributed ML system" --backend claude
    pantheon personas
    pantheon --json config
"""

import argparse
import asyncio
import json
import logging
import sys

from pantheon.backends import BACKENDS
from pantheon.config import LOG_LEVELS, load_config
from pantheon.errors import BackendExecutionError, ConfigError
from pantheon.events import LoggingSubscriber
from pantheon.orchestration.complexity import ComplexityAnalyzer
from pantheon.orchestration.router import OrchestrationMode
from pantheon.runtime import Pantheon

logger = logging.getLogger(__name__)


def _dump(data: object) -> None:
    print(json.dumps(data, ensure_ascii=False, indent=2))


def cmd_analyze(args: argparse.Namespace) -> int:
    """Score a task."""
    config = args.config_obj
    score = ComplexityAnalyzer().analyze(args.task)
    delegates = score.overall > config.complexity_threshold

    if args.json:
        _dump({**score.to_dict(), "threshold": config.complexity_threshold, "delegate": delegates})
        return 0

    print(f"Technical:    {score.technical}/10")
    print(f"Uncertainty:  {score.uncertainty}/10")
    print(f"Domains:      {score.domain_count} ({', '.join(score.domains) or 'none'})")
    print(f"Overall:      {score.overall}/10 (threshold {config.complexity_threshold})")
    print(f"Route:        {'delegated' if delegates else 'deterministic'}")
    return 0


def cmd_orchestrate(args: argparse.Namespace) -> int:
    """Run a task through a summoned persona."""
    config = args.config_obj
    if args.mode:
        config.orchestration_mode = args.mode

    pantheon = Pantheon(config, backend=BACKENDS[args.backend]())
    LoggingSubscriber(pantheon.sink)

    with pantheon:
        persona = pantheon.summon(args.persona)
        try:
            result = asyncio.run(persona.orchestrate(args.task))
        except BackendExecutionError as e:
            print(f"Error: {e}", file=sys.stderr)
            return 1
        snapshot = pantheon.inspect()

    if args.json:
        data = result.to_dict()
        data["metrics"] = pantheon.router.metrics.to_dict()
        if args.show_hierarchy:
            data["hierarchy"] = snapshot.to_dict()
        _dump(data)
        return 0

    god = persona.config.god.title() if persona.config else persona.label
    print(f"{god} routed task via {result.path.value} path (complexity {result.complexity.overall})")
    if result.fell_back:
        print(f"Fallback: {result.fallback_reason}")
    if result.delegate_id:
        print(f"Delegate: {result.delegate_id}")
    print()
    print(result.output)

    if args.show_hierarchy:
        print()
        print(snapshot.tree.render())
        print(f"Active: {snapshot.active_count}  Records: {snapshot.total_records}")
    return 0


def cmd_personas(args: argparse.Namespace) -> int:
    """List configured personas."""
    pantheon = Pantheon(args.config_obj)
    personas = [pantheon.personas.get(label) for label in pantheon.personas.labels()]

    if args.json:
        _dump([p.to_dict() for p in personas])
        return 0

    for p in personas:
        caps = ", ".join(c.value for c in p.capabilities) or "none"
        print(f"{p.label:<18} {p.god.title():<12} {p.professional}")
        print(f"{'':<18} capabilities: {caps}")
    return 0


def cmd_config(args: argparse.Namespace) -> int:
    """Show effective configuration."""
    data = args.config_obj.to_dict()
    if args.json:
        _dump(data)
    else:
        for key, value in data.items():
            print(f"{key}: {value}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="pantheon",
        description="Agent hierarchy with hybrid orchestration",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--json", action="store_true", help="Output as JSON")
    parser.add_argument("--config", help="Config file (YAML or JSON)")
    parser.add_argument(
        "--log-level",
        type=str.upper,
        choices=LOG_LEVELS,
        help="Override configured log level",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    # analyze command
    analyze_parser = subparsers.add_parser("analyze", help="Score task complexity")
    analyze_parser.add_argument("task", help="Task description")
    analyze_parser.set_defaults(func=cmd_analyze)

    # orchestrate command
    orchestrate_parser = subparsers.add_parser("orchestrate", help="Run a task")
    orchestrate_parser.add_argument("task", help="Task description")
    orchestrate_parser.add_argument(
        "--backend",
        choices=sorted(BACKENDS),
        default="echo",
        help="Execution backend for delegated tasks",
    )
    orchestrate_parser.add_argument(
        "--mode",
        choices=[m.value for m in OrchestrationMode],
        help="Override orchestration mode",
    )
    orchestrate_parser.add_argument(
        "--persona",
        default="orchestrator",
        help="Persona to summon",
    )
    orchestrate_parser.add_argument(
        "--show-hierarchy",
        action="store_true",
        help="Print the agent hierarchy afterwards",
    )
    orchestrate_parser.set_defaults(func=cmd_orchestrate)

    # personas command
    personas_parser = subparsers.add_parser("personas", help="List personas")
    personas_parser.set_defaults(func=cmd_personas)

    # config command
    config_parser = subparsers.add_parser("config", help="Show configuration")
    config_parser.set_defaults(func=cmd_config)

    return parser


def main(argv: list[str] | None = None) -> int:
    """Main entry point."""
    args = build_parser().parse_args(argv)

    try:
        args.config_obj = load_config(args.config)
    except ConfigError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 2

    logging.basicConfig(
        level=args.log_level or args.config_obj.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )

    try:
        return args.func(args)
    except ConfigError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 2


if __name__ == "__main__":
    sys.exit(main())
