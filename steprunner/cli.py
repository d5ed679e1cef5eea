"""
Main CLI interface for Step Runner.

Provides a command-line interface for running a single test case from a
JSON file, validating test case files and showing version information.
"""

import argparse
import asyncio
import json
import os
import sys
import uuid
from pathlib import Path
from typing import List, Optional

from pydantic import ValidationError as PydanticValidationError

from . import __version__
from .core.config import Config
from .core.exceptions import StepRunnerError, StepValidationError
from .core.logging_config import setup_logging
from .execution.actions import parse_action
from .execution.executor import TestCaseExecutor
from .execution.models import TestCase


def _load_test_case(path: Path) -> TestCase:
    with open(path, "r", encoding="utf-8") as f:
        data = json.load(f)
    return TestCase.model_validate(data)


def cmd_run(args: argparse.Namespace) -> int:
    """Run one test case and print its execution record."""
    try:
        test_case_path = Path(args.test_case)
        if not test_case_path.exists():
            print(f"❌ Test case file not found: {test_case_path}")
            return 1

        config = Config()
        config.validate()

        execution_id = args.execution_id or str(uuid.uuid4())
        setup_logging(config, execution_id=execution_id)

        test_case = _load_test_case(test_case_path)
        project_id = args.project_id or test_case.project_id or "local"

        print(f"🚀 Running test case {test_case.test_case_id} ({len(test_case.steps)} steps)...")

        executor = TestCaseExecutor(config)
        outcome = asyncio.run(
            executor.execute_test_case(
                execution_id=execution_id,
                test_case=test_case,
                project_id=project_id,
                triggered_by=args.triggered_by,
                environment=args.environment,
                timeout_ms=args.timeout_ms,
            )
        )

        record_json = json.dumps(outcome.execution.to_dict(), indent=2)
        if args.output:
            output_path = Path(args.output)
            output_path.parent.mkdir(parents=True, exist_ok=True)
            output_path.write_text(record_json, encoding="utf-8")
            print(f"📄 Execution record written to {output_path}")
        else:
            print(record_json)

        result = outcome.execution.result.value if outcome.execution.result else "none"
        if outcome.success:
            print(f"✅ Test case passed in {outcome.execution.duration}ms")
            return 0

        print(f"❌ Test case finished with result: {result}")
        if outcome.execution.error_message:
            print(f"Error: {outcome.execution.error_message}")
        return 1

    except (ValueError, PydanticValidationError) as e:
        print(f"❌ Invalid test case file: {e}")
        return 1
    except StepRunnerError as e:
        print(f"❌ Step Runner error: {e}")
        if args.verbose:
            import traceback

            traceback.print_exc()
        return 1


def cmd_validate(args: argparse.Namespace) -> int:
    """Validate a test case file without executing it."""
    test_case_path = Path(args.test_case)
    if not test_case_path.exists():
        print(f"❌ Test case file not found: {test_case_path}")
        return 1

    try:
        test_case = _load_test_case(test_case_path)
    except (ValueError, PydanticValidationError) as e:
        print(f"❌ Invalid test case file: {e}")
        return 1

    problems = []
    for index, step in enumerate(test_case.steps):
        try:
            parse_action(step, index)
        except StepValidationError as e:
            problems.append(f"Step {index + 1}: {e.message}")

    if problems:
        print(f"❌ {len(problems)} problem(s) found in {test_case_path}:")
        for problem in problems:
            print(f"   • {problem}")
        return 1

    browser_note = "browser required" if test_case.requires_browser else "no browser"
    print(
        f"✅ {test_case.test_case_id}: {len(test_case.steps)} steps valid ({browser_note})"
    )
    return 0


def cmd_version(args: argparse.Namespace) -> int:
    """Show version information."""
    print(f"Step Runner {__version__}")

    if args.verbose:
        print()
        print("System Information:")
        print(f"  Python: {sys.version}")
        print(f"  Platform: {sys.platform}")
        print(f"  Working Directory: {os.getcwd()}")

    return 0


def create_main_parser() -> argparse.ArgumentParser:
    """Create the main argument parser."""
    parser = argparse.ArgumentParser(
        prog="step-runner",
        description="Step Runner - execute structured UI and API test cases",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  step-runner run tests/login.json
  step-runner run tests/login.json --timeout-ms 60000 --output result.json
  step-runner validate tests/login.json
  step-runner version --verbose
        """,
    )

    parser.add_argument(
        "--verbose", "-v", action="store_true", help="Enable verbose output"
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # Run command
    run_parser = subparsers.add_parser("run", help="Execute a test case file")
    run_parser.add_argument("test_case", help="Path to a test case JSON file")
    run_parser.add_argument("--execution-id", help="Execution id (random if omitted)")
    run_parser.add_argument("--project-id", help="Owning project id")
    run_parser.add_argument(
        "--triggered-by", default="cli", help="User or system triggering the run"
    )
    run_parser.add_argument("--environment", help="Environment tag, e.g. staging")
    run_parser.add_argument(
        "--timeout-ms", type=int, help="Wall-clock limit for the whole run"
    )
    run_parser.add_argument("--output", "-o", help="Write the execution record here")
    run_parser.add_argument(
        "--verbose", "-v", action="store_true", help="Enable verbose output"
    )
    run_parser.set_defaults(func=cmd_run)

    # Validate command
    validate_parser = subparsers.add_parser(
        "validate", help="Validate a test case file"
    )
    validate_parser.add_argument("test_case", help="Path to a test case JSON file")
    validate_parser.set_defaults(func=cmd_validate)

    # Version command
    version_parser = subparsers.add_parser("version", help="Show version information")
    version_parser.add_argument(
        "--verbose", "-v", action="store_true", help="Show detailed version information"
    )
    version_parser.set_defaults(func=cmd_version)

    return parser


def main(args: Optional[List[str]] = None) -> int:
    """Main CLI entry point."""
    parser = create_main_parser()

    if args is None:
        args = sys.argv[1:]

    parsed_args = parser.parse_args(args)

    if not hasattr(parsed_args, "func"):
        parser.print_help()
        return 1

    return parsed_args.func(parsed_args)


if __name__ == "__main__":
    sys.exit(main())
