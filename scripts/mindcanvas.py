#!/usr/bin/env python3
"""
MindCanvas - Intention to Task Planner

Command-line driver for a MindCanvas session: states an intention, shows the
tasks the model proposes and optionally executes them.

Usage:
    python scripts/mindcanvas.py "organize my move to a new apartment"
    python scripts/mindcanvas.py "plan a birthday party" --regenerate --execute
    python scripts/mindcanvas.py --check-config
    python scripts/mindcanvas.py --timing  # Enable performance timing
"""

import argparse
import asyncio
import os
import sys
from pathlib import Path

# Load environment variables
from dotenv import load_dotenv
load_dotenv()

# Add parent to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))


def parse_args() -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description="MindCanvas: turn a spoken intention into AI-planned tasks",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
The OpenAI API key is read from OPENAI_API_KEY (a .env file works too).
Without a key, processing falls back to manual mode.

Examples:
  python scripts/mindcanvas.py "learn to bake sourdough"
  python scripts/mindcanvas.py "learn to bake sourdough" --execute --fast
  python scripts/mindcanvas.py "learn to bake sourdough" --regenerate --usage
        """,
    )

    parser.add_argument(
        "intention",
        nargs="?",
        help="The intention to process (prompted for when omitted)",
    )

    parser.add_argument(
        "--config", "-c",
        type=Path,
        help="Path to a mindcanvas.yaml settings file",
    )

    parser.add_argument(
        "--execute", "-x",
        action="store_true",
        help="Execute every task once it has materialized",
    )

    parser.add_argument(
        "--regenerate", "-g",
        action="store_true",
        help="Ask for additional tasks after the first batch",
    )

    parser.add_argument(
        "--collate",
        action="store_true",
        help="Print the collated task results at the end",
    )

    parser.add_argument(
        "--fast",
        action="store_true",
        help="Skip stagger and pacing delays",
    )

    parser.add_argument(
        "--usage", "-u",
        action="store_true",
        help="Print resource usage after each phase",
    )

    parser.add_argument(
        "--check-config",
        action="store_true",
        help="Validate settings and exit",
    )

    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Verbose output",
    )

    parser.add_argument(
        "--no-color",
        action="store_true",
        help="Disable colored output",
    )

    parser.add_argument(
        "--timing", "-t",
        action="store_true",
        help="Enable performance timing metrics",
    )

    return parser.parse_args()


def check_config(settings) -> int:
    """Report configuration problems. Returns the exit code."""
    from MindCanvas.config import validate_settings
    from MindCanvas.utils import console

    console.header("MindCanvas Configuration")
    result = validate_settings(settings)
    for warning in result.warnings:
        console.warning(warning)
    for error in result.errors:
        console.error(error)
    if result.is_valid and not result.warnings:
        console.success("Configuration looks good", settings.ai.model)
    return 0 if result.is_valid else 1


def show_processing(state) -> None:
    from MindCanvas.utils import console

    if state.is_processing:
        console.progress(state.progress, 100, state.current_step)


def print_usage(session) -> None:
    from MindCanvas.utils import console

    usage = session.get_resource_usage()
    console.usage(session.governor.format_status(), rate_limited=usage.rate_limit_reached)


async def main_async(args: argparse.Namespace) -> int:
    """Async main function."""
    from MindCanvas.config import load_settings
    from MindCanvas.infrastructure import MindCanvasError, handle_error
    from MindCanvas.orchestrators import MindCanvasSession
    from MindCanvas.utils import console, timing

    # Enable timing if requested
    if args.timing:
        os.environ["MINDCANVAS_TIMING"] = "1"

    if args.verbose:
        console.set_verbose(True)

    if args.no_color:
        console.enable_colors(False)

    settings = load_settings(args.config)
    if args.check_config:
        return check_config(settings)

    if args.fast:
        pacing = settings.pacing
        pacing.stagger_delay = pacing.regenerate_stagger_delay = pacing.settle_delay = 0.0
        pacing.step_delay_min = pacing.step_delay_max = 0.0

    text = args.intention
    if not text:
        try:
            text = input("  \033[1;32m▶ Your intention:\033[0m ").strip()
        except (KeyboardInterrupt, EOFError):
            print("\n\n  Goodbye!")
            return 0
    if not text:
        return 0

    console.header(settings.app_name)

    try:
        async with MindCanvasSession(settings) as session:
            session.subscribe_processing(show_processing)
            outcome = await session.handle_transcript(text, is_final=True)
            await session.scheduler.drain()

            intention = session.store.require_intention(outcome.intention_id)
            if not outcome.success:
                console.warning("Continuing in manual mode", outcome.error)
            elif outcome.degraded:
                console.warning("Showing default tasks", outcome.error)
            else:
                console.success(intention.title)

            if args.usage:
                print_usage(session)

            if args.regenerate and outcome.success:
                more = await session.generate_more_tasks(intention.id)
                await session.scheduler.drain()
                console.info(f"Added {more.tasks_scheduled} more task(s)")
                if args.usage:
                    print_usage(session)

            if args.execute:
                console.separator()
                failed = 0
                for task in session.store.get_tasks(intention.id):
                    execution = await session.execute_task(task.id)
                    if execution.error:
                        failed += 1
                if failed:
                    console.warning(f"{failed} task(s) failed")
                if args.usage:
                    print_usage(session)

            if args.collate:
                console.header("Results")
                print(session.collate_outputs(intention.id))

    except MindCanvasError as e:
        await handle_error(e, "MindCanvas session")
        return 1
    except Exception as e:
        console.error(str(e))
        if args.verbose:
            import traceback
            traceback.print_exc()
        return 1

    if args.timing:
        timing().print_summary()

    return 0


def main() -> None:
    """Main entry point."""
    args = parse_args()
    exit_code = asyncio.run(main_async(args))
    sys.exit(exit_code)


if __name__ == "__main__":
    main()
