#!/usr/bin/env python3
"""
FlexResearch - Conversational Research Planner

Command-line interface: talk through a research topic, review the plan,
then run it and read the synthesis.

Usage:
    python scripts/flexresearch.py
    python scripts/flexresearch.py --topic "Market research for home solar batteries"
    python scripts/flexresearch.py --mode sequential --quality-review
    python scripts/flexresearch.py --timing  # Enable performance timing
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

from rich.console import Console as RichConsole
from rich.markdown import Markdown
from rich.panel import Panel


DONE_COMMANDS = {"/done", "/finalize"}
QUIT_COMMANDS = {"/quit", "/exit"}


def parse_args() -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description="FlexResearch: conversational research planning and execution",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Describe what you want to research, answer the clarifying questions, and
type /done when the plan looks right (or wait for it to be confirmed).
Type /quit to leave without running anything.

Examples:
  python scripts/flexresearch.py
  python scripts/flexresearch.py --topic "Compare vector databases" --mode sequential
  python scripts/flexresearch.py --max-concurrent 2 --quality-review
        """,
    )

    parser.add_argument(
        "--topic",
        help="Initial research description (prompted for if omitted)",
    )

    parser.add_argument(
        "--mode", "-m",
        choices=["concurrent", "parallel", "sequential"],
        help="Batch execution mode (default from config)",
    )

    parser.add_argument(
        "--max-concurrent", "-n",
        type=int,
        help="Units per concurrent slice (default from config)",
    )

    parser.add_argument(
        "--quality-review", "-q",
        action="store_true",
        help="Review results before synthesis",
    )

    parser.add_argument(
        "--config", "-c",
        help="Path to a flexresearch_config.yaml",
    )

    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Verbose output",
    )

    parser.add_argument(
        "--timing", "-t",
        action="store_true",
        help="Enable performance timing metrics",
    )

    parser.add_argument(
        "--no-color",
        action="store_true",
        help="Disable colored console output",
    )

    return parser.parse_args()


def read_input(label: str) -> str:
    from FlexResearch.utils import console

    try:
        return console.user_prompt(label).strip()
    except (KeyboardInterrupt, EOFError):
        return "/quit"


def render_synthesis(rich_console: RichConsole, run) -> None:
    synthesis = run.synthesis
    batch = run.batch

    rich_console.print()
    if synthesis.executive_summary:
        rich_console.print(Panel(Markdown(synthesis.executive_summary), title="Executive Summary"))

    lines = ["## Key Insights", ""]
    lines += [f"- {insight}" for insight in synthesis.cross_dimension_insights]
    lines += [
        "",
        "## Recommendations",
        "",
        f"**Primary**: {synthesis.recommendations.primary}",
        "",
    ]
    lines += [f"- {rec}" for rec in synthesis.recommendations.supporting]
    lines += ["", f"_Confidence: {synthesis.recommendations.confidence:.2f}_"]

    if run.quality_review is not None:
        review = run.quality_review
        lines += ["", "## Quality Review", "", f"Overall score: {review.overall_score:.2f}"]
        lines += [f"- **{issue.severity}**: {issue.description}" for issue in review.issues]

    failed = batch.failed_units
    if failed:
        lines += ["", "## Failed Dimensions", ""]
        lines += [f"- {unit.dimension.name}: {unit.error}" for unit in failed]

    if synthesis.error:
        lines += ["", f"> {synthesis.error}"]

    rich_console.print(Markdown("\n".join(lines)))


async def main_async(args: argparse.Namespace) -> int:
    """Async main function."""
    from FlexResearch.utils import console, enable_timing

    # Enable timing if requested
    if args.timing:
        os.environ["FLEXRESEARCH_TIMING"] = "1"
        enable_timing()

    if args.verbose:
        console.set_verbose(True)
    if args.no_color:
        console.enable_colors(False)

    from FlexResearch.config import get_settings
    from FlexResearch.infrastructure import FlexResearchError, handle_error
    from FlexResearch.orchestrators import ResearchManager
    from FlexResearch.utils.timing import print_timing_summary

    console.header("FlexResearch - Conversational Research Planner")
    topic = args.topic or read_input("Research topic")
    if not topic or topic in QUIT_COMMANDS:
        return 0

    rich_console = RichConsole()
    settings = get_settings(Path(args.config) if args.config else None)
    manager = ResearchManager.from_settings(settings, output_dir=Path.cwd() / "runs")

    try:
        started = await manager.start_session(topic)
        if started.suggested_template:
            console.info(f"Looks like {started.suggested_template.replace('_', ' ')}")
        console.responder_message(started.response)

        while True:
            reply = read_input("YOU")
            if reply in QUIT_COMMANDS:
                manager.abandon_session(started.session_id)
                console.info("Session abandoned")
                return 0
            if reply in DONE_COMMANDS:
                break
            if not reply:
                continue

            outcome = await manager.continue_session(started.session_id, reply)
            console.responder_message(outcome.response)
            if outcome.complete:
                console.success("Configuration complete")
                break

        plan = await manager.finalize(started.session_id)
        rich_console.print(Markdown(plan.preview))

        confirm = read_input("Run this plan? [Y/n]")
        if confirm.lower() in {"n", "no", "/quit"}:
            return 0

        run = await manager.run_batch(
            plan.config_id,
            mode=args.mode,
            max_concurrent=args.max_concurrent,
            include_quality_review=args.quality_review,
        )
        render_synthesis(rich_console, run)

        if args.timing:
            print_timing_summary()
        return 0

    except FlexResearchError as e:
        await handle_error(e, "research session")
        return 1
    except Exception as e:
        console.error(str(e))
        if args.verbose:
            import traceback
            traceback.print_exc()
        return 1
    finally:
        await manager.aclose()


def main() -> None:
    """Main entry point."""
    args = parse_args()
    exit_code = asyncio.run(main_async(args))
    sys.exit(exit_code)


if __name__ == "__main__":
    main()
