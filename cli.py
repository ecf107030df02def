#!/usr/bin/env python3
"""
DPR Assessor CLI - Command Line Interface
=========================================

Commands:
  dpr-assessor analyze <file>      Run the full analysis on an extracted DPR text
  dpr-assessor simulate <file>     Run one what-if scenario against the document
  dpr-assessor scenarios <file>    Run the standard scenario battery
  dpr-assessor checklist           Show the default DPR checklist
"""

import sys
import os
import argparse
import json
import logging

# Add package root to path
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from rich.console import Console
from rich.table import Table
from rich.panel import Panel
from rich import box

from core.config import get_config
from core.errors import DPRAnalysisError
from core.pipeline import create_pipeline
from analysis.checklist import default_checklist
from schemes.registry import load_registry
from feasibility.models import RiskType, SimulationParameters

logger = logging.getLogger("dpr_assessor.cli")

EXIT_OK = 0
EXIT_USAGE = 1
EXIT_FAILED = 2


def get_console():
    """Rich console bound to the current stdout"""
    return Console()


def print_output(message, style=None):
    """Print output with optional styling"""
    console = get_console()
    if style:
        console.print(message, style=style)
    else:
        console.print(message)


def format_inr(amount) -> str:
    if not amount:
        return "N/A"
    if abs(amount) >= 1e7:
        return f"Rs. {amount / 1e7:,.2f} crore"
    if abs(amount) >= 1e5:
        return f"Rs. {amount / 1e5:,.2f} lakh"
    return f"Rs. {amount:,.0f}"


def read_document(path: str) -> str:
    if not os.path.isfile(path):
        raise FileNotFoundError(f"File not found: {path}")
    with open(path, "r", encoding="utf-8", errors="replace") as f:
        return f.read()


def document_id(args) -> str:
    return args.id or os.path.splitext(os.path.basename(args.file))[0]


def run_analysis(args, with_schemes: bool = True):
    text = read_document(args.file)
    registry = None
    if with_schemes and getattr(args, "schemes", None):
        registry = load_registry(args.schemes)

    pipeline = create_pipeline(get_config())
    report = pipeline.analyze(
        document_id(args),
        text,
        registry=registry,
        state=getattr(args, "state", None),
    )
    return pipeline, report


# ---------------------------------------------------------------------------
# Rendering
# ---------------------------------------------------------------------------

def render_sections(console, report):
    table = Table(title="Sections", box=box.ROUNDED)
    table.add_column("#", style="dim", justify="right")
    table.add_column("Type", style="cyan")
    table.add_column("Confidence", justify="right")
    table.add_column("Span", style="dim")
    table.add_column("Length", justify="right")

    for i, section in enumerate(report.sections, 1):
        table.add_row(
            str(i),
            section.type.value,
            f"{section.confidence:.2f}",
            f"{section.start_position}-{section.end_position}",
            str(section.length),
        )
    console.print(table)


def render_gaps(console, report):
    gap = report.features.gap_analysis
    summary = gap.summary

    table = Table(title=f"Checklist Gaps ({gap.checklist_id})", box=box.ROUNDED)
    table.add_column("Section", style="cyan")
    table.add_column("Present")
    table.add_column("Score", justify="right")
    table.add_column("Complete", justify="right")

    for score in gap.section_scores:
        table.add_row(
            score.section_name,
            "[green]yes[/green]" if score.present else "[red]no[/red]",
            f"{score.score:.1f} / {score.max_score:.1f}",
            f"{score.completeness_percentage:.0f}%",
        )
    console.print(table)

    console.print(
        f"Overall score [bold]{gap.overall_score:.1f}[/bold] / 100, "
        f"{summary.present_fields}/{summary.total_fields} fields present, "
        f"{summary.critical_issues} critical issues"
    )
    for rec in gap.recommendations[:5]:
        console.print(f"  • {rec}", style="yellow")


def render_schemes(console, report):
    if report.scheme_verification is not None:
        verification = report.scheme_verification
        console.print(
            f"Scheme references: {len(verification.verified_schemes)} verified, "
            f"{len(verification.unverified_schemes)} unverified "
            f"(completeness {verification.gap_analysis.completeness_score:.2f}, "
            f"severity {verification.gap_analysis.severity.value})"
        )
        for mention in verification.unverified_schemes:
            console.print(f"  ✗ {mention}", style="red")

    matching = report.scheme_matching
    if matching is None:
        return

    table = Table(title=f"Scheme Matches ({matching.total_schemes_evaluated} evaluated)", box=box.ROUNDED)
    table.add_column("Scheme", style="cyan")
    table.add_column("Code")
    table.add_column("Match")
    table.add_column("Relevance", justify="right")
    table.add_column("Confidence", justify="right")

    for match in matching.matches:
        table.add_row(
            match.scheme.scheme_name,
            match.scheme.scheme_code,
            match.match_type.value,
            f"{match.relevance_score:.2f}",
            f"{match.confidence_score:.2f}",
        )
    console.print(table)


def render_probability(console, report):
    probability = report.probability
    breakdown = probability.breakdown

    table = Table(title="Completion Probability", box=box.ROUNDED)
    table.add_column("Component", style="cyan")
    table.add_column("Points", justify="right")

    table.add_row("Base score", str(breakdown.base_score))
    table.add_row("Timeline", f"{breakdown.timeline_adjustment:+d}")
    table.add_row("Resources", f"{breakdown.resource_adjustment:+d}")
    table.add_row("Complexity", f"{breakdown.complexity_adjustment:+d}")
    table.add_row("Location", f"{breakdown.location_adjustment:+d}")
    table.add_row("Historical", f"{breakdown.historical_adjustment:+d}")
    table.add_row("Risk", f"{breakdown.risk_adjustment:+d}")
    table.add_row("[bold]Final[/bold]", f"[bold]{breakdown.final_score}%[/bold]")
    console.print(table)

    risk = report.risk_analysis
    console.print(
        f"Risk level [bold]{risk.risk_level.value}[/bold] (score {risk.risk_score}), "
        f"confidence {probability.confidence_level:.2f}"
    )
    for action in report.recommendations.prioritized_actions[:5]:
        console.print(f"  → {action}")


def render_result(console, result):
    comparison = result.comparison
    scenario = result.scenario

    table = Table(title=scenario.name, box=box.ROUNDED)
    table.add_column("Metric", style="cyan")
    table.add_column("Value", justify="right")

    table.add_row("Completion probability", f"{scenario.completion_probability}%")
    table.add_row("Change vs baseline", f"{comparison.probability_change:+d}")
    table.add_row("Risk score", str(scenario.risk_score))
    table.add_row("Risk change", f"{comparison.risk_change:+d}")
    table.add_row("Cost impact", format_inr(comparison.cost_impact))
    table.add_row("Time impact", f"{comparison.time_impact:+.1f} months")
    table.add_row("Feasibility", comparison.feasibility_rating.value)
    console.print(table)

    for rec in result.recommendations:
        console.print(f"  • {rec}", style="yellow")


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------

def cmd_analyze(args):
    """Run the full analysis pipeline"""
    pipeline, report = run_analysis(args)

    if args.json:
        print(json.dumps(report.to_dict(), indent=2, default=str))
        return EXIT_OK

    console = get_console()
    metadata = report.features.document_metadata
    console.print(Panel(
        f"[bold]{report.dpr_id}[/bold]\n"
        f"Total cost: {format_inr(metadata.total_cost)}\n"
        f"Category: {report.profile.category}\n"
        f"Processed in {report.processing_time_ms:.0f} ms",
        title="DPR Assessment",
    ))

    render_sections(console, report)
    render_gaps(console, report)
    render_schemes(console, report)
    render_probability(console, report)
    return EXIT_OK


def cmd_simulate(args):
    """Run a single what-if scenario"""
    pipeline, report = run_analysis(args, with_schemes=False)
    session = pipeline.start_simulation(report)

    params = SimulationParameters(
        timeline_multiplier=args.timeline,
        resource_multiplier=args.resources,
        complexity_multiplier=args.complexity,
        accessibility_improvement=args.access,
        additional_risk_mitigation=[RiskType(t) for t in args.mitigate or []],
    )
    result = pipeline.simulator.run_simulation(session.session_id, params)
    pipeline.simulator.close_session(session.session_id)

    if args.json:
        print(json.dumps(result.to_dict(), indent=2, default=str))
        return EXIT_OK

    console = get_console()
    console.print(f"Baseline completion probability: {session.baseline.completion_probability}%")
    render_result(console, result)
    return EXIT_OK


def cmd_scenarios(args):
    """Run the standard scenario battery"""
    pipeline, report = run_analysis(args, with_schemes=False)
    session = pipeline.start_simulation(report)
    analysis = pipeline.simulator.run_comprehensive_analysis(session.session_id)
    pipeline.simulator.close_session(session.session_id)

    if args.json:
        print(json.dumps(analysis.to_dict(), indent=2, default=str))
        return EXIT_OK

    console = get_console()
    table = Table(title=f"What-If Scenarios: {report.dpr_id}", box=box.ROUNDED)
    table.add_column("Scenario", style="cyan")
    table.add_column("Probability", justify="right")
    table.add_column("Change", justify="right")
    table.add_column("Risk", justify="right")
    table.add_column("Cost impact", justify="right")
    table.add_column("Feasibility")

    for summary in analysis.summaries:
        table.add_row(
            summary["scenario"],
            f"{summary['completion_probability']}%",
            f"{summary['probability_change']:+d}",
            str(summary["risk_score"]),
            format_inr(summary["cost_impact"]),
            summary["feasibility_rating"],
        )
    console.print(table)
    console.print(f"Best: [green]{analysis.best.scenario.name}[/green]")
    console.print(f"Worst: [red]{analysis.worst.scenario.name}[/red]")
    return EXIT_OK


def cmd_checklist(args):
    """Show the default checklist"""
    checklist = default_checklist()

    if args.json:
        print(json.dumps(checklist.to_dict(), indent=2, default=str))
        return EXIT_OK

    console = get_console()
    table = Table(title=f"{checklist.name} v{checklist.version}", box=box.ROUNDED)
    table.add_column("Section", style="cyan")
    table.add_column("Weight", justify="right")
    table.add_column("Required")
    table.add_column("Fields")

    for section in checklist.sections:
        table.add_row(
            section.name,
            f"{section.weight:g}",
            "yes" if section.required else "no",
            ", ".join(f.name for f in section.fields),
        )
    console.print(table)
    return EXIT_OK


def build_parser():
    parser = argparse.ArgumentParser(
        prog="dpr-assessor",
        description="DPR Assessor - Detailed Project Report analysis and scoring",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  dpr-assessor analyze ./road_dpr.txt --schemes ./schemes.json
  dpr-assessor analyze ./road_dpr.txt --state Assam --json
  dpr-assessor simulate ./road_dpr.txt --timeline 1.2 --mitigate TIMELINE
  dpr-assessor scenarios ./road_dpr.txt
  dpr-assessor checklist
        """
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")

    subparsers = parser.add_subparsers(dest="command", help="Commands")

    # analyze command
    analyze_parser = subparsers.add_parser("analyze", help="Analyze a DPR text file")
    analyze_parser.add_argument("file", help="Path to the extracted DPR text")
    analyze_parser.add_argument("--schemes", "-s", help="Scheme registry JSON file")
    analyze_parser.add_argument("--state", help="Project state, overrides detection")
    analyze_parser.add_argument("--id", help="Document identifier (default: file name)")
    analyze_parser.add_argument("--json", action="store_true", help="Print the report as JSON")

    # simulate command
    simulate_parser = subparsers.add_parser("simulate", help="Run a what-if scenario")
    simulate_parser.add_argument("file", help="Path to the extracted DPR text")
    simulate_parser.add_argument("--id", help="Document identifier (default: file name)")
    simulate_parser.add_argument("--timeline", type=float, help="Duration multiplier")
    simulate_parser.add_argument("--resources", type=float, help="Resource multiplier")
    simulate_parser.add_argument("--complexity", type=float, help="Complexity multiplier")
    simulate_parser.add_argument("--access", type=float, help="Accessibility improvement (0-2 points)")
    simulate_parser.add_argument(
        "--mitigate", nargs="+", choices=[t.value for t in RiskType], metavar="TYPE",
        help="Risk types to mitigate",
    )
    simulate_parser.add_argument("--json", action="store_true", help="Print the result as JSON")

    # scenarios command
    scenarios_parser = subparsers.add_parser("scenarios", help="Run the standard scenario battery")
    scenarios_parser.add_argument("file", help="Path to the extracted DPR text")
    scenarios_parser.add_argument("--id", help="Document identifier (default: file name)")
    scenarios_parser.add_argument("--json", action="store_true", help="Print the analysis as JSON")

    # checklist command
    checklist_parser = subparsers.add_parser("checklist", help="Show the default checklist")
    checklist_parser.add_argument("--json", action="store_true", help="Print the checklist as JSON")

    return parser


def main(argv=None):
    """Main CLI entry point"""
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    if not args.command:
        parser.print_help()
        return EXIT_USAGE

    # Route to command handler
    commands = {
        "analyze": cmd_analyze,
        "simulate": cmd_simulate,
        "scenarios": cmd_scenarios,
        "checklist": cmd_checklist,
    }

    handler = commands[args.command]
    try:
        return handler(args)
    except FileNotFoundError as e:
        print_output(f"Error: {e}", "red")
        return EXIT_USAGE
    except (ValueError, DPRAnalysisError) as e:
        logger.debug("Command failed", exc_info=True)
        print_output(f"Error: {e}", "red")
        return EXIT_FAILED


if __name__ == "__main__":
    sys.exit(main())
