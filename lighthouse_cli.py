#!/usr/bin/env python3
"""
Command line entry point for Lighthouse baseline management and results viewing.

Every command is a member of `Command` and has exactly one handler in `HANDLERS`.
"""

import argparse
import logging
import subprocess
import sys
from enum import Enum

from baseline_store import BaselineStore
from github_reporter import post_results
from lighthouse_client import tool_version
from lighthouse_config import parse_args
from lighthouse_errors import LighthouseError, NoBaselineError
from metrics_extractor import extract_metrics
from report_builder import ReportBuilder, print_header, print_status
from results_viewer import ResultsViewer
from run_orchestrator import RunMode, RunOrchestrator, baseline_from
from thresholds_comparison import ThresholdsComparison

logger = logging.getLogger(__name__)


class Command(Enum):
    CREATE_BASELINE = "create-baseline"
    COMPARE = "compare"
    VIEW_BASELINE = "view-baseline"
    RESET_BASELINE = "reset-baseline"
    SUMMARY = "summary"
    LIST = "list"
    OPEN = "open"
    COMPARE_RUNS = "compare-runs"
    ASSERTIONS = "assertions"
    CHART = "chart"
    CLEAN = "clean"
    QUICK = "quick"
    TEST = "test"
    AUTORUN = "autorun"
    HELP = "help"


COMMAND_HELP = {
    Command.CREATE_BASELINE: "Create baseline from current branch",
    Command.COMPARE: "Compare current performance vs baseline",
    Command.VIEW_BASELINE: "View current baseline information",
    Command.RESET_BASELINE: "Delete current baseline",
    Command.SUMMARY: "Show quick summary of latest results",
    Command.LIST: "List all available result files",
    Command.OPEN: "Open latest HTML report in browser",
    Command.COMPARE_RUNS: "Compare latest vs previous run",
    Command.ASSERTIONS: "Show assertion results (pass/fail)",
    Command.CHART: "Render a trend chart of the latest runs",
    Command.CLEAN: "Clean up previous test results",
    Command.QUICK: "Run quick Lighthouse test only",
    Command.TEST: "Run full local test simulation",
    Command.AUTORUN: "CI entry point: collect, assert and optionally post results",
    Command.HELP: "Show this help message"
}

EPILOG = """Workflow:
  1. Checkout a baseline branch
  2. Run '%(prog)s create-baseline' to establish baseline
  3. Switch to feature branch
  4. Run '%(prog)s compare' to check for regressions

Baseline Comparison Logic:
  - LCP can be up to 20%% slower than baseline
  - FCP can be up to 20%% slower than baseline
  - CLS can be up to 50%% worse than baseline
  - TBT can be up to 30%% slower than baseline

File Locations:
  Results folder: .lighthouseci/
  JSON reports:   .lighthouseci/lhr-*.json
  HTML reports:   .lighthouseci/lhr-*.html
  Assertions:     .lighthouseci/assertion-results.json
  Baseline:       .lighthouseci/baseline-lhr.json
"""


def setup_logging(debug=False):
    level = logging.DEBUG if debug else logging.INFO
    logging.basicConfig(level=level, format="%(asctime)s - %(levelname)s - %(message)s", stream=sys.stderr)


def build_parser():
    parser = argparse.ArgumentParser(
        prog="lighthouse-baseline",
        description="Lighthouse Core Web Vitals baseline management\n\nCommands:\n" + "\n".join(
            f"  {command.value:<18} {text}" for command, text in COMMAND_HELP.items()),
        epilog=EPILOG,
        formatter_class=argparse.RawDescriptionHelpFormatter
    )
    parser.add_argument("command", nargs="?", default=Command.HELP.value, choices=[c.value for c in Command],
                        metavar="command", help=", ".join(c.value for c in Command))
    parser.add_argument("--config", default=None, help="Path to lighthouserc.json")
    parser.add_argument("--url", action="append", default=None, help="URL to audit (repeatable, overrides config)")
    parser.add_argument("--yes", "-y", action="store_true", help="Answer yes to confirmation prompts")
    parser.add_argument("--post-results", action="store_true", help="Post results to GitHub (autorun)")
    parser.add_argument("--output", default=None, help="Chart output path")
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")
    return parser


def confirm(question, assume_yes=False):
    if assume_yes:
        return True
    reply = input(f"{question} (y/N): ")
    return reply.strip().lower() in ("y", "yes")


def current_branch():
    try:
        result = subprocess.run(["git", "branch", "--show-current"], capture_output=True, text=True)
    except FileNotFoundError:
        return None
    return result.stdout.strip() if result.returncode == 0 else None


class CommandContext(object):
    def __init__(self, args, options):
        self.args = args
        self.options = options
        self.builder = ReportBuilder(args['timezone'])
        self.store = BaselineStore.in_results_dir(args['results_dir'])
        self.viewer = ResultsViewer(args['results_dir'], self.builder, ThresholdsComparison.from_args(args))

    def orchestrator(self):
        return RunOrchestrator(self.args, baseline_store=self.store)

    def print_run(self, result):
        print(self.builder.create_run_report(result))


def _exit_code(result):
    return 0 if result.passed else 1


def handle_create_baseline(ctx):
    print_status("Creating baseline from current branch...")
    branch = current_branch()
    if ctx.args['baseline_branches'] and branch not in ctx.args['baseline_branches']:
        print_status(f"Not on a target branch. Current branch: {branch}", "WARNING")
        print_status(f"Target branches: {', '.join(ctx.args['baseline_branches'])}")
        if not confirm("Continue with current branch as baseline?", ctx.options.yes):
            print_status("Baseline creation cancelled", "ERROR")
            return 1
    result = ctx.orchestrator().run(RunMode.CREATE_BASELINE)
    ctx.print_run(result)
    print_status("Baseline created successfully", "SUCCESS")
    print_status(f"Baseline saved to {ctx.store.path}")
    return 0


def handle_compare(ctx):
    print_status("Comparing current performance against baseline...")
    result = ctx.orchestrator().run(RunMode.COMPARE)
    ctx.print_run(result)
    print(ctx.builder.create_assertions_view(result.records))
    if result.passed:
        print_status("Baseline comparison completed", "SUCCESS")
    else:
        print_status("Performance regression detected", "ERROR")
    return _exit_code(result)


def handle_view_baseline(ctx):
    baseline = ctx.store.read()
    print_status("Baseline Information:")
    print("-" * 40)
    print(ctx.builder.create_baseline_view(baseline, extract_metrics(baseline), ctx.args['baseline_percent_delta']))
    return 0


def handle_reset_baseline(ctx):
    if not ctx.store.exists():
        print_status("No baseline found to reset", "WARNING")
        return 0
    print_status("This will delete the current baseline", "WARNING")
    if not confirm("Are you sure?", ctx.options.yes):
        print_status("Reset cancelled")
        return 0
    ctx.store.reset()
    print_status("Baseline reset successfully", "SUCCESS")
    return 0


def handle_summary(ctx):
    print_header("Latest Lighthouse Results Summary")
    print(ctx.viewer.summary())
    return 0


def handle_list(ctx):
    files = ctx.viewer.list_results()
    print_header("Available Lighthouse Results")
    print("JSON Reports (detailed data):")
    for path in files["json"]:
        print(f"  📄 {path}")
    print("")
    print("HTML Reports (visual reports):")
    for path in files["html"]:
        print(f"  🌐 {path}")
    return 0


def handle_open(ctx):
    path = ctx.viewer.open_report()
    print_status(f"Opening latest HTML report: {path}")
    return 0


def handle_compare_runs(ctx):
    print_header("Comparing Latest vs Previous Run")
    print(ctx.viewer.compare_runs())
    return 0


def handle_assertions(ctx):
    print_header("Lighthouse CI Assertion Results")
    print(ctx.viewer.assertions())
    return 0


def handle_chart(ctx):
    path = ctx.viewer.chart(ctx.options.output)
    print_status(f"Chart saved to {path}", "SUCCESS")
    return 0


def handle_clean(ctx):
    print_header("Cleaning Test Results")
    if ctx.viewer.clean():
        print_status(f"Removed {ctx.args['results_dir']} directory", "SUCCESS")
    else:
        print_status(f"No {ctx.args['results_dir']} directory found")
    return 0


def handle_quick(ctx):
    print_header("Quick Lighthouse Test")
    result = ctx.orchestrator().run(RunMode.COLLECT)
    print(ctx.viewer.summary())
    print_status("Quick test completed", "SUCCESS")
    return _exit_code(result)


def check_prerequisites(binary):
    print_header("Checking Prerequisites")
    for tool in (binary, "git"):
        version = tool_version(tool)
        if version is None:
            print_status(f"{tool} is not installed", "ERROR")
            return False
        print_status(f"{tool}: {version}")
    print_status("All prerequisites met", "SUCCESS")
    return True


def handle_test(ctx):
    print_header("Lighthouse Local Testing")
    if not check_prerequisites(ctx.args['lighthouse_binary']):
        return 1

    print_header("Running Lighthouse")
    result = ctx.orchestrator().run(RunMode.COLLECT)
    ctx.print_run(result)

    print_header("Testing Baseline Functionality")
    if ctx.store.exists():
        print_status("Baseline found, showing it...")
        handle_view_baseline(ctx)
    else:
        print_status("No baseline found, creating one from this run...")
        ctx.store.create(baseline_from(result.url_results[0]))

    print_header("Test Results Summary")
    print(ctx.viewer.summary())
    handle_list(ctx)
    print_header("Local Testing Complete")
    return _exit_code(result)


def handle_autorun(ctx):
    mode = RunMode.COMPARE if ctx.store.exists() else RunMode.COLLECT
    if mode == RunMode.COLLECT:
        print_status("No baseline found, running absolute assertions only", "WARNING")
    result = ctx.orchestrator().run(mode)
    ctx.print_run(result)
    print(ctx.builder.create_assertions_view(result.records))
    if ctx.args['post_results']:
        post_results(ctx.args, ctx.builder, result)
    return _exit_code(result)


def handle_help(ctx):
    build_parser().print_help()
    return 0


HANDLERS = {
    Command.CREATE_BASELINE: handle_create_baseline,
    Command.COMPARE: handle_compare,
    Command.VIEW_BASELINE: handle_view_baseline,
    Command.RESET_BASELINE: handle_reset_baseline,
    Command.SUMMARY: handle_summary,
    Command.LIST: handle_list,
    Command.OPEN: handle_open,
    Command.COMPARE_RUNS: handle_compare_runs,
    Command.ASSERTIONS: handle_assertions,
    Command.CHART: handle_chart,
    Command.CLEAN: handle_clean,
    Command.QUICK: handle_quick,
    Command.TEST: handle_test,
    Command.AUTORUN: handle_autorun,
    Command.HELP: handle_help
}

if set(HANDLERS) != set(Command):
    raise RuntimeError(f"Commands without a handler: {sorted(c.value for c in set(Command) - set(HANDLERS))}")


def main(argv=None):
    options = build_parser().parse_args(argv)
    setup_logging(options.debug)
    command = Command(options.command)
    try:
        event = {'post_results': options.post_results}
        if options.url:
            event['urls'] = options.url
        args = parse_args(event, options.config)
        return HANDLERS[command](CommandContext(args, options))
    except NoBaselineError as e:
        print_status(str(e), "ERROR")
        print_status(e.hint)
        return 1
    except LighthouseError as e:
        print_status(f"{type(e).__name__}: {e}", "ERROR")
        if e.hint:
            print_status(e.hint)
        return 1


if __name__ == "__main__":
    sys.exit(main())
