import json
import logging
import os
from enum import Enum

from baseline_store import BaselineStore
from lighthouse_client import LighthouseRunner, ServerManager
from lighthouse_errors import LighthouseError
from metrics_extractor import PerformanceReport
from thresholds_comparison import ThresholdsComparison

logger = logging.getLogger(__name__)

ASSERTION_RESULTS_FILE = "assertion-results.json"


class RunState(Enum):
    IDLE = "Idle"
    SERVER_STARTING = "ServerStarting"
    SERVER_READY = "ServerReady"
    AUDIT_RUNNING = "AuditRunning"
    REPORT_COLLECTED = "ReportCollected"
    EVALUATED = "Evaluated"
    PASSED = "Passed"
    FAILED = "Failed"
    ERROR = "Error"


class RunMode(Enum):
    COLLECT = "collect"
    COMPARE = "compare"
    CREATE_BASELINE = "create-baseline"


TRANSITIONS = {
    RunState.IDLE: {RunState.SERVER_STARTING, RunState.ERROR},
    RunState.SERVER_STARTING: {RunState.SERVER_READY, RunState.ERROR},
    RunState.SERVER_READY: {RunState.AUDIT_RUNNING, RunState.ERROR},
    RunState.AUDIT_RUNNING: {RunState.REPORT_COLLECTED, RunState.ERROR},
    RunState.REPORT_COLLECTED: {RunState.EVALUATED, RunState.ERROR},
    RunState.EVALUATED: {RunState.PASSED, RunState.FAILED, RunState.ERROR},
    RunState.PASSED: set(),
    RunState.FAILED: set(),
    RunState.ERROR: set()
}

TERMINAL_STATES = {RunState.PASSED, RunState.FAILED, RunState.ERROR}


class UrlResult(object):
    def __init__(self, url):
        self.url = url
        self.reports = []
        self.report_paths = []
        self.metrics = None
        self.comparisons = None
        self.records = []


def baseline_from(url_result):
    """The median values of a URL's runs, stamped with the latest run's fetch time."""
    metrics = url_result.metrics
    return PerformanceReport.from_values(url_result.url, url_result.reports[-1].fetch_time, metrics,
                                         metrics.get("score"))


class RunResult(object):
    def __init__(self, mode):
        self.mode = mode
        self.state = RunState.IDLE
        self.url_results = []
        self.records = []
        self.baseline = None

    @property
    def passed(self):
        return self.state == RunState.PASSED


class RunOrchestrator(object):
    """
    Drives one run: server readiness, repeated audits, median aggregation and evaluation.

    A run ends in Passed, Failed or Error and is never retried; rerunning is an explicit action.
    """

    def __init__(self, arguments, runner=None, baseline_store=None, comparison=None, server_factory=None):
        self.args = arguments
        self.runner = runner or LighthouseRunner(arguments)
        self.baseline_store = baseline_store or BaselineStore.in_results_dir(arguments['results_dir'])
        self.comparison = comparison or ThresholdsComparison.from_args(arguments)
        self.server_factory = server_factory or (lambda url: ServerManager.from_args(arguments, url))
        self.state = RunState.IDLE
        self.history = [RunState.IDLE]

    def _transition(self, state):
        if state not in TRANSITIONS[self.state]:
            raise RuntimeError(f"Illegal run transition {self.state.value} -> {state.value}")
        logger.debug(f"[RUN] {self.state.value} -> {state.value}")
        self.state = state
        self.history.append(state)

    def run(self, mode=RunMode.COLLECT, urls=None):
        """
        Execute one run.

        Args:
            mode (RunMode): collect, compare against the baseline, or create the baseline
            urls (list): overrides the configured URLs

        Returns:
            RunResult: final state Passed or Failed

        Raises:
            LighthouseError: after moving to Error; no partial result is produced
        """
        if self.state != RunState.IDLE:
            raise RuntimeError("A RunOrchestrator executes a single run")
        urls = list(urls or self.args['urls'])
        if not urls:
            raise ValueError("No URLs configured")
        if mode == RunMode.CREATE_BASELINE and len(urls) > 1:
            logger.warning(f"[RUN] A baseline holds one report, only {urls[0]} will be audited")
            urls = urls[:1]

        result = RunResult(mode)
        server = None
        try:
            if mode == RunMode.COMPARE:
                result.baseline = self.baseline_store.read()

            self._transition(RunState.SERVER_STARTING)
            server = self.server_factory(urls[0])
            server.start()
            server.wait_until_ready()
            self._transition(RunState.SERVER_READY)

            self._transition(RunState.AUDIT_RUNNING)
            for url in urls:
                url_result = UrlResult(url)
                for index in range(self.args['number_of_runs']):
                    logger.info(f"[RUN] Audit {index + 1}/{self.args['number_of_runs']} for {url}")
                    report, path = self.runner.run(url)
                    url_result.reports.append(report)
                    url_result.report_paths.append(path)
                result.url_results.append(url_result)
            self._transition(RunState.REPORT_COLLECTED)

            for url_result in result.url_results:
                self._evaluate(url_result, result.baseline)
                result.records += url_result.records
            if mode == RunMode.CREATE_BASELINE:
                result.baseline = self._create_baseline(result.url_results[0])
            self._write_assertion_results(result.records)
            self._transition(RunState.EVALUATED)

            self._transition(RunState.PASSED if self.comparison.run_passed(result.records) else RunState.FAILED)
        except LighthouseError as e:
            logger.error(f"[RUN] {type(e).__name__}: {e}")
            self._transition(RunState.ERROR)
            raise
        except Exception:
            logger.exception(f"[RUN] Unexpected failure in state {self.state.value}")
            if self.state not in TERMINAL_STATES:
                self._transition(RunState.ERROR)
            raise
        finally:
            result.state = self.state
            if server is not None:
                server.stop()
        return result

    def _evaluate(self, url_result, baseline):
        url_result.metrics = self.comparison.aggregate_median(url_result.reports)
        if baseline is not None and baseline.url != url_result.url:
            logger.warning(f"[RUN] Baseline was captured for {baseline.url}, comparing {url_result.url}")
        url_result.records, url_result.comparisons = self.comparison.evaluate(
            url_result.metrics, url_result.url, baseline)

    def _create_baseline(self, url_result):
        return self.baseline_store.create(baseline_from(url_result))

    def _write_assertion_results(self, records):
        if not self.args.get('include_passed_assertions'):
            records = [record for record in records if not record["passed"]]
        os.makedirs(self.args['results_dir'], exist_ok=True)
        path = os.path.join(self.args['results_dir'], ASSERTION_RESULTS_FILE)
        with open(path, "w", encoding="utf-8") as f:
            json.dump(records, f, indent=2)
        logger.info(f"[RUN] Assertion results saved to {path}")
