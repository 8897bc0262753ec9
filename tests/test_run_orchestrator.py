import json
import os

import pytest

from baseline_store import BaselineStore
from lighthouse_errors import AuditInvocationError, NoBaselineError, ServerNotReadyError
from metrics_extractor import PerformanceReport, extract_metrics
from run_orchestrator import ASSERTION_RESULTS_FILE, RunMode, RunOrchestrator, RunState


class FakeRunner:
    def __init__(self, lhrs, fail_on=None):
        self.lhrs = list(lhrs)
        self.fail_on = fail_on
        self.calls = []

    def run(self, url):
        self.calls.append(url)
        if self.fail_on is not None and len(self.calls) == self.fail_on:
            raise AuditInvocationError("Lighthouse exited with code 1")
        lhr = dict(self.lhrs[(len(self.calls) - 1) % len(self.lhrs)], finalUrl=url)
        return PerformanceReport(lhr), f"lhr-{len(self.calls)}.json"


class FakeServer:
    def __init__(self, ready=True):
        self.ready = ready
        self.started = False
        self.stopped = False

    def start(self):
        self.started = True

    def wait_until_ready(self):
        if not self.ready:
            raise ServerNotReadyError("Server at http://localhost:3000 did not respond within 30 seconds")

    def stop(self):
        self.stopped = True


def orchestrator(args, runner, server=None):
    server = server or FakeServer()
    return RunOrchestrator(args, runner=runner, server_factory=lambda url: server), server


def test_collect_run_passes(args, make_lhr):
    runner = FakeRunner([make_lhr(lcp=2100), make_lhr(lcp=2600), make_lhr(lcp=2200)])
    run, server = orchestrator(args, runner)
    result = run.run(RunMode.COLLECT)
    assert result.state == RunState.PASSED
    assert result.passed
    assert run.history == [RunState.IDLE, RunState.SERVER_STARTING, RunState.SERVER_READY, RunState.AUDIT_RUNNING,
                           RunState.REPORT_COLLECTED, RunState.EVALUATED, RunState.PASSED]
    assert len(runner.calls) == 3
    assert result.url_results[0].metrics["lcp"] == 2200
    assert server.started and server.stopped


def test_runs_every_configured_url(args, make_lhr):
    args['urls'] = ["http://localhost:3000", "http://localhost:3000/about"]
    runner = FakeRunner([make_lhr()])
    run, _ = orchestrator(args, runner)
    result = run.run()
    assert runner.calls == ["http://localhost:3000"] * 3 + ["http://localhost:3000/about"] * 3
    assert [url_result.url for url_result in result.url_results] == args['urls']


def test_url_override(args, make_lhr):
    runner = FakeRunner([make_lhr()])
    run, _ = orchestrator(args, runner)
    run.run(urls=["http://example.com"])
    assert set(runner.calls) == {"http://example.com"}


def test_absolute_failure_ends_failed(args, make_lhr):
    """Median TBT of 650ms breaks the 600ms ceiling"""
    runner = FakeRunner([make_lhr(tbt=650), make_lhr(tbt=700), make_lhr(tbt=500)])
    run, _ = orchestrator(args, runner)
    result = run.run(RunMode.COLLECT)
    assert result.state == RunState.FAILED
    with open(os.path.join(args['results_dir'], ASSERTION_RESULTS_FILE)) as f:
        written = json.load(f)
    assert [record["auditId"] for record in written] == ["total-blocking-time"]


def test_include_passed_assertions(args, make_lhr):
    args['include_passed_assertions'] = True
    run, _ = orchestrator(args, FakeRunner([make_lhr()]))
    run.run()
    with open(os.path.join(args['results_dir'], ASSERTION_RESULTS_FILE)) as f:
        assert len(json.load(f)) == 4


def test_compare_without_baseline_errors(args, make_lhr):
    runner = FakeRunner([make_lhr()])
    run, server = orchestrator(args, runner)
    with pytest.raises(NoBaselineError):
        run.run(RunMode.COMPARE)
    assert run.state == RunState.ERROR
    assert runner.calls == []
    assert not server.started


def test_compare_against_baseline(args, make_lhr):
    BaselineStore.in_results_dir(args['results_dir']).create(make_lhr(lcp=2000))
    runner = FakeRunner([make_lhr(lcp=2500), make_lhr(lcp=2450), make_lhr(lcp=2600)])
    run, _ = orchestrator(args, runner)
    result = run.run(RunMode.COMPARE)
    assert result.state == RunState.FAILED
    comparison = result.url_results[0].comparisons["lcp"]
    assert comparison.current == 2500
    assert not comparison.passed


def test_compare_within_allowance_passes(args, make_lhr):
    BaselineStore.in_results_dir(args['results_dir']).create(make_lhr(lcp=2000))
    runner = FakeRunner([make_lhr(lcp=2350)])
    run, _ = orchestrator(args, runner)
    assert run.run(RunMode.COMPARE).state == RunState.PASSED


def test_create_baseline_stores_median(args, make_lhr):
    args['urls'] = ["http://localhost:3000", "http://localhost:3000/about"]
    runner = FakeRunner([make_lhr(lcp=2300, score=0.9), make_lhr(lcp=2200, score=0.8),
                         make_lhr(lcp=2900, score=0.95)])
    run, _ = orchestrator(args, runner)
    result = run.run(RunMode.CREATE_BASELINE)
    assert runner.calls == ["http://localhost:3000"] * 3
    stored = BaselineStore.in_results_dir(args['results_dir']).read()
    assert stored.url == "http://localhost:3000"
    assert extract_metrics(stored)["lcp"] == 2300
    assert extract_metrics(stored)["score"] == 0.9
    assert result.baseline == stored


def test_server_not_ready_errors(args, make_lhr):
    runner = FakeRunner([make_lhr()])
    run, server = orchestrator(args, runner, FakeServer(ready=False))
    with pytest.raises(ServerNotReadyError):
        run.run()
    assert run.history[-1] == RunState.ERROR
    assert RunState.SERVER_READY not in run.history
    assert runner.calls == []
    assert server.stopped


def test_single_audit_failure_is_fatal(args, make_lhr):
    """No partial success: the second audit failing ends the whole run"""
    runner = FakeRunner([make_lhr()], fail_on=2)
    run, server = orchestrator(args, runner)
    with pytest.raises(AuditInvocationError):
        run.run()
    assert run.state == RunState.ERROR
    assert run.history[-2] == RunState.AUDIT_RUNNING
    assert len(runner.calls) == 2
    assert server.stopped
    assert not os.path.exists(os.path.join(args['results_dir'], ASSERTION_RESULTS_FILE))


def test_unexpected_failure_ends_in_error(args, make_lhr):
    """Zero runs leaves nothing to aggregate; the run still ends in Error"""
    args['number_of_runs'] = 0
    run, server = orchestrator(args, FakeRunner([make_lhr()]))
    with pytest.raises(ValueError):
        run.run()
    assert run.state == RunState.ERROR
    assert run.history[-2] == RunState.REPORT_COLLECTED
    assert server.stopped


def test_orchestrator_runs_once(args, make_lhr):
    run, _ = orchestrator(args, FakeRunner([make_lhr()]))
    run.run()
    with pytest.raises(RuntimeError):
        run.run()


def test_illegal_transition(args, make_lhr):
    run, _ = orchestrator(args, FakeRunner([make_lhr()]))
    with pytest.raises(RuntimeError):
        run._transition(RunState.PASSED)
