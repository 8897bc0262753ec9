import logging

import numpy as np

from lighthouse_errors import DivisionUndefinedError
from metrics_extractor import CORE_WEB_VITALS, METRICS_MAPPER, METRIC_TITLES, PerformanceReport, extract_metrics

logger = logging.getLogger(__name__)

SCORE_AUDIT_ID = "categories.performance.score"

# absolute ceilings, independent of any baseline
DEFAULT_MAX_NUMERIC_VALUES = {
    "lcp": 4000,
    "fcp": 3000,
    "cls": 0.25,
    "tbt": 600
}

# allowed degradation from baseline, in percent; looser where run-to-run variance is higher
DEFAULT_BASELINE_PERCENT_DELTA = {
    "lcp": 20,
    "fcp": 20,
    "cls": 50,
    "tbt": 30
}

DEFAULT_SCORE_PERCENT_DELTA = 10


def percent_change(current, reference):
    if reference == 0:
        raise DivisionUndefinedError(f"Percentage change from {reference} to {current} is undefined")
    return (current - reference) / reference * 100


def _as_metrics(value):
    if isinstance(value, PerformanceReport) or (isinstance(value, dict) and "audits" in value):
        return extract_metrics(value)
    return value


class MetricComparison(object):
    """Delta, percentage delta and verdict of one metric against its reference value."""

    def __init__(self, metric, current, reference, allowed, lower_is_better=True):
        self.metric = metric
        self.current = current
        self.reference = reference
        self.allowed = allowed
        self.lower_is_better = lower_is_better
        self.delta = current - reference
        try:
            self.percent_delta = percent_change(current, reference)
            self.undefined = False
        except DivisionUndefinedError as e:
            logger.warning(f"[COMPARE] {metric}: {e}")
            self.percent_delta = None
            self.undefined = True

    @property
    def degraded(self):
        return self.delta > 0 if self.lower_is_better else self.delta < 0

    @property
    def passed(self):
        if not self.degraded or self.undefined or self.allowed is None:
            return True
        return abs(self.percent_delta) <= self.allowed

    @property
    def limit(self):
        """The worst value still accepted against the reference."""
        if self.allowed is None:
            return None
        factor = self.allowed / 100.0
        return self.reference * (1 + factor) if self.lower_is_better else self.reference * (1 - factor)

    def __repr__(self):
        return f"MetricComparison({self.metric}, delta={self.delta}, percent_delta={self.percent_delta}, " \
               f"passed={self.passed})"


class ThresholdsComparison:
    """
    Evaluates median-aggregated Lighthouse metrics against absolute ceilings
    and against a reference (baseline) report.
    """

    def __init__(self, max_numeric_values=None, baseline_percent_delta=None,
                 score_percent_delta=DEFAULT_SCORE_PERCENT_DELTA, levels=None):
        self.max_numeric_values = dict(DEFAULT_MAX_NUMERIC_VALUES if max_numeric_values is None
                                       else max_numeric_values)
        self.baseline_percent_delta = dict(DEFAULT_BASELINE_PERCENT_DELTA if baseline_percent_delta is None
                                           else baseline_percent_delta)
        self.score_percent_delta = score_percent_delta
        self.levels = levels or {}

    @classmethod
    def from_args(cls, args):
        return cls(args["max_numeric_values"], args["baseline_percent_delta"],
                   args["score_percent_delta"], args["assertion_levels"])

    def aggregate_median(self, reports):
        """
        Median of every metric across repeated runs of one URL.
        The median damps single-run outliers; the mean and the last run are never used.
        """
        runs = [_as_metrics(report) for report in reports]
        if not runs:
            raise ValueError("Cannot aggregate an empty list of reports")
        aggregated = {}
        for metric in CORE_WEB_VITALS:
            aggregated[metric] = float(np.median([run[metric] for run in runs]))
        scores = [run["score"] for run in runs if run.get("score") is not None]
        aggregated["score"] = float(np.median(scores)) if scores else None
        return aggregated

    def level(self, metric):
        return self.levels.get(metric, "error")

    def compare(self, current, reference):
        """
        Compare current metrics against a reference (baseline or previous run).

        Args:
            current: metrics dict, PerformanceReport or raw LHR
            reference: metrics dict, PerformanceReport or raw LHR

        Returns:
            dict: metric -> MetricComparison; the score is included when both sides carry one
        """
        current = _as_metrics(current)
        reference = _as_metrics(reference)
        comparisons = {}
        for metric in CORE_WEB_VITALS:
            comparisons[metric] = MetricComparison(metric, current[metric], reference[metric],
                                                   self.baseline_percent_delta.get(metric))
        if current.get("score") is not None and reference.get("score") is not None:
            comparisons["score"] = MetricComparison("score", current["score"], reference["score"],
                                                    self.score_percent_delta, lower_is_better=False)
        return comparisons

    def check_absolute(self, metrics, url=None):
        """Assertion records for the fixed ceilings; no baseline is involved."""
        metrics = _as_metrics(metrics)
        records = []
        for metric in CORE_WEB_VITALS:
            ceiling = self.max_numeric_values.get(metric)
            if ceiling is None or self.level(metric) == "off":
                continue
            actual = metrics[metric]
            passed = actual <= ceiling
            records.append(self._record(metric, "maxNumericValue", "<=", ceiling, actual, passed, url))
            self._log_record(records[-1])
        return records

    def baseline_assertions(self, comparisons, url=None):
        records = []
        for metric, comparison in comparisons.items():
            if comparison.allowed is None or self.level(metric) == "off":
                continue
            operator = "<=" if comparison.lower_is_better else ">="
            records.append(self._record(metric, "baselinePercentDelta", operator, comparison.limit,
                                        comparison.current, comparison.passed, url))
            self._log_record(records[-1])
        return records

    def evaluate(self, metrics, url=None, reference=None):
        """Absolute assertions, plus baseline assertions when a reference is given."""
        records = self.check_absolute(metrics, url)
        comparisons = None
        if reference is not None:
            comparisons = self.compare(metrics, reference)
            records += self.baseline_assertions(comparisons, url)
        return records, comparisons

    def _record(self, metric, name, operator, expected, actual, passed, url):
        return {
            "auditId": METRICS_MAPPER.get(metric, SCORE_AUDIT_ID),
            "auditTitle": METRIC_TITLES[metric],
            "name": name,
            "level": self.level(metric),
            "passed": passed,
            "operator": operator,
            "expected": expected,
            "actual": actual,
            "url": url
        }

    @staticmethod
    def _log_record(record):
        status = "PASSED" if record["passed"] else "FAILED"
        logger.info(f"[ASSERT] {record['auditId']} {record['name']} value {record['actual']} "
                    f"{'comply with' if record['passed'] else 'violates'} rule {record['operator']} "
                    f"{record['expected']} [{status}]")

    @staticmethod
    def run_passed(records):
        """A run fails only on failed assertions at level 'error'."""
        return not any(not record["passed"] and record["level"] == "error" for record in records)

