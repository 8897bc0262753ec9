import pytest

from performance_report_generator import (GOOD, NEEDS_IMPROVEMENT, POOR, PerformanceReportGenerator, evaluate,
                                          format_value)


@pytest.mark.parametrize("metric,value,expected", [
    ("lcp", 2500, GOOD),
    ("lcp", 2501, NEEDS_IMPROVEMENT),
    ("lcp", 4000, NEEDS_IMPROVEMENT),
    ("lcp", 4001, POOR),
    ("fcp", 1800, GOOD),
    ("fcp", 3000, NEEDS_IMPROVEMENT),
    ("fcp", 3000.5, POOR),
    ("cls", 0.1, GOOD),
    ("cls", 0.2, NEEDS_IMPROVEMENT),
    ("cls", 0.26, POOR),
    ("tbt", 0, GOOD),
    ("tbt", 200, GOOD),
    ("tbt", 600, NEEDS_IMPROVEMENT),
    ("tbt", 650, POOR),
    ("score", 0.9, GOOD),
    ("score", 0.5, NEEDS_IMPROVEMENT),
    ("score", 0.49, POOR),
])
def test_evaluate_cutoffs(metric, value, expected):
    assert evaluate(metric, value) == expected


@pytest.mark.parametrize("metric,upper", [("lcp", 6000), ("fcp", 5000), ("cls", 0.5), ("tbt", 1000)])
def test_evaluate_is_monotonic(metric, upper):
    """Increasing a lower-is-better metric never improves its bucket"""
    rank = {GOOD: 0, NEEDS_IMPROVEMENT: 1, POOR: 2}
    values = [upper * step / 100.0 for step in range(0, 101)]
    ranks = [rank[evaluate(metric, value)] for value in values]
    assert ranks == sorted(ranks)


def test_evaluate_unknown_metric():
    with pytest.raises(KeyError):
        evaluate("inp", 100)


def test_format_value():
    assert format_value("lcp", 2345.6) == "2346ms"
    assert format_value("cls", 0.1234) == "0.123"
    assert format_value("score", 0.876) == "88%"
    assert format_value("tbt", None) == "n/a"


GOOD_METRICS = {"lcp": 2000, "fcp": 1000, "cls": 0.05, "tbt": 100, "score": 0.95}
POOR_METRICS = {"lcp": 4500, "fcp": 1000, "cls": 0.05, "tbt": 100, "score": 0.6}


@pytest.mark.parametrize("status,metrics,expected", [
    ("Finished", GOOD_METRICS, "SUCCESS"),
    ("Finished", POOR_METRICS, "WARNING"),
    ("Success", GOOD_METRICS, "SUCCESS"),
    ("Success", POOR_METRICS, "WARNING"),
    ("Failed", GOOD_METRICS, "FAILURE"),
    ("Failed", POOR_METRICS, "FAILURE"),
])
def test_summary_decision_matrix(status, metrics, expected):
    summary = PerformanceReportGenerator().generate_summary(status, metrics)
    assert summary["status"] == expected


def test_summary_hints_and_trend():
    """Poor metrics get a hint; trends use the previous values"""
    previous = {"lcp": 3000, "fcp": 1000, "cls": 0.05, "tbt": 300, "score": 0.8}
    summary = PerformanceReportGenerator().generate_summary("Finished", POOR_METRICS, previous)
    assert summary["hints"] == ["LCP is slow - optimize largest image/element loading"]
    assert summary["metrics"]["lcp"]["trend"] == "Degrading"
    assert summary["metrics"]["fcp"]["trend"] == "Stable"
    assert summary["metrics"]["tbt"]["trend"] == "Improving"
    assert summary["metrics"]["score"]["trend"] == "Degrading"
    assert summary["metrics"]["lcp"]["label"] == "Poor"


def test_trend_without_previous_is_unknown():
    summary = PerformanceReportGenerator().generate_summary("Finished", GOOD_METRICS)
    assert summary["metrics"]["lcp"]["trend"] == "Unknown"
