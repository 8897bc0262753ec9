GOOD = "good"
NEEDS_IMPROVEMENT = "needs-improvement"
POOR = "poor"

# metric: (good boundary, poor boundary, unit, lower is better)
CWV_THRESHOLDS = {
    "lcp": (2500, 4000, "ms", True),
    "fcp": (1800, 3000, "ms", True),
    "cls": (0.1, 0.25, "", True),
    "tbt": (200, 600, "ms", True),
    "score": (0.9, 0.5, "", False)
}

LABELS = {
    GOOD: "Good",
    NEEDS_IMPROVEMENT: "Needs Improvement",
    POOR: "Poor"
}

ANALYSIS_HINTS = {
    "lcp": "LCP is slow - optimize largest image/element loading",
    "fcp": "FCP is slow - reduce render-blocking resources",
    "cls": "CLS is high - fix layout shifts (images without dimensions, dynamic content)",
    "tbt": "TBT is high - reduce JavaScript execution time"
}


def evaluate(metric, value):
    """
    Classify a metric value into good / needs-improvement / poor.

    Lower-is-better metrics are good up to and including the first cutoff and
    poor strictly above the second one. The performance score is higher-is-better.
    """
    good, poor, _, lower_is_better = CWV_THRESHOLDS[metric]
    if lower_is_better:
        if value <= good:
            return GOOD
        if value <= poor:
            return NEEDS_IMPROVEMENT
        return POOR
    if value >= good:
        return GOOD
    if value >= poor:
        return NEEDS_IMPROVEMENT
    return POOR


def format_value(metric, value):
    if value is None:
        return "n/a"
    if metric == "score":
        return f"{round(value * 100)}%"
    unit = CWV_THRESHOLDS[metric][2]
    if unit == "ms":
        return f"{round(value)}ms"
    return f"{value:.3f}"


class PerformanceReportGenerator:
    """
    Generates executive performance summaries based on Google Core Web Vitals standards
    and the configured Lighthouse assertions.

    The generator uses a 6-case decision matrix that balances:
    - Assertion compliance (CI/CD gates)
    - Google CWV standards (User Experience benchmarks)
    - Trend against the previous run or the baseline
    """

    def _get_cwv_label(self, value, metric):
        """
        Returns Google CWV label based on metric value.

        Args:
            value (float): Metric value (ms for timings, unitless for CLS)
            metric (str): 'lcp', 'fcp', 'cls', 'tbt' or 'score'

        Returns:
            str: label, e.g. "Good"
        """
        if value is None or metric not in CWV_THRESHOLDS:
            return "Unknown"
        return LABELS[evaluate(metric, value)]

    def _analyze_trend(self, current, previous, tolerance_percent=10.0, lower_is_better=True):
        """
        Determines if the metric is Improving, Stable, or Degrading.
        Uses a configurable tolerance buffer to avoid noise from minor fluctuations.
        """
        if previous is None or current is None:
            return "Unknown"
        if previous == 0:
            if current == 0:
                return "Stable"
            return "Degrading" if lower_is_better else "Improving"

        diff = current - previous
        threshold = abs(previous) * (tolerance_percent / 100.0)

        if abs(diff) <= threshold:
            return "Stable"
        if (diff < 0) == lower_is_better:
            return "Improving"
        return "Degrading"

    @staticmethod
    def quick_analysis(metrics):
        """Hints for every Core Web Vital in the poor range."""
        hints = []
        for metric, hint in ANALYSIS_HINTS.items():
            if metrics.get(metric) is not None and evaluate(metric, metrics[metric]) == POOR:
                hints.append(hint)
        return hints

    @staticmethod
    def all_good(metrics):
        return all(metrics.get(metric) is not None and evaluate(metric, metrics[metric]) == GOOD
                   for metric in ANALYSIS_HINTS)

    def generate_summary(self, threshold_status, metrics, previous_metrics=None, degradation_rate=10.0):
        """
        Generates the Executive Summary based on the 6-case logic matrix.

        Decision Matrix:
        ┌──────────────────┬──────────────┬──────────────┐
        │                  │ CWV Good     │ CWV Poor     │
        ├──────────────────┼──────────────┼──────────────┤
        │ No Assertions    │ SUCCESS (1)  │ WARNING (2)  │
        │ Assertions Pass  │ SUCCESS (3)  │ WARNING (4)  │
        │ Assertions Fail  │ FAILURE (5)  │ FAILURE (6)  │
        └──────────────────┴──────────────┴──────────────┘

        Args:
            threshold_status (str): "Success", "Failed", or "Finished" (no assertions configured)
            metrics (dict): Current {lcp, fcp, cls, tbt, score}
            previous_metrics (dict): Previous run or baseline metrics, optional
            degradation_rate (float): Tolerance percentage for trend analysis (default: 10.0)

        Returns:
            dict: Summary containing status, verdict, and metric details
        """
        previous_metrics = previous_metrics or {}
        is_cwv_good = self.all_good(metrics)

        thresholds_set = threshold_status != "Finished"
        threshold_passed = threshold_status == "Success"

        if not thresholds_set:
            if is_cwv_good:
                final_status = "SUCCESS"
                verdict_text = "All Core Web Vitals are in the GOOD range."
            else:
                final_status = "WARNING"
                verdict_text = "Some Core Web Vitals fall below Google CWV standards."
        elif threshold_passed:
            if is_cwv_good:
                final_status = "SUCCESS"
                verdict_text = "Assertions passed. All Core Web Vitals are in the GOOD range."
            else:
                # Assertions pass but CWV still poor: thresholds are looser than Google's
                final_status = "WARNING"
                verdict_text = "Assertions passed, but some Core Web Vitals fall below Google CWV standards. " \
                               "Tighten assertions to align with Google benchmarks."
        else:
            final_status = "FAILURE"
            if is_cwv_good:
                verdict_text = "Assertions failed, though all Core Web Vitals meet Google CWV standards. " \
                               "Your assertions are stricter than Google benchmarks."
            else:
                verdict_text = "Assertions failed, and some Core Web Vitals fall below Google CWV standards. " \
                               "Immediate optimization is required."

        details = {}
        for metric, (_, _, _, lower_is_better) in CWV_THRESHOLDS.items():
            value = metrics.get(metric)
            details[metric] = {
                "value": format_value(metric, value),
                "label": self._get_cwv_label(value, metric),
                "trend": self._analyze_trend(value, previous_metrics.get(metric), degradation_rate, lower_is_better)
            }

        return {
            "status": final_status,
            "verdict": verdict_text,
            "hints": self.quick_analysis(metrics),
            "metrics": details
        }
