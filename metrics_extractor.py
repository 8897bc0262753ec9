import json

from lighthouse_errors import AuditInvocationError, MissingAuditError


METRICS_MAPPER = {
    "lcp": "largest-contentful-paint",
    "fcp": "first-contentful-paint",
    "cls": "cumulative-layout-shift",
    "tbt": "total-blocking-time"
}

METRIC_TITLES = {
    "lcp": "Largest Contentful Paint",
    "fcp": "First Contentful Paint",
    "cls": "Cumulative Layout Shift",
    "tbt": "Total Blocking Time",
    "score": "Performance Score"
}

CORE_WEB_VITALS = list(METRICS_MAPPER.keys())


class PerformanceReport(object):
    """
    One Lighthouse result (LHR) as produced by a single audit run.
    The raw LHR dict is kept as-is so a stored baseline round-trips unchanged.
    """

    def __init__(self, lhr):
        if not isinstance(lhr, dict):
            raise AuditInvocationError(f"Lighthouse report must be a JSON object, got {type(lhr).__name__}")
        self.lhr = lhr

    @classmethod
    def from_values(cls, url, fetch_time, values, score=None):
        """Build a minimal LHR from plain metric values keyed by lcp/fcp/cls/tbt."""
        audits = {}
        for metric, audit_id in METRICS_MAPPER.items():
            if metric in values and values[metric] is not None:
                audits[audit_id] = {
                    "id": audit_id,
                    "title": METRIC_TITLES[metric],
                    "numericValue": values[metric]
                }
        lhr = {"requestedUrl": url, "finalUrl": url, "fetchTime": fetch_time, "audits": audits}
        if score is not None:
            lhr["categories"] = {"performance": {"id": "performance", "score": score}}
        return cls(lhr)

    @property
    def url(self):
        return self.lhr.get("finalUrl") or self.lhr.get("requestedUrl")

    @property
    def fetch_time(self):
        return self.lhr.get("fetchTime")

    @property
    def audits(self):
        return self.lhr.get("audits", {})

    @property
    def score(self):
        return self.lhr.get("categories", {}).get("performance", {}).get("score")

    def numeric_value(self, audit_id):
        audit = self.audits.get(audit_id)
        if not isinstance(audit, dict) or audit.get("numericValue") is None:
            raise MissingAuditError(audit_id)
        return audit["numericValue"]

    def to_dict(self):
        return self.lhr

    def __eq__(self, other):
        return isinstance(other, PerformanceReport) and self.lhr == other.lhr

    def __repr__(self):
        return f"PerformanceReport(url={self.url!r}, fetch_time={self.fetch_time!r})"


def extract_metrics(report):
    """
    Extract the four Core Web Vitals and the performance score.

    Args:
        report: PerformanceReport or raw LHR dict

    Returns:
        dict: {lcp, fcp, cls, tbt, score}; score is None when the performance category is absent

    Raises:
        MissingAuditError: if any of the four audits is absent
    """
    if not isinstance(report, PerformanceReport):
        report = PerformanceReport(report)
    metrics = {}
    for metric, audit_id in METRICS_MAPPER.items():
        metrics[metric] = float(report.numeric_value(audit_id))
    score = report.score
    metrics["score"] = float(score) if score is not None else None
    return metrics


def load_report(path):
    """Read an LHR JSON file written by the lighthouse CLI."""
    try:
        with open(path, "r", encoding="utf-8") as f:
            return PerformanceReport(json.load(f))
    except json.JSONDecodeError as e:
        raise AuditInvocationError(f"Malformed Lighthouse report {path}: {e}")
