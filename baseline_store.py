import json
import logging
import os

from lighthouse_errors import NoBaselineError
from metrics_extractor import PerformanceReport, load_report

logger = logging.getLogger(__name__)

BASELINE_FILE_NAME = "baseline-lhr.json"


class BaselineStore(object):
    """
    Persists the single reference report used for regression comparisons.

    The store does not lock: only one baseline-creation workflow may run at a time.
    """

    def __init__(self, path):
        self.path = path

    @classmethod
    def in_results_dir(cls, results_dir):
        return cls(os.path.join(results_dir, BASELINE_FILE_NAME))

    def exists(self):
        return os.path.isfile(self.path)

    def create(self, report):
        """Write `report` as the new baseline, overwriting any previous one."""
        if not isinstance(report, PerformanceReport):
            report = PerformanceReport(report)
        directory = os.path.dirname(self.path)
        if directory:
            os.makedirs(directory, exist_ok=True)
        with open(self.path, "w", encoding="utf-8") as f:
            json.dump(report.to_dict(), f, indent=2)
        logger.info(f"[BASELINE] Saved baseline for {report.url} to {self.path}")
        return report

    def read(self):
        if not self.exists():
            raise NoBaselineError(self.path)
        return load_report(self.path)

    def reset(self):
        if not self.exists():
            raise NoBaselineError(self.path, f"No baseline found to reset at {self.path}")
        os.remove(self.path)
        logger.info(f"[BASELINE] Removed {self.path}")
