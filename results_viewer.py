import glob
import json
import logging
import os
import shutil
import webbrowser
from pathlib import Path

from chart_generator import metrics_trend_chart
from lighthouse_errors import NoResultsError
from metrics_extractor import extract_metrics, load_report
from performance_report_generator import PerformanceReportGenerator
from run_orchestrator import ASSERTION_RESULTS_FILE
from thresholds_comparison import ThresholdsComparison

logger = logging.getLogger(__name__)


class ResultsViewer(object):
    """Read-only views over the results directory: lhr-*.json/html pairs and assertion results."""

    def __init__(self, results_dir, report_builder, comparison=None):
        self.results_dir = results_dir
        self.report_builder = report_builder
        self.comparison = comparison or ThresholdsComparison()
        self.generator = PerformanceReportGenerator()

    def _ensure_results_dir(self):
        if not os.path.isdir(self.results_dir):
            raise NoResultsError(f"No Lighthouse results found in {self.results_dir}")

    def result_files(self, extension="json"):
        """Run reports, newest first."""
        self._ensure_results_dir()
        files = glob.glob(os.path.join(self.results_dir, f"lhr-*.{extension}"))
        return sorted(files, key=lambda path: (os.path.getmtime(path), path), reverse=True)

    def latest_reports(self, count):
        files = self.result_files("json")[:count]
        if not files:
            raise NoResultsError("No Lighthouse result files found")
        return [load_report(path) for path in files]

    def load_assertions(self):
        path = os.path.join(self.results_dir, ASSERTION_RESULTS_FILE)
        if not os.path.isfile(path):
            raise NoResultsError("No assertion results found")
        with open(path, "r", encoding="utf-8") as f:
            return json.load(f)

    def _assertion_status(self):
        try:
            records = self.load_assertions()
        except NoResultsError:
            return "Finished"
        return "Success" if ThresholdsComparison.run_passed(records) else "Failed"

    def summary(self):
        """Latest run with CWV labels, hints and the trend against the run before it."""
        reports = self.latest_reports(2)
        report = reports[0]
        metrics = extract_metrics(report)
        previous_metrics = extract_metrics(reports[1]) if len(reports) > 1 else None
        summary = self.generator.generate_summary(self._assertion_status(), metrics, previous_metrics)
        return self.report_builder.create_summary(report, metrics, summary)

    def list_results(self):
        return {"json": self.result_files("json"), "html": self.result_files("html")}

    def open_report(self, opener=webbrowser.open):
        files = self.result_files("html")
        if not files:
            raise NoResultsError("No HTML report files found")
        latest = files[0]
        if not opener(Path(latest).resolve().as_uri()):
            logger.warning(f"Could not auto-open browser. Please manually open: {latest}")
        return latest

    def compare_runs(self):
        files = self.result_files("json")
        if len(files) < 2:
            raise NoResultsError(f"Need at least 2 runs to compare. Only found {len(files)} result(s).")
        latest, previous = load_report(files[0]), load_report(files[1])
        comparisons = self.comparison.compare(latest, previous)
        return self.report_builder.create_runs_comparison(latest, previous, comparisons)

    def assertions(self):
        return self.report_builder.create_assertions_view(self.load_assertions())

    def chart(self, path_to_save=None, limit=10):
        """Trend chart of the newest `limit` runs, oldest on the left."""
        reports = list(reversed(self.latest_reports(limit)))
        runs = [extract_metrics(report) for report in reports]
        datapoints = {
            'title': 'Core Web Vitals',
            'x_axis': 'Test Runs',
            'y_axis': 'Time, ms',
            'width': 14,
            'height': 4,
            'path_to_save': path_to_save or os.path.join(self.results_dir, 'metrics_trend.png'),
            'values': list(range(1, len(runs) + 1)),
            'labels': [self.report_builder.env.filters["local_time"](report.fetch_time) for report in reports]
        }
        for metric in ['fcp', 'lcp', 'tbt']:
            datapoints[metric] = [round(run[metric]) for run in runs]
        metrics_trend_chart(datapoints)
        return datapoints['path_to_save']

    def clean(self):
        if not os.path.isdir(self.results_dir):
            return False
        shutil.rmtree(self.results_dir)
        return True
