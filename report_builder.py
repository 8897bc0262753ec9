# Copyright 2019 getcarrier.io

# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

import os
from datetime import datetime

import pytz
from jinja2 import Environment, FileSystemLoader

from metrics_extractor import CORE_WEB_VITALS, METRIC_TITLES
from performance_report_generator import GOOD, NEEDS_IMPROVEMENT, evaluate, format_value

TEMPLATES_DIR = os.path.join(os.path.dirname(os.path.abspath(__file__)), "templates")

RED = '\033[0;31m'
GREEN = '\033[0;32m'
YELLOW = '\033[1;33m'
BLUE = '\033[0;34m'
CYAN = '\033[0;36m'
NC = '\033[0m'

STATUS_COLOR = {
    "INFO": BLUE,
    "SUCCESS": GREEN,
    "WARNING": YELLOW,
    "ERROR": RED
}

BUCKET_ICON = {
    GOOD: "🟢",
    NEEDS_IMPROVEMENT: "🟡"
}


def print_status(message, level="INFO"):
    print(f"{STATUS_COLOR[level]}[{level}]{NC} {message}")


def print_header(message):
    print(f"{CYAN}=== {message} ==={NC}")


def convert_to_timezone(fetch_time, timezone="UTC", output_format='%Y-%m-%d %H:%M:%S'):
    """
    Convert a Lighthouse fetchTime (ISO 8601, UTC) to the configured timezone.
    Args:
        fetch_time: e.g. '2024-05-01T10:15:30.123Z'
        timezone: pytz timezone name
        output_format: Output format for datetime string
    Returns:
        Datetime string in the requested timezone
    """
    if not fetch_time:
        return "unknown"
    utc_dt = datetime.fromisoformat(fetch_time.replace("Z", "+00:00"))
    if utc_dt.tzinfo is None:
        utc_dt = pytz.UTC.localize(utc_dt)
    return utc_dt.astimezone(pytz.timezone(timezone)).strftime(output_format)


def bucket_icon(metric, value):
    if value is None:
        return "⚪"
    return BUCKET_ICON.get(evaluate(metric, value), "🔴")


def change_indicator(diff, lower_is_better=True):
    if abs(diff) < 0.001:
        return "➡️ "
    if lower_is_better:
        return "🟢⬇️" if diff < 0 else "🔴⬆️"
    return "🟢⬆️" if diff > 0 else "🔴⬇️"


def signed(metric, value):
    sign = "+" if value > 0 else ""
    if metric == "score":
        return f"{sign}{value * 100:.0f}%"
    if metric == "cls":
        return f"{sign}{value:.3f}"
    return f"{sign}{value:.0f}ms"


def signed_percent(value):
    if value is None:
        return "undefined change"
    sign = "+" if value > 0 else ""
    return f"{sign}{value:.1f}%"


class ReportBuilder:

    def __init__(self, timezone="UTC"):
        self.timezone = timezone
        self.env = Environment(loader=FileSystemLoader(TEMPLATES_DIR), trim_blocks=True, lstrip_blocks=True,
                               keep_trailing_newline=True)
        self.env.filters["fmt"] = lambda value, metric: format_value(metric, value)
        self.env.filters["icon"] = lambda value, metric: bucket_icon(metric, value)
        self.env.filters["signed"] = lambda value, metric: signed(metric, value)
        self.env.filters["percent"] = signed_percent
        self.env.filters["local_time"] = lambda value: convert_to_timezone(value, self.timezone)
        self.env.globals.update(titles=METRIC_TITLES, core_web_vitals=CORE_WEB_VITALS,
                                indicator=change_indicator)

    def render(self, template_name, **params):
        return self.env.get_template(template_name).render(**params)

    def create_summary(self, report, metrics, summary):
        return self.render("summary.txt", report=report, metrics=metrics, summary=summary)

    def create_baseline_view(self, baseline, metrics, baseline_percent_delta):
        limits = {}
        for metric in CORE_WEB_VITALS:
            allowed = baseline_percent_delta.get(metric)
            if allowed is not None:
                limits[metric] = {"value": metrics[metric] * (1 + allowed / 100.0), "allowed": allowed}
        return self.render("baseline.txt", baseline=baseline, metrics=metrics, limits=limits)

    def create_runs_comparison(self, latest, previous, comparisons):
        return self.render("runs_comparison.txt", latest=latest, previous=previous, comparisons=comparisons)

    def create_assertions_view(self, records):
        passed = [record for record in records if record["passed"]]
        failed = [record for record in records if not record["passed"]]
        return self.render("assertions.txt", records=records, passed=passed, failed=failed)

    def create_run_report(self, result):
        return self.render("run.txt", result=result)

    def create_github_comment(self, result):
        return self.render("github_comment.md", result=result)
