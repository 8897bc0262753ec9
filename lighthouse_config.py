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

import copy
import json
import os
from os import environ

from lighthouse_errors import ConfigurationError
from metrics_extractor import METRICS_MAPPER
from thresholds_comparison import (DEFAULT_BASELINE_PERCENT_DELTA, DEFAULT_MAX_NUMERIC_VALUES,
                                   DEFAULT_SCORE_PERCENT_DELTA)

DEFAULT_CONFIG_PATH = "lighthouserc.json"

DEFAULT_CONFIG = {
    "ci": {
        "collect": {
            "numberOfRuns": 3,
            "url": ["http://localhost:3000"],
            "startServerCommand": None,
            "startServerReadyPattern": "ready on",
            "startServerReadyTimeout": 30000,
            "settings": {
                "chromeFlags": ["--headless", "--no-sandbox", "--disable-dev-shm-usage", "--disable-gpu"],
                "preset": "desktop",
                "onlyCategories": ["performance"],
                "skipAudits": ["service-worker", "installable-manifest", "splash-screen",
                               "themed-omnibox", "maskable-icon"]
            }
        },
        "assert": {
            "includePassedAssertions": False,
            "scorePercentDelta": DEFAULT_SCORE_PERCENT_DELTA,
            "assertions": {
                METRICS_MAPPER[metric]: ["error", {"maxNumericValue": ceiling, "aggregationMethod": "median-run"}]
                for metric, ceiling in DEFAULT_MAX_NUMERIC_VALUES.items()
            }
        }
    },
    "resultsDir": ".lighthouseci",
    "baselineBranches": ["main", "master", "staging"],
    "timezone": "UTC",
    "serverPollInterval": 2,
    "lighthouseBinary": "lighthouse"
}

AUDIT_TO_METRIC = {audit_id: metric for metric, audit_id in METRICS_MAPPER.items()}

# runs are always aggregated by median
AGGREGATION_METHODS = ("median-run", "median")


def deep_merge(base, override):
    merged = copy.deepcopy(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = deep_merge(merged[key], value)
        else:
            merged[key] = copy.deepcopy(value)
    return merged


def load_config(path=None):
    """
    Read the lighthouserc-style JSON file and merge it over the defaults.
    `ciOverrides` is merged on top when running under CI.
    """
    path = path or environ.get("LIGHTHOUSE_CONFIG")
    if path and not os.path.isfile(path):
        raise ConfigurationError(f"Configuration file {path} not found")
    path = path or DEFAULT_CONFIG_PATH
    config = copy.deepcopy(DEFAULT_CONFIG)
    if os.path.isfile(path):
        try:
            with open(path, "r", encoding="utf-8") as f:
                user_config = json.load(f)
        except json.JSONDecodeError as e:
            raise ConfigurationError(f"Malformed configuration file {path}: {e}")
        if not isinstance(user_config, dict):
            raise ConfigurationError(f"Configuration file {path} must contain a JSON object")
        config = deep_merge(config, user_config)
    if environ.get("CI") and isinstance(config.get("ciOverrides"), dict):
        config = deep_merge(config, config["ciOverrides"])
    return config


def parse_assertions(assertions):
    """
    Translate LHCI assertions into ceilings, baseline deltas and levels keyed by metric.

    Each assertion is either a level string or [level, options]. maxNumericValue "auto"
    disables the absolute ceiling so only the baseline delta applies.
    """
    max_numeric_values = dict(DEFAULT_MAX_NUMERIC_VALUES)
    baseline_percent_delta = dict(DEFAULT_BASELINE_PERCENT_DELTA)
    levels = {}
    for audit_id, assertion in assertions.items():
        metric = AUDIT_TO_METRIC.get(audit_id)
        if metric is None:
            raise ConfigurationError(f"Unsupported assertion '{audit_id}'. "
                                     f"Supported: {', '.join(AUDIT_TO_METRIC)}")
        if isinstance(assertion, str):
            level, options = assertion, {}
        elif isinstance(assertion, list) and assertion:
            level = assertion[0]
            options = assertion[1] if len(assertion) > 1 else {}
        else:
            raise ConfigurationError(f"Assertion '{audit_id}' must be a level or [level, options]")
        if level not in ("error", "warn", "off"):
            raise ConfigurationError(f"Assertion '{audit_id}' has unknown level '{level}'")
        levels[metric] = level

        aggregation = options.get("aggregationMethod", "median-run")
        if aggregation not in AGGREGATION_METHODS:
            raise ConfigurationError(f"Assertion '{audit_id}' uses aggregationMethod '{aggregation}', "
                                     f"only {' or '.join(AGGREGATION_METHODS)} is supported")

        max_value = options.get("maxNumericValue", max_numeric_values[metric])
        max_numeric_values[metric] = None if max_value == "auto" else max_value
        if options.get("baselinePercentDelta") is not None:
            baseline_percent_delta[metric] = float(options["baselinePercentDelta"]) * 100
    return max_numeric_values, baseline_percent_delta, levels


def _pr_number(event_path):
    if not event_path or not os.path.isfile(event_path):
        return None
    with open(event_path, "r", encoding="utf-8") as f:
        event = json.load(f)
    return event.get("number") or event.get("issue", {}).get("number")


def parse_args(_event=None, config_path=None):
    args = {}
    event = _event or {}
    # AWS Lambda proxy events carry the payload as a JSON string
    if event.get('body'):
        event = json.loads(event['body'])

    config = load_config(event.get('config') or config_path)
    collect = config["ci"]["collect"]
    settings = collect.get("settings", {})
    assertions = config["ci"]["assert"]

    # Collect
    args['config_path'] = event.get('config') or config_path or environ.get("LIGHTHOUSE_CONFIG") \
        or DEFAULT_CONFIG_PATH
    urls = event.get('urls') or environ.get("LIGHTHOUSE_URLS") or collect["url"]
    urls = urls.split(",") if isinstance(urls, str) else urls
    args['urls'] = [url.strip() for url in urls if url and url.strip()]
    if not args['urls']:
        raise ConfigurationError("No URLs to audit")
    args['number_of_runs'] = int(event.get('number_of_runs', collect["numberOfRuns"]))
    if args['number_of_runs'] < 1:
        raise ConfigurationError(f"numberOfRuns must be at least 1, got {args['number_of_runs']}")
    args['start_server_command'] = event.get('start_server_command', collect.get("startServerCommand"))
    args['start_server_ready_pattern'] = collect.get("startServerReadyPattern")
    args['start_server_ready_timeout'] = float(collect.get("startServerReadyTimeout", 30000)) / 1000
    args['server_poll_interval'] = float(config.get("serverPollInterval", 2))

    # Lighthouse settings
    args['lighthouse_binary'] = environ.get("LIGHTHOUSE_BINARY") or config.get("lighthouseBinary", "lighthouse")
    args['chrome_flags'] = settings.get("chromeFlags", [])
    args['preset'] = settings.get("preset")
    args['only_categories'] = settings.get("onlyCategories", ["performance"])
    args['skip_audits'] = settings.get("skipAudits", [])
    args['results_dir'] = event.get('results_dir') or config.get("resultsDir", ".lighthouseci")

    # Assertions
    args['max_numeric_values'], args['baseline_percent_delta'], args['assertion_levels'] = \
        parse_assertions(assertions.get("assertions", {}))
    args['score_percent_delta'] = assertions.get("scorePercentDelta", DEFAULT_SCORE_PERCENT_DELTA)
    args['include_passed_assertions'] = bool(assertions.get("includePassedAssertions", False))

    # Baseline workflow
    args['baseline_branches'] = config.get("baselineBranches", [])
    args['timezone'] = environ.get("LIGHTHOUSE_TZ") or config.get("timezone", "UTC")

    # GitHub
    args['github_token'] = environ.get("GITHUB_TOKEN") if not event.get('github_token') \
        else event.get('github_token')
    args['github_repository'] = environ.get("GITHUB_REPOSITORY") if not event.get('github_repository') \
        else event.get('github_repository')
    args['github_sha'] = environ.get("GITHUB_SHA") if not event.get('github_sha') else event.get('github_sha')
    args['pr_number'] = event.get('pr_number') or environ.get("LHCI_PR_NUMBER") \
        or _pr_number(environ.get("GITHUB_EVENT_PATH"))
    args['post_results'] = bool(event.get('post_results', False))

    return args
