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

import json
import logging

from baseline_store import BaselineStore
from github_reporter import post_results
from lighthouse_config import parse_args
from lighthouse_errors import LighthouseError
from report_builder import ReportBuilder
from run_orchestrator import RunMode, RunOrchestrator

logger = logging.getLogger(__name__)


def lambda_handler(event, context):
    """
    Single run entry point for CI triggers (comment commands, manual dispatch).
    The event may override the URL list with `urls` and request `post_results`.
    """
    try:
        args = parse_args(event)
        logger.info(f"Auditing {args['urls']} ({args['number_of_runs']} runs each)")

        store = BaselineStore.in_results_dir(args['results_dir'])
        mode = RunMode.COMPARE if store.exists() else RunMode.COLLECT
        result = RunOrchestrator(args, baseline_store=store).run(mode)

        if args['post_results']:
            post_results(args, ReportBuilder(args['timezone']), result)

    except LighthouseError as e:
        logger.error(f"{type(e).__name__}: {e}")
        return {
            'statusCode': 500,
            'body': json.dumps({'error': type(e).__name__, 'message': str(e), 'hint': e.hint})
        }
    except Exception as e:
        logger.exception("Unexpected failure")
        return {
            'statusCode': 500,
            'body': json.dumps({'error': type(e).__name__, 'message': str(e), 'hint': ''})
        }
    failed = [record for record in result.records if not record["passed"]]
    return {
        'statusCode': 200 if result.passed else 412,
        'body': json.dumps({
            'mode': mode.value,
            'state': result.state.value,
            'failed_assertions': failed,
            'metrics': {url_result.url: url_result.metrics for url_result in result.url_results}
        })
    }
