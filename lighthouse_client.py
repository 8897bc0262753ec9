import logging
import os
import shutil
import signal
import subprocess
import time

import requests

from lighthouse_errors import AuditInvocationError, ServerNotReadyError
from metrics_extractor import load_report

logger = logging.getLogger(__name__)


class LighthouseRunner(object):
    """Runs the lighthouse CLI once per call and collects the JSON + HTML report pair."""

    def __init__(self, arguments):
        self.binary = arguments['lighthouse_binary']
        self.results_dir = arguments['results_dir']
        self.chrome_flags = arguments['chrome_flags']
        self.preset = arguments['preset']
        self.only_categories = arguments['only_categories']
        self.skip_audits = arguments['skip_audits']

    def build_command(self, url, output_path):
        command = [self.binary, url, "--output=json", "--output=html",
                   f"--output-path={output_path}", "--quiet"]
        if self.chrome_flags:
            command.append(f"--chrome-flags={' '.join(self.chrome_flags)}")
        if self.only_categories:
            command.append(f"--only-categories={','.join(self.only_categories)}")
        if self.skip_audits:
            command.append(f"--skip-audits={','.join(self.skip_audits)}")
        if self.preset:
            command.append(f"--preset={self.preset}")
        return command

    def _next_output_base(self):
        stamp = int(time.time() * 1000)
        while os.path.exists(os.path.join(self.results_dir, f"lhr-{stamp}.json")):
            stamp += 1
        return os.path.join(self.results_dir, f"lhr-{stamp}")

    def run(self, url):
        """
        Audit `url` once.

        Returns:
            tuple: (PerformanceReport, path to the JSON report)

        Raises:
            AuditInvocationError: nonzero exit, missing or malformed output, or a Lighthouse runtime error
        """
        os.makedirs(self.results_dir, exist_ok=True)
        base = self._next_output_base()
        command = self.build_command(url, base)
        logger.info(f"[AUDIT] {' '.join(command)}")
        try:
            result = subprocess.run(command, capture_output=True, text=True)
        except FileNotFoundError:
            raise AuditInvocationError(f"Lighthouse binary '{self.binary}' not found")
        if result.returncode != 0:
            stderr = (result.stderr or "").strip()[-500:]
            raise AuditInvocationError(f"Lighthouse exited with code {result.returncode} for {url}: {stderr}")

        json_path, html_path = f"{base}.json", f"{base}.html"
        # lighthouse appends .report.<format> when several outputs are requested
        for produced, target in [(f"{base}.report.json", json_path), (f"{base}.report.html", html_path)]:
            if os.path.isfile(produced):
                os.replace(produced, target)
        if not os.path.isfile(json_path):
            raise AuditInvocationError(f"Lighthouse did not write a JSON report for {url}")

        report = load_report(json_path)
        runtime_error = report.lhr.get("runtimeError")
        if runtime_error:
            raise AuditInvocationError(f"Lighthouse runtime error for {url}: "
                                       f"{runtime_error.get('code')} {runtime_error.get('message', '')}".strip())
        logger.info(f"[AUDIT] Report saved to {json_path}")
        return report, json_path


class ServerManager(object):
    """Starts the site under test (optional) and polls it until it answers HTTP."""

    def __init__(self, url, command=None, timeout=30, poll_interval=2):
        self.url = url
        self.command = command
        self.timeout = timeout
        self.poll_interval = poll_interval
        self.process = None

    @classmethod
    def from_args(cls, arguments, url):
        return cls(url, arguments['start_server_command'], arguments['start_server_ready_timeout'],
                   arguments['server_poll_interval'])

    @staticmethod
    def is_running(url, timeout=5):
        try:
            requests.get(url, timeout=timeout)
        except requests.RequestException:
            return False
        return True

    def start(self):
        if self.is_running(self.url):
            logger.warning(f"[SERVER] Server already running at {self.url}")
            return
        if not self.command:
            logger.info(f"[SERVER] No start command configured, waiting for {self.url}")
            return
        logger.info(f"[SERVER] Starting: {self.command}")
        self.process = subprocess.Popen(self.command, shell=True, stdout=subprocess.DEVNULL,
                                        stderr=subprocess.DEVNULL, start_new_session=True)

    def wait_until_ready(self):
        deadline = time.monotonic() + self.timeout
        while True:
            if self.is_running(self.url, timeout=max(self.poll_interval, 1)):
                logger.info(f"[SERVER] Ready at {self.url}")
                return
            if self.process is not None and self.process.poll() is not None:
                raise ServerNotReadyError(f"Server command exited with code {self.process.returncode} "
                                          f"before {self.url} became ready")
            if time.monotonic() >= deadline:
                raise ServerNotReadyError(f"Server at {self.url} did not respond within {self.timeout:g} seconds")
            time.sleep(self.poll_interval)

    def stop(self):
        if self.process is None or self.process.poll() is not None:
            return
        logger.info(f"[SERVER] Stopping server (PID: {self.process.pid})")
        try:
            os.killpg(os.getpgid(self.process.pid), signal.SIGTERM)
            self.process.wait(timeout=10)
        except ProcessLookupError:
            pass
        except subprocess.TimeoutExpired:
            os.killpg(os.getpgid(self.process.pid), signal.SIGKILL)
            self.process.wait()
        finally:
            self.process = None


def tool_version(binary):
    """Version string of a command line tool, or None when it is not installed."""
    if shutil.which(binary) is None:
        return None
    result = subprocess.run([binary, "--version"], capture_output=True, text=True)
    lines = (result.stdout or result.stderr or "").strip().splitlines()
    if result.returncode != 0 or not lines:
        return None
    return lines[0]
