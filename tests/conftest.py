import json
import os

import pytest

from lighthouse_config import parse_args

ENVIRONMENT_VARIABLES = ["CI", "LIGHTHOUSE_CONFIG", "LIGHTHOUSE_URLS", "LIGHTHOUSE_TZ", "LIGHTHOUSE_BINARY",
                         "GITHUB_TOKEN", "GITHUB_REPOSITORY", "GITHUB_SHA", "GITHUB_EVENT_PATH", "LHCI_PR_NUMBER"]


def build_lhr(lcp=2000, fcp=1500, cls=0.05, tbt=150, score=0.95, url="http://localhost:3000/",
              fetch_time="2024-05-01T10:00:00.000Z"):
    audits = {
        "largest-contentful-paint": {"id": "largest-contentful-paint", "numericValue": lcp},
        "first-contentful-paint": {"id": "first-contentful-paint", "numericValue": fcp},
        "cumulative-layout-shift": {"id": "cumulative-layout-shift", "numericValue": cls},
        "total-blocking-time": {"id": "total-blocking-time", "numericValue": tbt}
    }
    lhr = {"requestedUrl": url, "finalUrl": url, "fetchTime": fetch_time, "audits": audits}
    if score is not None:
        lhr["categories"] = {"performance": {"id": "performance", "score": score}}
    return lhr


@pytest.fixture(autouse=True)
def isolated_environment(tmp_path, monkeypatch):
    """Run every test in an empty directory without CI or GitHub variables leaking in."""
    for name in ENVIRONMENT_VARIABLES:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(tmp_path)


@pytest.fixture
def make_lhr():
    return build_lhr


@pytest.fixture
def results_dir(tmp_path):
    return str(tmp_path / ".lighthouseci")


@pytest.fixture
def args(results_dir):
    arguments = parse_args({"results_dir": results_dir})
    arguments['number_of_runs'] = 3
    arguments['server_poll_interval'] = 0
    return arguments


@pytest.fixture
def write_lhr(results_dir):
    """Write an lhr-<stamp>.json file with increasing modification times."""
    written = []

    def _write(lhr, stamp=None, html=True):
        os.makedirs(results_dir, exist_ok=True)
        stamp = stamp or 1714557600000 + len(written)
        path = os.path.join(results_dir, f"lhr-{stamp}.json")
        with open(path, "w", encoding="utf-8") as f:
            json.dump(lhr, f)
        mtime = 1714557600 + len(written)
        os.utime(path, (mtime, mtime))
        if html:
            html_path = path[:-len(".json")] + ".html"
            with open(html_path, "w", encoding="utf-8") as f:
                f.write("<html></html>")
            os.utime(html_path, (mtime, mtime))
        written.append(path)
        return path

    return _write
