import json
import os

import pytest

from lighthouse_errors import NoResultsError
from report_builder import ReportBuilder
from results_viewer import ResultsViewer


@pytest.fixture
def viewer(results_dir):
    return ResultsViewer(results_dir, ReportBuilder("UTC"))


def test_no_results_dir(viewer):
    with pytest.raises(NoResultsError):
        viewer.summary()


def test_summary_of_latest_run(viewer, write_lhr, make_lhr):
    write_lhr(make_lhr(lcp=9000, fetch_time="2024-05-01T09:00:00.000Z"))
    write_lhr(make_lhr(lcp=4200, fcp=1500, cls=0.05, tbt=150, score=0.72, url="http://localhost:3000/about",
                       fetch_time="2024-05-01T10:15:30.123Z"))
    output = viewer.summary()
    assert "http://localhost:3000/about" in output
    assert "2024-05-01 10:15:30" in output
    assert "🔴 4200ms" in output
    assert "🟢 1500ms" in output
    assert "🟡 72%" in output
    assert "LCP is slow" in output
    assert "🔴 4200ms [Poor, Improving vs previous run]" in output
    assert "🟢 1500ms [Good, Stable vs previous run]" in output
    assert "🟡 72% [Needs Improvement, Degrading vs previous run]" in output


def test_summary_all_good(viewer, write_lhr, make_lhr):
    write_lhr(make_lhr())
    output = viewer.summary()
    assert "All Core Web Vitals are in the GOOD range" in output
    assert "🟢 2000ms [Good]" in output
    assert "vs previous run" not in output


def test_summary_uses_timezone(results_dir, write_lhr, make_lhr):
    write_lhr(make_lhr(fetch_time="2024-05-01T10:00:00.000Z"))
    output = ResultsViewer(results_dir, ReportBuilder("Europe/Paris")).summary()
    assert "2024-05-01 12:00:00" in output


def test_list_results_newest_first(viewer, write_lhr, make_lhr):
    first = write_lhr(make_lhr())
    second = write_lhr(make_lhr())
    files = viewer.list_results()
    assert files["json"] == [second, first]
    assert files["html"] == [second[:-5] + ".html", first[:-5] + ".html"]


def test_baseline_file_is_not_a_run(viewer, write_lhr, make_lhr, results_dir):
    write_lhr(make_lhr())
    with open(os.path.join(results_dir, "baseline-lhr.json"), "w") as f:
        json.dump(make_lhr(), f)
    assert len(viewer.list_results()["json"]) == 1


def test_compare_runs_needs_two(viewer, write_lhr, make_lhr):
    write_lhr(make_lhr())
    with pytest.raises(NoResultsError) as e:
        viewer.compare_runs()
    assert "Only found 1 result(s)" in str(e.value)


def test_compare_runs(viewer, write_lhr, make_lhr):
    write_lhr(make_lhr(lcp=2000, tbt=0, score=0.9))
    write_lhr(make_lhr(lcp=2300, tbt=40, score=0.8))
    output = viewer.compare_runs()
    assert "Latest: 2300ms | Previous: 2000ms" in output
    assert "🔴⬆️ +300ms (+15.0%)" in output
    assert "undefined change" in output
    assert "🔴⬇️ -10% (-11.1%)" in output


def test_assertions_view(viewer, results_dir):
    os.makedirs(results_dir)
    records = [
        {"auditId": "total-blocking-time", "auditTitle": "Total Blocking Time", "passed": False, "operator": "<=",
         "expected": 600, "actual": 650, "url": "http://localhost:3000", "level": "error"},
        {"auditId": "largest-contentful-paint", "auditTitle": "Largest Contentful Paint", "passed": True,
         "operator": "<=", "expected": 4000, "actual": 2000, "url": "http://localhost:3000", "level": "error"}
    ]
    with open(os.path.join(results_dir, "assertion-results.json"), "w") as f:
        json.dump(records, f)
    output = viewer.assertions()
    assert "✅ Passed: 1" in output
    assert "❌ Failed: 1" in output
    assert "🔴 Total Blocking Time" in output
    assert "Expected: <= 600" in output


def test_assertions_all_passed(viewer, results_dir):
    os.makedirs(results_dir)
    with open(os.path.join(results_dir, "assertion-results.json"), "w") as f:
        json.dump([], f)
    assert "All assertions passed" in viewer.assertions()


def test_missing_assertions(viewer, results_dir):
    os.makedirs(results_dir)
    with pytest.raises(NoResultsError):
        viewer.assertions()


def test_open_report(viewer, write_lhr, make_lhr):
    write_lhr(make_lhr())
    latest = write_lhr(make_lhr())
    opened = []
    path = viewer.open_report(opener=lambda uri: opened.append(uri) or True)
    assert path == latest[:-5] + ".html"
    assert opened[0].startswith("file://")


def test_chart(viewer, write_lhr, make_lhr, tmp_path):
    write_lhr(make_lhr(lcp=2000))
    write_lhr(make_lhr(lcp=2500))
    path = viewer.chart(str(tmp_path / "trend.png"))
    assert os.path.isfile(path)


def test_clean(viewer, write_lhr, make_lhr, results_dir):
    write_lhr(make_lhr())
    assert viewer.clean()
    assert not os.path.exists(results_dir)
    assert not viewer.clean()
