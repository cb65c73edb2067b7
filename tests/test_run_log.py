import os
import re

from monitor_config import Config
from run_log import RunLog


def test_post_formats_buffers_and_notifies():
    log = RunLog(to_file=False, buffer_lines=2)
    seen = []
    log.subscribe(seen.append)

    first = log.post("one")
    log.post("two")
    log.post("three")

    assert re.fullmatch(r"\[\d\d:\d\d:\d\d\] one", first)
    assert [line.split("] ", 1)[1] for line in log.lines()] == ["two", "three"]
    assert log.lines(last=1)[0].endswith("three")
    assert len(seen) == 3


def test_open_disabled_writes_nothing(tmp_path):
    log = RunLog(log_dir=str(tmp_path), to_file=False)
    assert log.open() is None
    log.post("hello")
    log.close()
    assert list(tmp_path.iterdir()) == []


def test_run_file_gets_header_lines_and_footer(tmp_path):
    log = RunLog(log_dir=str(tmp_path / "logs"), prefix="lm")
    path = log.open()
    log.post("👍 Likes: 5")
    log.close()

    assert os.path.basename(path).startswith("lm_run_")
    with open(path, encoding="utf-8") as f:
        text = f.read().splitlines()
    assert text[0].startswith("=== Like monitor run started")
    assert text[1].endswith("👍 Likes: 5")
    assert text[-1].startswith("=== Like monitor run ended")


def test_old_runs_beyond_retention_are_removed(tmp_path):
    old = []
    for i in range(5):
        p = tmp_path / f"lm_run_2020-01-0{i + 1}_00-00-00.log"
        p.write_text("old\n", encoding="utf-8")
        os.utime(p, (1_600_000_000 + i, 1_600_000_000 + i))
        old.append(p)
    other = tmp_path / "notes.log"
    other.write_text("keep\n", encoding="utf-8")

    log = RunLog(log_dir=str(tmp_path), prefix="lm", retention=3)
    path = log.open()
    log.close()

    remaining = sorted(p.name for p in tmp_path.glob("lm_run_*.log"))
    assert len(remaining) == 3
    assert os.path.basename(path) in remaining
    # the two newest old runs survive
    assert old[3].name in remaining and old[4].name in remaining
    assert other.exists()


def test_from_config():
    cfg = Config(LOG_DIR="/tmp/x", LOG_RUN_FILE_PREFIX="p", LOG_TO_FILE_ENABLED=False, LOG_RETENTION_COUNT=2)
    log = RunLog.from_config(cfg)
    assert (log.log_dir, log.prefix, log.to_file, log.retention) == ("/tmp/x", "p", False, 2)
