"""End-to-end runs of the file-cleanup CLI against a real directory tree."""

from __future__ import annotations

import logging
import os
from datetime import datetime, timedelta, timezone

import pytest
import yaml

from src.file_cleanup import cli


@pytest.fixture(autouse=True)
def restore_root_logging():
    root = logging.getLogger()
    handlers = list(root.handlers)
    level = root.level
    yield
    for handler in root.handlers:
        if handler not in handlers:
            handler.close()
    root.handlers[:] = handlers
    root.setLevel(level)


def _aged(path, days):
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text("payload", encoding="utf-8")
    timestamp = (datetime.now(timezone.utc) - timedelta(days=days)).timestamp()
    os.utime(path, (timestamp, timestamp))
    return path


def test_run_enforces_policies_and_writes_metrics(tmp_path, monkeypatch):
    logs = tmp_path / "logs"
    scratch = tmp_path / "scratch"
    old_log = _aged(logs / "app" / "old.log", days=40)
    new_log = _aged(logs / "app" / "new.log", days=2)
    staged = _aged(logs / "DfsrPrivate" / "staged.log", days=400)
    old_tmp = _aged(scratch / "a.tmp", days=10)
    nested_tmp = _aged(scratch / "nested" / "b.tmp", days=10)

    config_dir = tmp_path / "config"
    config_dir.mkdir()
    with open(config_dir / "base.yaml", "w") as f:
        yaml.dump({
            "policy_configuration": {
                "max_threads": 1,
                "policies": [
                    {
                        "directory_path": str(logs),
                        "search_pattern": "*.log",
                        "is_recursive": True,
                        "older_than_in_days": 30,
                    },
                    {
                        "directory_path": "env:SCRATCH_DIR",
                        "search_pattern": "*.tmp",
                        "older_than_in_days": 7,
                    },
                    {
                        "directory_path": str(tmp_path / "missing"),
                        "search_pattern": "*",
                    },
                ],
            },
        }, f)
    with open(config_dir / "prod.yaml", "w") as f:
        yaml.dump({"policy_configuration": {"max_threads": 2}}, f)
    monkeypatch.setenv("SCRATCH_DIR", str(scratch))

    log_file = tmp_path / "logFile.log"
    metrics_file = tmp_path / "file_cleanup.prom"

    exit_code = cli.main([
        "run",
        "--config-dir", str(config_dir),
        "--environment", "prod",
        "--log-file", str(log_file),
        "--metrics-file", str(metrics_file),
    ])

    assert exit_code == 0
    assert not old_log.exists()
    assert new_log.exists()
    assert staged.exists()
    assert not old_tmp.exists()
    assert nested_tmp.exists()

    log_text = log_file.read_text(encoding="utf-8")
    assert f"Deleting file: {old_log}." in log_text
    assert "because the path does not exist" in log_text
    assert f"{logs}: deleted=1 failed=0" in log_text
    assert "Ending policy service." in log_text

    metrics_text = metrics_file.read_text(encoding="utf-8")
    assert "file_cleanup_files_deleted_total 2.0" in metrics_text
    assert "file_cleanup_unavailable_directories_total 1.0" in metrics_text


def test_run_with_no_policies_succeeds(tmp_path):
    config_dir = tmp_path / "config"
    config_dir.mkdir()
    with open(config_dir / "base.yaml", "w") as f:
        yaml.dump({"policy_configuration": {"max_threads": 4, "policies": []}}, f)

    exit_code = cli.main([
        "run",
        "--config-dir", str(config_dir),
        "--log-file", str(tmp_path / "run.log"),
    ])

    assert exit_code == 0
