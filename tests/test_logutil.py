import os
import sys

ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)

import config
import logutil


def test_level_filter(monkeypatch, capsys):
    monkeypatch.setattr(config, 'LOG_LEVEL', 'WARN')
    monkeypatch.setattr(config, 'LOG_COLOR', False)
    monkeypatch.setattr(config, 'LOG_FILE_PATH', None)
    logutil.log("TEST", "hidden", level="INFO")
    logutil.log("TEST", "shown", level="ERROR")
    out = capsys.readouterr().out
    assert "hidden" not in out
    assert "[ERROR pid" in out
    assert "TEST] shown" in out


def test_log_file(monkeypatch, tmp_path, capsys):
    path = tmp_path / "stream.log"
    monkeypatch.setattr(config, 'LOG_LEVEL', 'DEBUG')
    monkeypatch.setattr(config, 'LOG_FILE_PATH', str(path))
    logutil.log("STREAM", "resident (0, 0)", level="DEBUG")
    logutil.log("STREAM", "evicted 3 chunks")
    lines = path.read_text().splitlines()
    assert len(lines) == 2
    assert lines[0].startswith("[DEBUG pid")
    assert lines[1].endswith("STREAM] evicted 3 chunks")
