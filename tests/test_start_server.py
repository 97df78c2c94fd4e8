import runpy
import subprocess
from pathlib import Path

import pytest

SCRIPT = Path(__file__).resolve().parents[1] / "start_server.py"


def _launch(monkeypatch, port):
    commands = []
    monkeypatch.setenv("PORT", port)
    monkeypatch.setenv("PYTHONPATH", "")
    monkeypatch.setattr(subprocess, "call", lambda cmd: commands.append(cmd) or 0)
    with pytest.raises(SystemExit) as exit_info:
        runpy.run_path(str(SCRIPT), run_name="__main__")
    assert exit_info.value.code == 0
    return commands[0]


def test_start_server_binds_configured_port_without_proxy_trust(monkeypatch):
    cmd = _launch(monkeypatch, "9100")

    assert cmd[1:4] == ["-m", "uvicorn", "safewalk.main:app"]
    assert cmd[cmd.index("--port") + 1] == "9100"
    assert "--proxy-headers" not in cmd
    assert "--forwarded-allow-ips" not in cmd


def test_start_server_falls_back_to_default_port(monkeypatch):
    cmd = _launch(monkeypatch, "not-a-port")

    assert cmd[cmd.index("--port") + 1] == "8000"
