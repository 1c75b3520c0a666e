from __future__ import annotations

import os
import subprocess
import sys


def _run(args: list[str]) -> subprocess.CompletedProcess[str]:
    env = dict(os.environ)
    env["PYTHONPATH"] = os.pathsep.join(p for p in ("src", env.get("PYTHONPATH", "")) if p)
    return subprocess.run(args, capture_output=True, text=True, check=False, env=env)


def test_cli_help_smoke():
    cmds = [
        [sys.executable, "-m", "homehub_ai.apps.api_server", "--help"],
        [sys.executable, "-m", "homehub_ai.apps.diagnostics_cli", "--help"],
        [sys.executable, "-m", "homehub_ai.apps.ask_cli", "--help"],
    ]
    for cmd in cmds:
        proc = _run(cmd)
        assert proc.returncode == 0, proc.stderr
        assert "usage:" in proc.stdout
