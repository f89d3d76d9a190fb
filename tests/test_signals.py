# /*
# Copyright 2026 The Coffee Queue Authors.
#
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
# */

"""SIGTERM must unwind context managers so the port-forward child is released."""

import os
import signal
import subprocess
import sys
import textwrap
from pathlib import Path

import pytest

import cli

pytestmark = pytest.mark.skipif(os.name != "posix", reason="needs POSIX signals")

HOLDER = textwrap.dedent("""
    import time
    from unittest.mock import patch

    import cli
    from coffee_ops.smoke import PortForward

    cli.install_signal_handlers()
    with patch.object(PortForward, "_wait_ready"), \\
            patch("coffee_ops.smoke.port_in_use", return_value=False):
        with PortForward("coffee-queue") as forward:
            print(forward._process.pid, flush=True)
            time.sleep(60)
""")


def _alive(pid):
    try:
        os.kill(pid, 0)
    except ProcessLookupError:
        return False
    return True


def test_sigterm_releases_port_forward(tmp_path):
    bin_dir = tmp_path / "bin"
    bin_dir.mkdir()
    fake_kubectl = bin_dir / "kubectl"
    fake_kubectl.write_text("#!/bin/sh\nexec sleep 60\n")
    fake_kubectl.chmod(0o755)

    env = dict(os.environ)
    env["PATH"] = f"{bin_dir}{os.pathsep}{env.get('PATH', '')}"
    env["PYTHONPATH"] = str(Path(cli.__file__).resolve().parent)

    holder = subprocess.Popen(
        [sys.executable, "-c", HOLDER], stdout=subprocess.PIPE, stderr=subprocess.PIPE, text=True, env=env)
    try:
        kubectl_pid = int(holder.stdout.readline())
        assert _alive(kubectl_pid)

        holder.send_signal(signal.SIGTERM)
        assert holder.wait(timeout=20) == 128 + signal.SIGTERM
        assert not _alive(kubectl_pid)
    finally:
        if holder.poll() is None:
            holder.kill()
            holder.wait()
        holder.stdout.close()
        holder.stderr.close()
