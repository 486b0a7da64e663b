"""Tests del provider nginx (comandos) y del probe vía curl, con subprocess simulado."""

import os
import subprocess
from pathlib import Path

import pytest

from poolswitch.core.errors import ReloadFailed
from poolswitch.providers.nginx.probe import _parse_headers, format_probe_status, probe
from poolswitch.providers.nginx.runtime import NginxRuntime


class _Completed:
    def __init__(self, returncode=0, stdout="", stderr=""):
        self.returncode = returncode
        self.stdout = stdout
        self.stderr = stderr


@pytest.fixture
def commands(monkeypatch):
    """Registra los comandos que se lanzarían y responde con `commands.reply`."""
    class Recorder:
        reply = _Completed(0, "", "nginx: configuration file test is successful")
        seen = []

        def __call__(self, cmd, **kwargs):
            self.seen.append(cmd)
            return self.reply

    recorder = Recorder()
    recorder.seen = []
    monkeypatch.setattr(subprocess, "run", recorder)
    return recorder


class TestNginxRuntime:

    def test_check_targets_exact_file(self, commands, tmp_path):
        conf = tmp_path / ".nginx.conf.abc.tmp"
        result = NginxRuntime().check(conf)
        assert result.ok
        assert "successful" in result.output
        assert commands.seen == [["nginx", "-t", "-c", str(conf)]]

    def test_check_failure_keeps_output(self, commands, tmp_path):
        commands.reply = _Completed(1, "", 'nginx: [emerg] host not found in upstream "nope:3000"')
        result = NginxRuntime().check(tmp_path / "nginx.conf")
        assert not result.ok
        assert "host not found" in result.output

    def test_prefix_and_error_log(self, commands, tmp_path):
        rt = NginxRuntime(binary="/usr/sbin/nginx", prefix=tmp_path, error_log="stderr")
        rt.check(tmp_path / "nginx.conf")
        assert commands.seen[0][:5] == ["/usr/sbin/nginx", "-p", str(tmp_path), "-e", "stderr"]

    def test_missing_binary(self, monkeypatch, tmp_path):
        def _raise(cmd, **kwargs):
            raise FileNotFoundError(cmd[0])
        monkeypatch.setattr(subprocess, "run", _raise)
        result = NginxRuntime(binary="nginx-missing").check(tmp_path / "nginx.conf")
        assert not result.ok
        assert "nginx-missing" in result.output

    def test_has_no_console_of_its_own(self):
        assert not hasattr(NginxRuntime(), "console")

    def test_not_running_without_pid_file(self, tmp_path):
        assert not NginxRuntime(pid_path=tmp_path / "nginx.pid").is_running()

    def test_running_with_live_pid(self, tmp_path):
        pid_file = tmp_path / "nginx.pid"
        pid_file.write_text(f"{os.getpid()}\n")
        assert NginxRuntime(pid_path=pid_file).is_running()

    def test_reload_requires_running_proxy(self, commands, tmp_path):
        with pytest.raises(ReloadFailed):
            NginxRuntime(pid_path=tmp_path / "nginx.pid").reload(tmp_path / "nginx.conf")
        assert commands.seen == []

    def test_reload_signal_rejected(self, commands, monkeypatch, tmp_path):
        commands.reply = _Completed(1, "", 'nginx: [error] invalid PID number "" in "/run/nginx.pid"')
        rt = NginxRuntime()
        monkeypatch.setattr(rt, "is_running", lambda: True)
        with pytest.raises(ReloadFailed) as exc:
            rt.reload(Path("/etc/nginx/nginx.conf"))
        assert "invalid PID" in exc.value.details
        assert commands.seen == [["nginx", "-s", "reload", "-c", "/etc/nginx/nginx.conf"]]

    def test_start_failure_is_reload_failed(self, monkeypatch, tmp_path):
        class DeadOnArrival:
            def __init__(self, cmd):
                self.cmd = cmd

            def wait(self, timeout=None):
                return 1

        monkeypatch.setattr(subprocess, "Popen", DeadOnArrival)
        with pytest.raises(ReloadFailed, match="código 1"):
            NginxRuntime().start(tmp_path / "nginx.conf")

    def test_start_keeps_process_in_foreground(self, monkeypatch, tmp_path):
        class Serving:
            def __init__(self, cmd):
                self.cmd = cmd

            def wait(self, timeout=None):
                raise subprocess.TimeoutExpired(self.cmd, timeout)

            def poll(self):
                return None

        monkeypatch.setattr(subprocess, "Popen", Serving)
        rt = NginxRuntime(pid_path=tmp_path / "nginx.pid")
        rt.start(tmp_path / "nginx.conf")
        assert rt.is_running()
        assert rt.process.cmd[-2:] == ["-g", "daemon off;"]


class TestProbe:

    def test_parse_headers_uses_last_response(self):
        raw = "HTTP/1.1 100 Continue\r\n\r\nHTTP/1.1 200 OK\r\nX-App-Pool: green\r\nX-Release-Id: v2\r\n"
        assert _parse_headers(raw) == {"x-app-pool": "green", "x-release-id": "v2"}

    def test_reports_pool_and_release(self, monkeypatch):
        stdout = (
            "HTTP/1.1 200 OK\r\n"
            "X-App-Pool: blue\r\n"
            "X-Release-Id: v1.0.0\r\n"
            "X-Proxy: poolswitch\r\n"
            "\r\n"
            "\n200"
        )
        monkeypatch.setattr(subprocess, "run", lambda cmd, **kw: _Completed(0, stdout))
        result = probe("http://127.0.0.1/healthz")
        assert result["status"] == "up"
        assert result["http_code"] == 200
        assert (result["pool"], result["release"], result["proxy"]) == ("blue", "v1.0.0", "poolswitch")

    def test_5xx_is_down(self, monkeypatch):
        monkeypatch.setattr(subprocess, "run", lambda cmd, **kw: _Completed(0, "HTTP/1.1 502 Bad Gateway\r\n\n502"))
        result = probe("http://127.0.0.1/healthz")
        assert result["status"] == "down"
        assert result["http_code"] == 502

    def test_connection_refused(self, monkeypatch):
        monkeypatch.setattr(subprocess, "run", lambda cmd, **kw: _Completed(7, "\n000"))
        result = probe("http://127.0.0.1:1/healthz")
        assert result["status"] == "down"
        assert "curl exit 7" in result["error"]

    def test_curl_timeout(self, monkeypatch):
        monkeypatch.setattr(subprocess, "run", lambda cmd, **kw: _Completed(28, ""))
        assert probe("http://10.255.255.1/")["status"] == "timeout"

    @pytest.mark.parametrize("result,expected", [
        ({"status": "up", "http_code": 200}, "✅ 200"),
        ({"status": "down", "http_code": 503}, "❌ 503"),
        ({"status": "down"}, "DOWN"),
        ({"status": "timeout"}, "TIMEOUT"),
        ({"status": "error", "error": "curl no disponible"}, "curl no disponible"),
    ])
    def test_format_probe_status(self, result, expected):
        assert expected in format_probe_status(result)
