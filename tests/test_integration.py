"""
Switch real contra nginx + dos backends HTTP locales.
Se omite si no hay binario nginx o curl en el PATH.
"""

import shutil
import socket
import threading
import time
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer

import pytest

from poolswitch.core.activation.controller import ActivationController
from poolswitch.core.pools.models import Pool, PoolLabel
from poolswitch.core.pools.registry import PoolRegistry
from poolswitch.core.render.options import ProxyOptions
from poolswitch.providers.nginx.probe import probe
from poolswitch.providers.nginx.runtime import NginxRuntime


pytestmark = [
    pytest.mark.integration,
    pytest.mark.skipif(
        shutil.which("nginx") is None or shutil.which("curl") is None,
        reason="requiere nginx y curl",
    ),
]


def _probe_until(url: str, pool: str, attempts: int = 30) -> dict:
    """Los workers viejos terminan tras el reload; se espera al nuevo upstream."""
    result = probe(url)
    for _ in range(attempts):
        if result.get("pool") == pool:
            break
        time.sleep(0.1)
        result = probe(url)
    return result


def _free_port() -> int:
    with socket.socket() as s:
        s.bind(("127.0.0.1", 0))
        return s.getsockname()[1]


class Backend:
    """Backend HTTP mínimo que se identifica con X-App-Pool / X-Release-Id."""

    def __init__(self, pool: str, release: str):
        self.pool = pool
        self.release = release
        self.failing = False
        backend = self

        class Handler(BaseHTTPRequestHandler):
            def do_GET(self):
                code = 500 if backend.failing else 200
                self.send_response(code)
                self.send_header("X-App-Pool", backend.pool)
                self.send_header("X-Release-Id", backend.release)
                self.send_header("Content-Length", "2")
                self.end_headers()
                self.wfile.write(b"ok")

            def log_message(self, format, *args):
                pass

        self.server = ThreadingHTTPServer(("127.0.0.1", 0), Handler)
        self.port = self.server.server_address[1]
        self.thread = threading.Thread(target=self.server.serve_forever, daemon=True)

    def __enter__(self):
        self.thread.start()
        return self

    def __exit__(self, *exc):
        self.server.shutdown()
        self.server.server_close()


@pytest.fixture
def stack(tmp_path):
    with Backend("blue", "rel-b") as blue, Backend("green", "rel-g") as green:
        listen_port = _free_port()
        options = ProxyOptions(
            listen_port=listen_port,
            pid_path=str(tmp_path / "nginx.pid"),
            error_log=str(tmp_path / "error.log"),
            access_log=str(tmp_path / "access.log"),
        )
        registry = PoolRegistry(
            Pool(name=PoolLabel.BLUE, host="127.0.0.1", port=blue.port, release_id=blue.release),
            Pool(name=PoolLabel.GREEN, host="127.0.0.1", port=green.port, release_id=green.release),
        )
        runtime = NginxRuntime(
            pid_path=tmp_path / "nginx.pid",
            prefix=tmp_path,
            error_log=str(tmp_path / "error.log"),
        )
        artifact = tmp_path / "conf" / "nginx.conf"
        controller = ActivationController(registry, runtime, artifact, tmp_path / "state", options=options)
        url = f"http://127.0.0.1:{listen_port}/healthz"
        try:
            yield controller, runtime, blue, url
        finally:
            runtime.stop(artifact)


def test_cold_start_warm_switch_and_failover(stack):
    controller, runtime, blue, url = stack

    assert controller.activate("blue").applied
    first = probe(url)
    assert (first["http_code"], first["pool"], first["release"]) == (200, "blue", "rel-b")
    assert first["proxy"] == "poolswitch"

    # Primario devolviendo 500: nginx reintenta en el backup sin intervención
    blue.failing = True
    failover = probe(url)
    assert (failover["http_code"], failover["pool"]) == (200, "green")
    blue.failing = False

    assert controller.activate("green").applied
    switched = _probe_until(url, "green")
    assert (switched["http_code"], switched["pool"]) == (200, "green")
