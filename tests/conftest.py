"""Fixtures compartidas: registry, rutas temporales y runtime falso del proxy."""

import re
from pathlib import Path
from typing import Any, Callable, List, Optional, Tuple

import pytest

from poolswitch.core.activation.controller import ActivationController
from poolswitch.core.errors import ReloadFailed
from poolswitch.core.infra.contracts import CheckResult
from poolswitch.core.pools.models import Pool, PoolLabel
from poolswitch.core.pools.registry import PoolRegistry


class NginxSyntaxError(Exception):
    pass


Node = Tuple[str, List[str], Optional[List[Any]]]


def _parse_block(tokens: List[str], pos: int, nested: bool) -> Tuple[List[Node], int]:
    nodes: List[Node] = []
    current: List[str] = []
    while pos < len(tokens):
        token = tokens[pos]
        pos += 1
        if token == ";":
            if not current:
                raise NginxSyntaxError("unexpected \";\"")
            nodes.append((current[0], current[1:], None))
            current = []
        elif token == "{":
            if not current:
                raise NginxSyntaxError("unexpected \"{\"")
            children, pos = _parse_block(tokens, pos, True)
            nodes.append((current[0], current[1:], children))
            current = []
        elif token == "}":
            if not nested or current:
                raise NginxSyntaxError("unexpected \"}\"")
            return nodes, pos
        else:
            current.append(token)
    if nested or current:
        raise NginxSyntaxError("unexpected end of file")
    return nodes, pos


def parse_nginx(text: str) -> List[Node]:
    """
    Árbol (directiva, args, hijos) de un nginx.conf.
    Solo sintaxis: directivas terminadas en ; y bloques balanceados.
    """
    tokens = re.findall(r'"[^"]*"|[{};]|[^\s{};"]+', re.sub(r"#[^\n]*", "", text))
    nodes, _ = _parse_block(tokens, 0, False)
    return nodes


class FakeRuntime:
    """
    ProxyRuntime en memoria.

    - check falla ante sintaxis nginx rota o si `reject` devuelve True para el texto.
    - reload falla si el proceso no está corriendo, como NginxRuntime.
    - start/reload registran el archivo y su contenido en `calls`.
    """

    name = "fake-nginx"

    def __init__(
        self,
        running: bool = False,
        reject: Optional[Callable[[str], bool]] = None,
        reload_error: Optional[str] = None,
    ):
        self.running = running
        self.reject = reject
        self.reload_error = reload_error
        self.calls: List[Tuple[str, Path]] = []
        self.checked: List[str] = []
        self.loaded: Optional[str] = None

    def check(self, config_path: Path) -> CheckResult:
        text = config_path.read_text()
        self.checked.append(text)
        self.calls.append(("check", config_path))
        try:
            parse_nginx(text)
        except NginxSyntaxError as e:
            return CheckResult(False, f"nginx: [emerg] {e}\nnginx: configuration file test failed")
        if self.reject and self.reject(text):
            return CheckResult(False, 'nginx: [emerg] host not found in upstream "bad"\nnginx: configuration file test failed')
        return CheckResult(True, "nginx: configuration file test is successful")

    def is_running(self) -> bool:
        return self.running

    def start(self, config_path: Path) -> None:
        self.calls.append(("start", config_path))
        self.loaded = config_path.read_text()
        self.running = True

    def reload(self, config_path: Path) -> None:
        self.calls.append(("reload", config_path))
        if not self.running:
            raise ReloadFailed("nginx no está corriendo")
        if self.reload_error:
            raise ReloadFailed(self.reload_error)
        self.loaded = config_path.read_text()

    def actions(self) -> List[str]:
        return [action for action, _ in self.calls]


@pytest.fixture
def blue_pool() -> Pool:
    return Pool(name=PoolLabel.BLUE, host="app_blue", port=3000, release_id="v1.0.0")


@pytest.fixture
def green_pool() -> Pool:
    return Pool(name=PoolLabel.GREEN, host="app_green", port=3001, release_id="v1.1.0")


@pytest.fixture
def registry(blue_pool: Pool, green_pool: Pool) -> PoolRegistry:
    return PoolRegistry(blue_pool, green_pool)


@pytest.fixture
def artifact(tmp_path: Path) -> Path:
    return tmp_path / "etc" / "nginx" / "nginx.conf"


@pytest.fixture
def state_dir(tmp_path: Path) -> Path:
    return tmp_path / "state"


@pytest.fixture
def runtime() -> FakeRuntime:
    return FakeRuntime()


@pytest.fixture
def controller(registry: PoolRegistry, runtime: FakeRuntime, artifact: Path, state_dir: Path) -> ActivationController:
    return ActivationController(registry, runtime, artifact, state_dir)
