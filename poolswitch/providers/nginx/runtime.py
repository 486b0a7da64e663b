"""
Runtime Nginx: implementación de ProxyRuntime sobre el binario nginx.

- check:  nginx -t -c <archivo>
- start:  nginx -c <archivo> -g 'daemon off;'  (primer plano)
- reload: nginx -s reload -c <archivo>          (graceful, vía pid del config)
"""

import os
import subprocess
from pathlib import Path
from typing import List, Optional, Tuple

from poolswitch.core.errors import ReloadFailed
from poolswitch.core.infra.contracts import CheckResult


class NginxRuntime:
    """Proceso nginx gestionado por poolswitch."""

    name = "nginx"

    def __init__(
        self,
        binary: str = "nginx",
        pid_path: Path = Path("/run/nginx.pid"),
        prefix: Optional[Path] = None,
        error_log: Optional[str] = None,
        timeout: int = 30,
        startup_grace: float = 1.0,
    ):
        self.binary = binary
        self.pid_path = pid_path
        self.prefix = prefix
        self.error_log = error_log
        self.timeout = timeout
        self.startup_grace = startup_grace
        self.process: Optional[subprocess.Popen] = None

    def _cmd(self, *args: str) -> List[str]:
        cmd = [self.binary]
        if self.prefix:
            cmd += ["-p", str(self.prefix)]
        if self.error_log:
            cmd += ["-e", self.error_log]
        return cmd + list(args)

    def _run(self, cmd: List[str]) -> Tuple[bool, str]:
        """Ejecuta comando; retorna (éxito, salida)."""
        try:
            r = subprocess.run(
                cmd,
                capture_output=True,
                text=True,
                timeout=self.timeout,
                check=False,
            )
        except FileNotFoundError:
            return (False, f"No se encontró el binario: {self.binary}")
        except subprocess.TimeoutExpired:
            return (False, f"Timeout ({self.timeout}s) ejecutando: {' '.join(cmd)}")
        out = (r.stdout or "") + (r.stderr or "")
        return (r.returncode == 0, out.strip())

    def check(self, config_path: Path) -> CheckResult:
        """nginx -t contra el archivo exacto que se va a aplicar."""
        ok, out = self._run(self._cmd("-t", "-c", str(config_path)))
        return CheckResult(ok, out)

    def read_pid(self) -> Optional[int]:
        try:
            raw = self.pid_path.read_text().strip()
        except OSError:
            return None
        return int(raw) if raw.isdigit() else None

    def is_running(self) -> bool:
        """Hay un master nginx vivo según el pid file (o el proceso lanzado por nosotros)."""
        if self.process is not None and self.process.poll() is None:
            return True
        pid = self.read_pid()
        if pid is None:
            return False
        try:
            os.kill(pid, 0)
        except ProcessLookupError:
            return False
        except PermissionError:
            # Existe pero pertenece a otro usuario (ej: root)
            return True
        return True

    def start(self, config_path: Path) -> None:
        """
        Arranca nginx en primer plano. Si muere dentro de startup_grace
        (puerto ocupado, permisos) se reporta como ReloadFailed.
        """
        cmd = self._cmd("-c", str(config_path), "-g", "daemon off;")
        try:
            self.process = subprocess.Popen(cmd)
        except OSError as e:
            raise ReloadFailed(f"No se pudo arrancar {self.binary}: {e}") from e
        try:
            code = self.process.wait(timeout=self.startup_grace)
        except subprocess.TimeoutExpired:
            return
        self.process = None
        raise ReloadFailed(f"nginx terminó al arrancar (código {code})")

    def reload(self, config_path: Path) -> None:
        """Recarga graceful: workers viejos terminan sus conexiones en vuelo."""
        if not self.is_running():
            raise ReloadFailed(f"nginx no está corriendo (pid file: {self.pid_path})")
        ok, out = self._run(self._cmd("-s", "reload", "-c", str(config_path)))
        if not ok:
            raise ReloadFailed("nginx rechazó la señal de reload", details=out)

    def wait(self) -> int:
        """Espera al proceso en primer plano; 0 si no lo lanzamos nosotros."""
        if self.process is None:
            return 0
        return self.process.wait()

    def stop(self, config_path: Path) -> None:
        """Parada graceful (nginx -s quit)."""
        self._run(self._cmd("-s", "quit", "-c", str(config_path)))
        if self.process is not None:
            try:
                self.process.wait(timeout=self.timeout)
            except subprocess.TimeoutExpired:
                self.process.kill()
            self.process = None
