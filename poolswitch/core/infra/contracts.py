"""
Contratos que debe implementar el runtime del proxy.

El core solo define interfaces; la implementación vive en poolswitch/providers/*.
"""

from enum import Enum
from pathlib import Path
from typing import Optional, Protocol

from poolswitch.core.errors import PoolSwitchError


class ActivationMode(str, Enum):
    """Condición inicial de la máquina de activación."""
    COLD_START = "cold"
    WARM_SWITCH = "warm"


class CheckResult:
    """Resultado del checker del proxy (nginx -t) sobre un archivo concreto."""
    def __init__(self, ok: bool, output: str = ""):
        self.ok = ok
        self.output = output


class ProxyRuntime(Protocol):
    """
    Contrato mínimo del proceso proxy (nginx).
    check no aplica nada; start y reload lanzan ReloadFailed si no pueden actuar.
    """
    @property
    def name(self) -> str:
        """Identificador del runtime (ej: nginx)."""
        ...

    def check(self, config_path: Path) -> CheckResult:
        """Valida sintaxis/semántica del archivo sin aplicarlo."""
        ...

    def is_running(self) -> bool:
        """Indica si hay un proceso sirviendo tráfico."""
        ...

    def start(self, config_path: Path) -> None:
        """Arranca el proxy en primer plano con ese archivo (cold start)."""
        ...

    def reload(self, config_path: Path) -> None:
        """Recarga graceful: conexiones en vuelo terminan con la config anterior."""
        ...


class ActivationResult:
    """Resultado de un intento de activación: Applied(detalles) o Rejected(motivo)."""
    def __init__(
        self,
        pool: Optional[str],
        mode: Optional[ActivationMode],
        artifact: Path,
        digest: Optional[str] = None,
        primary: Optional[str] = None,
        backup: Optional[str] = None,
        error: Optional[PoolSwitchError] = None,
    ):
        self.pool = pool
        self.mode = mode
        self.artifact = artifact
        self.digest = digest
        self.primary = primary
        self.backup = backup
        self.error = error

    @property
    def applied(self) -> bool:
        return self.error is None

    @property
    def rejected(self) -> bool:
        return self.error is not None

    @property
    def reason(self) -> str:
        if self.error is None:
            return ""
        return self.error.message

    @property
    def category(self) -> Optional[str]:
        return self.error.category if self.error is not None else None

    def __repr__(self) -> str:
        if self.applied:
            return f"Applied(pool={self.pool}, mode={self.mode}, digest={self.digest})"
        return f"Rejected({self.category}: {self.reason})"
