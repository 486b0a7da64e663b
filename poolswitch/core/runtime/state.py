"""
Estado de switches: último pool aplicado e historial de intentos.

Persistido en <state_dir>/state.yaml con escritura atómica (temp + os.replace).
El lock de switch serializa intentos entre procesos (flock) y entre hilos.
"""

import fcntl
import os
import tempfile
import threading
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional

import yaml

from poolswitch.core.errors import InfrastructureError
from poolswitch.core.infra.contracts import ActivationResult
from poolswitch.core.runtime.resolver import lock_path, state_file


HISTORY_LIMIT = 50

_THREAD_LOCK = threading.Lock()


@contextmanager
def switch_lock(state_dir: Path) -> Iterator[None]:
    """
    Lock exclusivo de switch: un solo render→validate→swap→reload a la vez.
    Crea el directorio y el archivo de lock si no existen.

    Raises:
        InfrastructureError: si el directorio de estado no es utilizable
    """
    try:
        state_dir.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise InfrastructureError(f"Directorio de estado no utilizable: {state_dir}: {e}") from e
    with _THREAD_LOCK:
        try:
            lock_file = open(lock_path(state_dir), "w")
        except OSError as e:
            raise InfrastructureError(f"No se pudo abrir el lock {lock_path(state_dir)}: {e}") from e
        try:
            try:
                fcntl.flock(lock_file.fileno(), fcntl.LOCK_EX)
            except OSError as e:
                raise InfrastructureError(f"No se pudo tomar el lock {lock_path(state_dir)}: {e}") from e
            yield
        finally:
            try:
                fcntl.flock(lock_file.fileno(), fcntl.LOCK_UN)
            except OSError:
                pass
            lock_file.close()


def write_atomic(path: Path, content: str, prefix: str = ".tmp_") -> None:
    """Escribe `content` en `path` vía temp en el mismo directorio + os.replace."""
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, temp_path = tempfile.mkstemp(dir=path.parent, prefix=prefix, suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(content)
            f.flush()
            os.fsync(f.fileno())
        os.replace(temp_path, path)
    except Exception:
        try:
            os.unlink(temp_path)
        except OSError:
            pass
        raise


def _now() -> str:
    return datetime.now(timezone.utc).replace(microsecond=0).isoformat()


class SwitchStateStore:
    """Lee y escribe state.yaml (pool aplicado + historial)."""

    def __init__(self, state_dir: Path):
        self.state_dir = state_dir
        self.path = state_file(state_dir)

    def load(self) -> Dict[str, Any]:
        """Estado actual; dict vacío si no existe o está corrupto."""
        if not self.path.exists():
            return {}
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError):
            return {}
        return data if isinstance(data, dict) else {}

    def active_pool(self) -> Optional[str]:
        """Último pool aplicado con éxito (None si nunca hubo switch)."""
        return self.load().get("active_pool")

    def history(self, limit: Optional[int] = None) -> List[Dict[str, Any]]:
        """Intentos más recientes primero."""
        entries = list(reversed(self.load().get("history") or []))
        return entries[:limit] if limit else entries

    def record(self, result: ActivationResult) -> Dict[str, Any]:
        """
        Registra un intento. Solo los aplicados cambian active_pool/digest.

        Returns:
            El estado guardado
        """
        state = self.load()
        now = _now()
        mode = result.mode.value if result.mode else None
        entry = {
            "pool": result.pool,
            "mode": mode,
            "outcome": "applied" if result.applied else "rejected",
            "error": result.category,
            "reason": result.reason or None,
            "at": now,
        }
        history = (state.get("history") or []) + [entry]
        state["history"] = history[-HISTORY_LIMIT:]
        if result.applied:
            state.update({
                "active_pool": result.pool,
                "digest": result.digest,
                "mode": mode,
                "artifact": str(result.artifact),
                "activated_at": now,
            })
        write_atomic(
            self.path,
            yaml.safe_dump(state, default_flow_style=False, sort_keys=False, allow_unicode=True),
            prefix=".state_",
        )
        return state
