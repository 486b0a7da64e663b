"""
Resolución de rutas de estado y del artefacto.

- state_root(): directorio de estado/historial (/var/lib/poolswitch/).
- artifact_path(): nginx.conf que lee el proxy (/etc/nginx/nginx.conf).

El core NO escribe aquí por sí mismo; quien escribe (controller, state store)
recibe estas rutas ya resueltas.
"""

import os
from pathlib import Path
from typing import Mapping, Optional


# Rutas canónicas (fuera del repo)
POOLSWITCH_STATE_ROOT = Path("/var/lib/poolswitch")
NGINX_CONF_PATH = Path("/etc/nginx/nginx.conf")

LOCK_FILENAME = "switch.lock"
STATE_FILENAME = "state.yaml"


def _from_env(key: str, env: Optional[Mapping[str, str]]) -> Optional[Path]:
    env = os.environ if env is None else env
    explicit = env.get(key, "").strip()
    if explicit:
        return Path(explicit).expanduser()
    return None


def state_root(env: Optional[Mapping[str, str]] = None) -> Path:
    """
    Directorio raíz del estado de poolswitch.
    POOLSWITCH_STATE_DIR tiene prioridad sobre /var/lib/poolswitch/.
    """
    return _from_env("POOLSWITCH_STATE_DIR", env) or POOLSWITCH_STATE_ROOT


def artifact_path(env: Optional[Mapping[str, str]] = None) -> Path:
    """Ruta del nginx.conf activo (POOLSWITCH_CONF_PATH o /etc/nginx/nginx.conf)."""
    return _from_env("POOLSWITCH_CONF_PATH", env) or NGINX_CONF_PATH


def lock_path(state_dir: Path) -> Path:
    return state_dir / LOCK_FILENAME


def state_file(state_dir: Path) -> Path:
    return state_dir / STATE_FILENAME
