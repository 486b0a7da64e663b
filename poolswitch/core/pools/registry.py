"""
Registry de pools: carga única al arrancar e inmutable después.

Fuentes (en orden):
- YAML explícito (--pools-file o POOLSWITCH_POOLS_FILE):
    pools:
      blue:  {host: app_blue,  port: 3000, release_id: v1}
      green: {host: app_green, port: 3000, release_id: v2}
    active_pool: blue
- Variables de entorno: BLUE_HOST, GREEN_HOST, BLUE_PORT, GREEN_PORT, APP_PORT,
  RELEASE_ID_BLUE, RELEASE_ID_GREEN, ACTIVE_POOL.
"""

import os
from pathlib import Path
from typing import Any, Dict, Iterator, Mapping, Optional, Tuple

import yaml
from pydantic import ValidationError

from poolswitch.core.errors import ConfigError, UnknownPool
from poolswitch.core.pools.models import Pool, PoolLabel, parse_label


DEFAULT_APP_PORT = 3000
DEFAULT_HOSTS = {PoolLabel.BLUE: "app_blue", PoolLabel.GREEN: "app_green"}


class PoolRegistry:
    """Identidad estática de los dos pools."""

    def __init__(self, blue: Pool, green: Pool):
        if blue.name != PoolLabel.BLUE or green.name != PoolLabel.GREEN:
            raise ConfigError("El registry requiere exactamente un pool blue y un pool green")
        self._pools: Dict[PoolLabel, Pool] = {PoolLabel.BLUE: blue, PoolLabel.GREEN: green}

    def resolve(self, name: Any) -> Pool:
        """Devuelve el pool registrado bajo `name`; UnknownPool si no existe."""
        try:
            return self._pools[PoolLabel(name)]
        except (ValueError, KeyError):
            raise UnknownPool(f"Pool no registrado: {name!r}") from None

    def __iter__(self) -> Iterator[Pool]:
        return iter(self._pools.values())

    def __eq__(self, other_registry: object) -> bool:
        if not isinstance(other_registry, PoolRegistry):
            return NotImplemented
        return self._pools == other_registry._pools

    def __repr__(self) -> str:
        blue, green = self._pools[PoolLabel.BLUE], self._pools[PoolLabel.GREEN]
        return f"PoolRegistry(blue={blue.address}, green={green.address})"


def _build_pool(label: PoolLabel, data: Mapping[str, Any]) -> Pool:
    try:
        return Pool(name=label, **data)
    except ValidationError as e:
        errors = "; ".join(err.get("msg", "") for err in e.errors())
        raise ConfigError(f"Pool {label.value} inválido: {errors}") from None
    except TypeError as e:
        raise ConfigError(f"Pool {label.value} inválido: {e}") from None


def _read_pools_file(path: Path) -> Dict[str, Any]:
    if not path.exists():
        raise ConfigError(f"No existe el archivo de pools: {path}")
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError) as e:
        raise ConfigError(f"Error leyendo {path}: {e}") from None
    if not isinstance(data, dict):
        raise ConfigError(f"{path} debe contener un mapa YAML")
    return data


def _pools_from_file(data: Dict[str, Any], path: Path) -> Tuple[Pool, Pool]:
    pools = data.get("pools")
    if not isinstance(pools, dict):
        raise ConfigError(f"{path}: falta la sección 'pools'")
    result = []
    for label in PoolLabel:
        entry = pools.get(label.value)
        if not isinstance(entry, dict):
            raise ConfigError(f"{path}: falta el pool '{label.value}'")
        result.append(_build_pool(label, entry))
    return result[0], result[1]


def _pools_from_env(env: Mapping[str, str]) -> Tuple[Pool, Pool]:
    app_port = env.get("APP_PORT", "").strip() or str(DEFAULT_APP_PORT)
    result = []
    for label in PoolLabel:
        prefix = label.value.upper()
        port = env.get(f"{prefix}_PORT", "").strip() or app_port
        if not port.isdigit():
            raise ConfigError(f"Puerto inválido para {label.value}: {port!r}")
        result.append(_build_pool(label, {
            "host": env.get(f"{prefix}_HOST", "").strip() or DEFAULT_HOSTS[label],
            "port": int(port),
            "release_id": env.get(f"RELEASE_ID_{prefix}", "").strip() or "unknown",
        }))
    return result[0], result[1]


def _resolve_pools_file(pools_file: Optional[Path], env: Mapping[str, str]) -> Optional[Path]:
    if pools_file:
        return Path(pools_file)
    explicit = env.get("POOLSWITCH_POOLS_FILE", "").strip()
    if explicit:
        return Path(explicit).expanduser()
    return None


def load_registry(
    env: Optional[Mapping[str, str]] = None,
    pools_file: Optional[Path] = None,
) -> PoolRegistry:
    """
    Carga el registry desde YAML (si hay) o desde variables de entorno.

    Args:
        env: Entorno a leer (por defecto os.environ)
        pools_file: Ruta YAML explícita; tiene prioridad sobre POOLSWITCH_POOLS_FILE

    Returns:
        PoolRegistry inmutable

    Raises:
        ConfigError: si falta un pool o algún valor es inválido
    """
    env = os.environ if env is None else env
    path = _resolve_pools_file(pools_file, env)
    if path:
        blue, green = _pools_from_file(_read_pools_file(path), path)
    else:
        blue, green = _pools_from_env(env)
    return PoolRegistry(blue, green)


def declared_active_pool(
    env: Optional[Mapping[str, str]] = None,
    pools_file: Optional[Path] = None,
) -> PoolLabel:
    """Pool activo declarado por el colaborador externo (YAML o ACTIVE_POOL); default blue."""
    env = os.environ if env is None else env
    path = _resolve_pools_file(pools_file, env)
    value = None
    if path:
        value = _read_pools_file(path).get("active_pool")
    if not value:
        value = env.get("ACTIVE_POOL", "").strip() or PoolLabel.BLUE.value
    return parse_label(value)
