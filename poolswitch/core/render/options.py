"""
Parámetros del proxy que no dependen del pool activo.
Timeouts cortos para que el failover pasivo tarde poco.
"""

import os
from typing import Dict, Mapping, Optional

from pydantic import BaseModel, Field, ValidationError

from poolswitch.core.errors import ConfigError


class ProxyOptions(BaseModel):
    """Opciones de render del nginx.conf (listen, timeouts, reintentos, rutas)."""
    listen_port: int = Field(80, ge=1, le=65535, description="Puerto público del proxy")
    upstream_name: str = Field("app_pool", pattern=r"^[A-Za-z_][A-Za-z0-9_]*$")
    connect_timeout: int = Field(2, ge=1, le=9, description="proxy_connect_timeout (s)")
    send_timeout: int = Field(3, ge=1, le=9, description="proxy_send_timeout (s)")
    read_timeout: int = Field(3, ge=1, le=9, description="proxy_read_timeout (s)")
    next_upstream_tries: int = Field(2, ge=2, le=5, description="Intentos totales por request")
    next_upstream_timeout: int = Field(10, ge=1, le=60, description="Presupuesto total de reintentos (s)")
    max_fails: int = Field(1, ge=0, le=10, description="Fallos antes de marcar caído al primario")
    fail_timeout: int = Field(5, ge=1, le=60, description="Ventana de mark-down del primario (s)")
    keepalive: int = Field(32, ge=1, le=1024, description="Conexiones keepalive al upstream")
    worker_connections: int = Field(1024, ge=16)
    proxy_marker: str = Field("poolswitch", pattern=r"^[A-Za-z0-9._-]+$", description="Valor de X-Proxy")
    health_path: str = Field("/healthz", pattern=r"^/[A-Za-z0-9._/-]*$")
    pid_path: str = Field("/run/nginx.pid", pattern=r"^[^\s;{}]+$")
    error_log: str = Field("/var/log/nginx/error.log", pattern=r"^[^\s;{}]+$")
    access_log: str = Field("/var/log/nginx/access.log", pattern=r"^[^\s;{}]+$")

    @classmethod
    def from_env(cls, env: Optional[Mapping[str, str]] = None) -> "ProxyOptions":
        """
        Lee POOLSWITCH_<CAMPO> (ej: POOLSWITCH_LISTEN_PORT, POOLSWITCH_READ_TIMEOUT).
        Campos ausentes o vacíos mantienen el default.
        """
        env = os.environ if env is None else env
        values: Dict[str, str] = {}
        for field in cls.model_fields:
            raw = env.get(f"POOLSWITCH_{field.upper()}", "").strip()
            if raw:
                values[field] = raw
        try:
            return cls(**values)
        except ValidationError as e:
            errors = "; ".join(
                f"{'.'.join(str(p) for p in err.get('loc', ()))}: {err.get('msg', '')}"
                for err in e.errors()
            )
            raise ConfigError(f"Opciones de proxy inválidas: {errors}") from None
