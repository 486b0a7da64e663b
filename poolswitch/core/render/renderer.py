"""
Generador del nginx.conf blue/green.

Función pura: (pool activo, registry, opciones) → documento nginx.
Mismas entradas producen siempre el mismo texto byte a byte (sin fechas ni ids).
"""

import hashlib
from dataclasses import dataclass
from typing import Any, Optional

from poolswitch.core.pools.models import Pool, PoolLabel, other, parse_label
from poolswitch.core.pools.registry import PoolRegistry
from poolswitch.core.render.options import ProxyOptions


POOL_HEADER = "X-App-Pool"
RELEASE_HEADER = "X-Release-Id"
PROXY_HEADER = "X-Proxy"


@dataclass(frozen=True)
class RenderedConfig:
    """Artefacto renderizado: primario = pool activo, backup = el otro."""
    active_pool: PoolLabel
    primary: Pool
    backup: Pool
    text: str

    @property
    def digest(self) -> str:
        return hashlib.sha256(self.text.encode("utf-8")).hexdigest()


def _proxy_directives(options: ProxyOptions, indent: str) -> str:
    """Bloque común de proxy_* para / y para la ruta de health."""
    lines = [
        "proxy_http_version 1.1;",
        'proxy_set_header Connection "";',
        "proxy_set_header Host $host;",
        "proxy_set_header X-Real-IP $remote_addr;",
        "proxy_set_header X-Forwarded-For $proxy_add_x_forwarded_for;",
        "",
        "# Timeouts cortos: el failover al backup debe ser rápido",
        f"proxy_connect_timeout {options.connect_timeout}s;",
        f"proxy_send_timeout {options.send_timeout}s;",
        f"proxy_read_timeout {options.read_timeout}s;",
        "",
        "# Failover pasivo: error, timeout o 5xx del primario → reintento en backup",
        "proxy_next_upstream error timeout http_500 http_502 http_503 http_504;",
        f"proxy_next_upstream_tries {options.next_upstream_tries};",
        f"proxy_next_upstream_timeout {options.next_upstream_timeout}s;",
        "",
        "# Identidad del pool que atendió la request",
        f"proxy_pass_header {POOL_HEADER};",
        f"proxy_pass_header {RELEASE_HEADER};",
        f"add_header {PROXY_HEADER} {options.proxy_marker} always;",
    ]
    return "\n".join(f"{indent}{line}" if line else "" for line in lines)


def render(
    active_pool: Any,
    registry: PoolRegistry,
    options: Optional[ProxyOptions] = None,
) -> RenderedConfig:
    """
    Genera el nginx.conf completo para `active_pool`.

    Args:
        active_pool: blue | green (InvalidPoolSelection si no)
        registry: Registry con ambos pools
        options: Opciones de proxy (default: ProxyOptions())

    Returns:
        RenderedConfig con el texto del documento
    """
    options = options or ProxyOptions()
    label = parse_label(active_pool)
    primary = registry.resolve(label)
    backup = registry.resolve(other(label))
    upstream = options.upstream_name
    directives = _proxy_directives(options, " " * 12)

    text = f"""# Generado por poolswitch. No editar a mano: se reemplaza en cada switch.
# poolswitch: active_pool={label.value}
# poolswitch: primary={primary.name.value} {primary.address} release={primary.release_id}
# poolswitch: backup={backup.name.value} {backup.address} release={backup.release_id}

worker_processes auto;
pid {options.pid_path};
error_log {options.error_log} warn;

events {{
    worker_connections {options.worker_connections};
}}

http {{
    access_log {options.access_log};
    server_tokens off;

    # ========== UPSTREAM ==========
    upstream {upstream} {{
        # primario ({primary.name.value})
        server {primary.address} max_fails={options.max_fails} fail_timeout={options.fail_timeout}s;
        # backup ({backup.name.value}): solo recibe tráfico si el primario falla
        server {backup.address} backup;
        keepalive {options.keepalive};
    }}

    server {{
        listen {options.listen_port};

        # ========== HEALTH ==========
        location = {options.health_path} {{
            proxy_pass http://{upstream}{options.health_path};
{directives}
        }}

        # ========== UBICACIONES ==========
        location / {{
            proxy_pass http://{upstream};
{directives}
        }}
    }}
}}
"""
    return RenderedConfig(active_pool=label, primary=primary, backup=backup, text=text)
