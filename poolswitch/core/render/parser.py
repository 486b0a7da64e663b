"""
Parser del nginx.conf generado.
Extrae pool activo, primario y backup de un artefacto ya escrito (status, drift, tests).
"""

import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional


@dataclass
class RenderedSummary:
    """Lo que el artefacto dice sobre la ordenación del upstream."""
    active_pool: Optional[str] = None
    upstream: Optional[str] = None
    primary: Optional[str] = None
    backup: Optional[str] = None
    labels: Dict[str, str] = field(default_factory=dict)
    servers: List[str] = field(default_factory=list)

    @property
    def primary_label(self) -> Optional[str]:
        return self.labels.get("primary")

    @property
    def backup_label(self) -> Optional[str]:
        return self.labels.get("backup")


def parse_rendered(content: str) -> RenderedSummary:
    """
    Parsea el texto de un nginx.conf generado por poolswitch

    Args:
        content: Texto del artefacto

    Returns:
        RenderedSummary (campos en None si no se encuentran)
    """
    summary = RenderedSummary()

    # Cabecera: "# poolswitch: active_pool=blue" / "# poolswitch: primary=blue host:port ..."
    for match in re.finditer(r'^#\s*poolswitch:\s*(\w+)=(\S+)', content, re.MULTILINE):
        key, value = match.group(1), match.group(2)
        if key == "active_pool":
            summary.active_pool = value
        elif key in ("primary", "backup"):
            summary.labels[key] = value

    # Bloque upstream (el primero del documento)
    upstream_match = re.search(r'upstream\s+(\w+)\s*\{([^}]+)\}', content, re.DOTALL)
    if not upstream_match:
        return summary
    summary.upstream = upstream_match.group(1)

    for server_match in re.finditer(r'^\s*server\s+([^;]+);', upstream_match.group(2), re.MULTILINE):
        server_line = server_match.group(1).strip()
        summary.servers.append(server_line)
        parts = server_line.split()
        if "backup" in parts[1:]:
            summary.backup = summary.backup or parts[0]
        else:
            summary.primary = summary.primary or parts[0]

    return summary


def parse_artifact(path: Path) -> Optional[RenderedSummary]:
    """Parsea el artefacto en disco; None si no existe o no se puede leer."""
    if not path.exists():
        return None
    try:
        return parse_rendered(path.read_text(encoding="utf-8"))
    except OSError:
        return None
