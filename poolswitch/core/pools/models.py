"""
Modelos de pools blue/green.
Fuente de verdad para host, puerto y release; el .conf se genera desde aquí.
"""

import re
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, model_validator

from poolswitch.core.errors import InvalidPoolSelection, UnknownPool


class PoolLabel(str, Enum):
    """Etiquetas fijas de pool (no extensibles en runtime)"""
    BLUE = "blue"
    GREEN = "green"


# Un host es un único token: nada que pueda cerrar o abrir una directiva nginx
_UNSAFE_HOST = re.compile(r"[\s;{}#'\"]")


class Pool(BaseModel):
    """Identidad de un entorno desplegable (un miembro del upstream)."""
    name: PoolLabel = Field(..., description="blue | green")
    host: str = Field(..., min_length=1, description="IP o hostname del servicio (ej: app_blue)")
    port: int = Field(..., ge=1, le=65535, description="Puerto del servicio")
    release_id: str = Field("unknown", description="Versión desplegada (se devuelve en X-Release-Id)")

    model_config = ConfigDict(frozen=True)

    @model_validator(mode="after")
    def check_tokens(self) -> "Pool":
        if _UNSAFE_HOST.search(self.host):
            raise ValueError(f"host inválido para nginx: {self.host!r}")
        if not self.release_id or any(c.isspace() for c in self.release_id):
            raise ValueError(f"release_id debe ser un único token: {self.release_id!r}")
        return self

    @property
    def address(self) -> str:
        return f"{self.host}:{self.port}"


def parse_label(value: Any) -> PoolLabel:
    """
    Convierte la entrada del operador en PoolLabel.

    Raises:
        InvalidPoolSelection: si no es blue ni green
    """
    if isinstance(value, PoolLabel):
        return value
    raw = str(value).strip().lower() if value is not None else ""
    try:
        return PoolLabel(raw)
    except ValueError:
        allowed = ", ".join(p.value for p in PoolLabel)
        raise InvalidPoolSelection(f"Pool inválido: {value!r} (usa: {allowed})") from None


def other(label: Any) -> PoolLabel:
    """Toggle total: blue ↔ green. Cualquier otra entrada es un fallo interno."""
    if label == PoolLabel.BLUE:
        return PoolLabel.GREEN
    if label == PoolLabel.GREEN:
        return PoolLabel.BLUE
    raise UnknownPool(f"No existe pool opuesto para: {label!r}")
