"""
Validación del artefacto antes de activarlo.

El render se escribe a un temporal junto al artefacto vivo (mismo filesystem)
y el checker del proxy valida ESE archivo. Si pasa, ese mismo archivo se
renombra sobre el artefacto: no hay re-render entre check y apply.
"""

import os
import tempfile
from pathlib import Path
from typing import Optional

from poolswitch.core.errors import ValidationFailed
from poolswitch.core.infra.contracts import ProxyRuntime
from poolswitch.core.render.renderer import RenderedConfig


class StagedConfig:
    """RenderedConfig escrito en un temporal, pendiente de promote o discard."""

    def __init__(self, rendered: RenderedConfig, path: Path, target: Path):
        self.rendered = rendered
        self.path = path
        self.target = target
        self.promoted = False

    def promote(self) -> None:
        """Reemplazo atómico del artefacto (rename, nunca truncate in-place)."""
        os.chmod(self.path, 0o644)
        os.replace(self.path, self.target)
        self.promoted = True

    def discard(self) -> None:
        if self.promoted:
            return
        try:
            os.unlink(self.path)
        except FileNotFoundError:
            pass


def stage(rendered: RenderedConfig, target: Path) -> StagedConfig:
    """
    Escribe el render en <dir del artefacto>/.<nombre>.<random>.tmp

    Args:
        rendered: Config renderizada
        target: Ruta del artefacto vivo

    Returns:
        StagedConfig listo para validar
    """
    target.parent.mkdir(parents=True, exist_ok=True)
    fd, temp_path = tempfile.mkstemp(dir=target.parent, prefix=f".{target.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(rendered.text)
            f.flush()
            os.fsync(f.fileno())
    except Exception:
        try:
            os.unlink(temp_path)
        except OSError:
            pass
        raise
    return StagedConfig(rendered, Path(temp_path), target)


class ConfigValidator:
    """Delegación al modo "check configuration" del proxy."""

    def __init__(self, runtime: ProxyRuntime):
        self.runtime = runtime

    def validate(self, staged: StagedConfig) -> None:
        """
        Valida el archivo staged sin aplicarlo.

        Raises:
            ValidationFailed: con la salida del checker en `details`
        """
        result = self.runtime.check(staged.path)
        if not result.ok:
            raise ValidationFailed(
                f"{self.runtime.name} rechazó la configuración para {staged.rendered.active_pool.value}",
                details=_tail(result.output),
            )


def _tail(output: Optional[str], lines: int = 10) -> str:
    if not output:
        return ""
    return "\n".join(output.strip().splitlines()[-lines:])
