"""
Controlador de activación: render → validate → swap atómico → start/reload.

Una sola máquina de estados con dos condiciones iniciales:
- cold start: no hay configuración previa; se escribe el artefacto y se arranca el proxy.
- warm switch: ya hubo una configuración activa; se reemplaza el artefacto y se pide reload graceful.

Ningún fallo de switch toca la configuración que ya está sirviendo: si la
validación falla, el artefacto vivo queda byte a byte igual.
"""

from pathlib import Path
from typing import Any, Optional

from rich.console import Console

from poolswitch.core.activation.validator import ConfigValidator, StagedConfig, stage
from poolswitch.core.errors import InfrastructureError, PoolSwitchError, ReloadFailed
from poolswitch.core.infra.contracts import ActivationMode, ActivationResult, ProxyRuntime
from poolswitch.core.pools.models import PoolLabel, parse_label
from poolswitch.core.pools.registry import PoolRegistry
from poolswitch.core.render.options import ProxyOptions
from poolswitch.core.render.renderer import RenderedConfig, render
from poolswitch.core.runtime.state import SwitchStateStore, switch_lock


class ActivationController:
    """Orquesta un switch completo; los switches se serializan con switch_lock."""

    def __init__(
        self,
        registry: PoolRegistry,
        runtime: ProxyRuntime,
        artifact: Path,
        state_dir: Path,
        options: Optional[ProxyOptions] = None,
        console: Optional[Console] = None,
    ):
        self.registry = registry
        self.runtime = runtime
        self.artifact = artifact
        self.state_dir = state_dir
        self.options = options or ProxyOptions()
        self.console = console
        self.validator = ConfigValidator(runtime)
        self.state = SwitchStateStore(state_dir)

    def _log(self, message: str) -> None:
        if self.console:
            self.console.print(message)

    def detect_mode(self) -> ActivationMode:
        """
        Cold start solo si no hay configuración previa: ni artefacto en disco,
        ni switch aplicado, ni proceso vivo. En cualquier otro caso warm switch,
        y un proxy caído se reporta como ReloadFailed en vez de relanzarse.
        """
        if self.artifact.exists() or self.state.active_pool() or self.runtime.is_running():
            return ActivationMode.WARM_SWITCH
        return ActivationMode.COLD_START

    def render(self, desired: Any) -> RenderedConfig:
        """Render puro del pool pedido (sin validar ni aplicar)."""
        return render(desired, self.registry, self.options)

    def check(self, desired: Any) -> RenderedConfig:
        """
        Renderiza, stagea y valida; descarta siempre el temporal.
        No toca el artefacto vivo ni el proceso.

        Raises:
            InvalidPoolSelection, UnknownPool, ValidationFailed, InfrastructureError
        """
        rendered = self.render(desired)
        staged = self._stage(rendered)
        try:
            self.validator.validate(staged)
        finally:
            staged.discard()
        return rendered

    def activate(self, desired: Any, mode: Optional[ActivationMode] = None) -> ActivationResult:
        """
        Activa `desired` como pool primario.

        Args:
            desired: blue | green (cualquier otra cosa → InvalidPoolSelection sin efectos)
            mode: Forzar cold/warm; None usa detect_mode()

        Returns:
            ActivationResult aplicado o rechazado (error + motivo)
        """
        # La selección se valida antes de tomar el lock: sin efectos en disco
        try:
            label = parse_label(desired)
        except PoolSwitchError as e:
            self._log(f"  [red]✗[/red] Switch rechazado ({e.category})")
            return ActivationResult(pool=None, mode=mode, artifact=self.artifact, error=e)

        try:
            with switch_lock(self.state_dir):
                mode = mode or self.detect_mode()
                try:
                    result = self._apply(label, mode)
                except PoolSwitchError as e:
                    result = ActivationResult(pool=label.value, mode=mode, artifact=self.artifact, error=e)
                    self._log(f"  [red]✗[/red] Switch rechazado ({e.category})")
                self._record(result)
        except InfrastructureError as e:
            # Sin lock no hay switch: nada se tocó
            self._log(f"  [red]✗[/red] Switch rechazado ({e.category})")
            return ActivationResult(pool=label.value, mode=mode, artifact=self.artifact, error=e)
        return result

    def _apply(self, label: PoolLabel, mode: ActivationMode) -> ActivationResult:
        self._log(f"[cyan]🔄 Activando {label.value} ({mode.value})[/cyan]")

        rendered = self.render(label)
        self._log(
            f"  [green]✓[/green] Render: primario [cyan]{rendered.primary.address}[/cyan], "
            f"backup [cyan]{rendered.backup.address}[/cyan]"
        )

        staged = self._stage(rendered)
        try:
            self.validator.validate(staged)
            self._log(f"  [green]✓[/green] {self.runtime.name} aceptó la configuración")
            try:
                staged.promote()
            except OSError as e:
                raise InfrastructureError(f"No se pudo reemplazar {self.artifact}: {e}") from e
        finally:
            staged.discard()
        self._log(f"  [green]✓[/green] Artefacto reemplazado: [cyan]{self.artifact}[/cyan]")

        try:
            if mode == ActivationMode.COLD_START:
                self.runtime.start(self.artifact)
                self._log(f"  [green]✓[/green] {self.runtime.name} arrancado")
            else:
                self.runtime.reload(self.artifact)
                self._log(f"  [green]✓[/green] {self.runtime.name} recargado (graceful)")
        except ReloadFailed:
            raise
        except OSError as e:
            raise ReloadFailed(f"No se pudo señalizar {self.runtime.name}: {e}") from e

        return ActivationResult(
            pool=label.value,
            mode=mode,
            artifact=self.artifact,
            digest=rendered.digest,
            primary=rendered.primary.address,
            backup=rendered.backup.address,
        )

    def _stage(self, rendered: RenderedConfig) -> StagedConfig:
        try:
            return stage(rendered, self.artifact)
        except OSError as e:
            raise InfrastructureError(f"No se pudo preparar el artefacto en {self.artifact.parent}: {e}") from e

    def _record(self, result: ActivationResult) -> None:
        try:
            self.state.record(result)
        except OSError as e:
            self._log(f"[yellow]⚠ No se pudo guardar el historial en {self.state.path}: {e}[/yellow]")
