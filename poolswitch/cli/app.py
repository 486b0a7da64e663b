"""
Aplicación CLI de poolswitch.

Solo compone comandos; la lógica vive en core y providers.
Cada categoría de error tiene su propio mensaje y código de salida.
"""

import hashlib
from enum import Enum
from pathlib import Path
from typing import Any, Dict, NoReturn, Optional

import typer
from dotenv import find_dotenv, load_dotenv
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from poolswitch import __version__
from poolswitch.core.activation.controller import ActivationController
from poolswitch.core.errors import (
    ConfigError,
    InfrastructureError,
    InvalidPoolSelection,
    PoolSwitchError,
    ReloadFailed,
    UnknownPool,
    ValidationFailed,
)
from poolswitch.core.infra.contracts import ActivationMode, ActivationResult, ProxyRuntime
from poolswitch.core.pools.models import other, parse_label
from poolswitch.core.pools.registry import PoolRegistry, declared_active_pool, load_registry
from poolswitch.core.render.options import ProxyOptions
from poolswitch.core.render.parser import parse_artifact
from poolswitch.core.runtime.resolver import artifact_path, state_root
from poolswitch.core.runtime.state import SwitchStateStore
from poolswitch.providers.nginx.probe import format_probe_status, probe
from poolswitch.providers.nginx.runtime import NginxRuntime


app = typer.Typer(
    name="poolswitch",
    help="poolswitch - Conmutación blue/green sin downtime detrás de Nginx",
    add_completion=False,
    no_args_is_help=True,
)

console = Console()


class ModeChoice(str, Enum):
    AUTO = "auto"
    COLD = "cold"
    WARM = "warm"


_MODES = {
    ModeChoice.AUTO: None,
    ModeChoice.COLD: ActivationMode.COLD_START,
    ModeChoice.WARM: ActivationMode.WARM_SWITCH,
}


class Settings:
    """Entradas resueltas una vez por invocación (registry, opciones, rutas)."""
    def __init__(
        self,
        registry: PoolRegistry,
        options: ProxyOptions,
        artifact: Path,
        state_dir: Path,
        nginx_bin: str,
        pools_file: Optional[Path],
    ):
        self.registry = registry
        self.options = options
        self.artifact = artifact
        self.state_dir = state_dir
        self.nginx_bin = nginx_bin
        self.pools_file = pools_file


def build_runtime(settings: Settings) -> ProxyRuntime:
    """Runtime concreto del proxy (los tests lo sustituyen)."""
    return NginxRuntime(
        binary=settings.nginx_bin,
        pid_path=Path(settings.options.pid_path),
    )


@app.callback()
def main_options(
    ctx: typer.Context,
    pools_file: Optional[Path] = typer.Option(
        None, "--pools-file", help="YAML con los pools (o POOLSWITCH_POOLS_FILE)"
    ),
    conf_path: Optional[Path] = typer.Option(
        None, "--conf-path", help="nginx.conf que lee el proxy (o POOLSWITCH_CONF_PATH)"
    ),
    state_dir: Optional[Path] = typer.Option(
        None, "--state-dir", help="Directorio de estado/historial (o POOLSWITCH_STATE_DIR)"
    ),
    nginx_bin: str = typer.Option(
        "nginx", "--nginx-bin", envvar="POOLSWITCH_NGINX_BIN", help="Binario de nginx"
    ),
):
    """Opciones globales compartidas por todos los comandos."""
    ctx.obj = {
        "pools_file": pools_file,
        "conf_path": conf_path,
        "state_dir": state_dir,
        "nginx_bin": nginx_bin,
    }


def _settings(ctx: typer.Context) -> Settings:
    obj: Dict[str, Any] = ctx.obj or {}
    try:
        registry = load_registry(pools_file=obj.get("pools_file"))
        options = ProxyOptions.from_env()
    except PoolSwitchError as e:
        _fail(e)
    return Settings(
        registry=registry,
        options=options,
        artifact=obj.get("conf_path") or artifact_path(),
        state_dir=obj.get("state_dir") or state_root(),
        nginx_bin=obj.get("nginx_bin") or "nginx",
        pools_file=obj.get("pools_file"),
    )


def _controller(settings: Settings, runtime: Optional[ProxyRuntime] = None) -> ActivationController:
    return ActivationController(
        registry=settings.registry,
        runtime=runtime or build_runtime(settings),
        artifact=settings.artifact,
        state_dir=settings.state_dir,
        options=settings.options,
        console=console,
    )


def _print_details(details: Optional[str]) -> None:
    if not details:
        return
    for line in details.strip().split("\n")[:10]:
        line = line.replace("[", "\\[").replace("]", "\\]")
        console.print(f"[red]  {line}[/red]")


def _fail(error: PoolSwitchError) -> NoReturn:
    """Muestra el error según su categoría y sale con su exit_code."""
    if isinstance(error, InvalidPoolSelection):
        console.print(f"[red]❌ Selección de pool inválida: {error.message}[/red]")
        console.print("[dim]No se modificó nada. Usa: poolswitch switch blue|green[/dim]")
    elif isinstance(error, UnknownPool):
        console.print(f"[red]❌ Pool desconocido (fallo de consistencia interna): {error.message}[/red]")
    elif isinstance(error, ValidationFailed):
        console.print(f"[red]❌ Configuración rechazada: {error.message}[/red]")
        _print_details(error.details)
        console.print("[yellow]La configuración anterior sigue activa y sirviendo tráfico.[/yellow]")
    elif isinstance(error, ReloadFailed):
        console.print(Panel.fit(
            f"[bold red]❌ RELOAD FALLIDO[/bold red]\n{error.message}\n\n"
            "[yellow]El artefacto en disco ya es el nuevo, pero el proxy NO lo cargó.\n"
            "Disco y proceso divergen: revisa nginx y vuelve a ejecutar el switch.[/yellow]",
            border_style="red",
        ))
        _print_details(error.details)
    elif isinstance(error, InfrastructureError):
        console.print(f"[red]❌ Fallo de infraestructura: {error.message}[/red]")
        console.print("[yellow]La configuración no fue evaluada por el proxy; revisa permisos y espacio en disco.[/yellow]")
    elif isinstance(error, ConfigError):
        console.print(f"[red]❌ Configuración declarada inválida: {error.message}[/red]")
        console.print("[dim]Revisa las variables de entorno o el archivo --pools-file[/dim]")
    else:
        console.print(f"[red]❌ {error.category}: {error.message}[/red]")
    raise typer.Exit(error.exit_code)


def _report(result: ActivationResult) -> None:
    if result.rejected:
        _fail(result.error)
    console.print(Panel.fit(
        f"[bold green]✅ Pool activo: {result.pool}[/bold green]\n"
        f"[dim]Modo:[/dim] {result.mode.value}\n"
        f"[dim]Primario:[/dim] {result.primary}\n"
        f"[dim]Backup:[/dim] {result.backup}\n"
        f"[dim]Artefacto:[/dim] {result.artifact}\n"
        f"[dim]sha256:[/dim] {result.digest[:16]}",
        border_style="green",
    ))


@app.command()
def switch(
    ctx: typer.Context,
    pool: str = typer.Argument(..., help="Pool a activar: blue | green"),
    mode: ModeChoice = typer.Option(ModeChoice.AUTO, "--mode", help="auto | cold | warm"),
):
    """
    Activa un pool como primario (el otro queda de backup)

    Ejemplos:
        poolswitch switch green             # Warm switch (reload graceful)
        poolswitch switch blue --mode warm  # Falla si nginx no está corriendo
    """
    settings = _settings(ctx)
    result = _controller(settings).activate(pool, mode=_MODES[mode])
    _report(result)


@app.command()
def start(
    ctx: typer.Context,
    pool: Optional[str] = typer.Argument(None, help="Pool inicial (default: ACTIVE_POOL declarado)"),
    foreground: bool = typer.Option(True, "--foreground/--no-foreground", help="Esperar al proceso nginx"),
):
    """Cold start: renderiza, valida, escribe el artefacto y arranca nginx en primer plano."""
    settings = _settings(ctx)
    if pool is None:
        try:
            pool = declared_active_pool(pools_file=settings.pools_file).value
        except PoolSwitchError as e:
            _fail(e)
    runtime = build_runtime(settings)
    result = _controller(settings, runtime).activate(pool, mode=ActivationMode.COLD_START)
    _report(result)
    if foreground and isinstance(runtime, NginxRuntime):
        raise typer.Exit(runtime.wait())


@app.command()
def toggle(ctx: typer.Context):
    """Activa el pool opuesto al último aplicado (o al declarado si nunca hubo switch)."""
    settings = _settings(ctx)
    try:
        current = SwitchStateStore(settings.state_dir).active_pool()
        current_label = parse_label(current) if current else declared_active_pool(pools_file=settings.pools_file)
        target = other(current_label)
    except PoolSwitchError as e:
        _fail(e)
    console.print(f"[dim]{current_label.value} → {target.value}[/dim]")
    _report(_controller(settings).activate(target))


@app.command()
def render(
    ctx: typer.Context,
    pool: Optional[str] = typer.Argument(None, help="Pool primario (default: ACTIVE_POOL declarado)"),
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Escribir a archivo en vez de stdout"),
):
    """Muestra el nginx.conf que se generaría (sin validar ni aplicar)."""
    settings = _settings(ctx)
    try:
        if pool is None:
            pool = declared_active_pool(pools_file=settings.pools_file).value
        rendered = _controller(settings).render(pool)
    except PoolSwitchError as e:
        _fail(e)
    if output:
        try:
            output.write_text(rendered.text, encoding="utf-8")
        except OSError as e:
            _fail(InfrastructureError(f"No se pudo escribir {output}: {e}"))
        console.print(f"[green]✅ Escrito: {output}[/green] [dim](sha256 {rendered.digest[:16]})[/dim]")
    else:
        typer.echo(rendered.text, nl=False)


@app.command()
def check(
    ctx: typer.Context,
    pool: Optional[str] = typer.Argument(None, help="Pool primario (default: ACTIVE_POOL declarado)"),
):
    """Renderiza y valida con nginx -t sin tocar el artefacto activo."""
    settings = _settings(ctx)
    try:
        if pool is None:
            pool = declared_active_pool(pools_file=settings.pools_file).value
        rendered = _controller(settings).check(pool)
    except PoolSwitchError as e:
        _fail(e)
    console.print(
        f"[green]✅ Configuración válida para {rendered.active_pool.value}[/green] "
        f"[dim](primario {rendered.primary.address}, backup {rendered.backup.address})[/dim]"
    )


@app.command()
def status(ctx: typer.Context):
    """Muestra pools, pool declarado, artefacto activo y estado del proceso."""
    settings = _settings(ctx)
    console.print(Panel.fit("[bold cyan]Estado de poolswitch[/bold cyan]", border_style="cyan"))

    summary = parse_artifact(settings.artifact)
    state = SwitchStateStore(settings.state_dir).load()

    table = Table(title="Pools", show_header=True, header_style="bold cyan")
    table.add_column("Pool", style="cyan")
    table.add_column("Upstream", style="green")
    table.add_column("Release", style="yellow")
    table.add_column("Rol en artefacto", style="dim")
    for p in settings.registry:
        role = "—"
        if summary and summary.primary == p.address:
            role = "[green]primario[/green]"
        elif summary and summary.backup == p.address:
            role = "[yellow]backup[/yellow]"
        table.add_row(p.name.value, p.address, p.release_id, role)
    console.print(table)

    try:
        declared = declared_active_pool(pools_file=settings.pools_file).value
    except PoolSwitchError as e:
        declared = f"[red]{e.message}[/red]"
    running = build_runtime(settings).is_running()

    info = Table(show_header=False, box=None)
    info.add_column("Campo", style="cyan", width=22)
    info.add_column("Valor", style="white")
    info.add_row("Pool declarado", declared)
    info.add_row("Último switch aplicado", str(state.get("active_pool") or "—"))
    info.add_row("Aplicado en", str(state.get("activated_at") or "—"))
    info.add_row("Artefacto", str(settings.artifact))
    info.add_row("Activo en artefacto", (summary.active_pool if summary else None) or "[yellow]sin artefacto[/yellow]")
    info.add_row("Proxy", "[green]✅ Activo[/green]" if running else "[red]❌ Inactivo[/red]")
    console.print(info)

    if summary and state.get("digest") and settings.artifact.exists():
        try:
            actual = hashlib.sha256(settings.artifact.read_bytes()).hexdigest()
        except OSError as e:
            console.print(f"\n[yellow]⚠ No se pudo leer {settings.artifact}: {e}[/yellow]")
            return
        if actual != state["digest"]:
            console.print("\n[yellow]⚠ El artefacto no coincide con el último switch registrado "
                          "(¿editado fuera de poolswitch?)[/yellow]")


@app.command()
def history(
    ctx: typer.Context,
    limit: int = typer.Option(10, "--limit", "-n", help="Número de intentos a mostrar"),
):
    """Muestra los intentos de switch más recientes."""
    settings = _settings(ctx)
    entries = SwitchStateStore(settings.state_dir).history(limit)
    if not entries:
        console.print("[yellow]No hay switches registrados.[/yellow]")
        return
    table = Table(title="Historial de switches", show_header=True, header_style="bold cyan")
    table.add_column("Fecha", style="dim")
    table.add_column("Pool", style="cyan")
    table.add_column("Modo", style="green")
    table.add_column("Resultado")
    table.add_column("Motivo", style="white")
    for e in entries:
        outcome = "[green]✔ applied[/green]" if e.get("outcome") == "applied" else f"[red]✖ {e.get('error')}[/red]"
        table.add_row(
            str(e.get("at") or ""),
            str(e.get("pool") or "—"),
            str(e.get("mode") or "—"),
            outcome,
            str(e.get("reason") or ""),
        )
    console.print(table)


@app.command("probe")
def probe_cmd(
    ctx: typer.Context,
    url: Optional[str] = typer.Option(None, "--url", help="URL a verificar (default: health del proxy local)"),
    pools: bool = typer.Option(False, "--pools", help="Verificar también cada pool directamente"),
    timeout: int = typer.Option(5, "--timeout", help="Timeout en segundos"),
):
    """Verifica el health a través del proxy y muestra qué pool respondió."""
    settings = _settings(ctx)
    options = settings.options
    targets = [("proxy", url or f"http://127.0.0.1:{options.listen_port}{options.health_path}")]
    if pools:
        for p in settings.registry:
            targets.append((p.name.value, f"http://{p.address}{options.health_path}"))

    table = Table(title="Probe", show_header=True, header_style="bold cyan")
    table.add_column("Destino", style="cyan")
    table.add_column("URL", style="dim")
    table.add_column("Estado")
    table.add_column("X-App-Pool", style="green")
    table.add_column("X-Release-Id", style="yellow")
    table.add_column("Tiempo", style="dim")
    proxy_up = True
    for target, target_url in targets:
        r = probe(target_url, timeout=timeout)
        if target == "proxy":
            proxy_up = r["status"] == "up"
        table.add_row(
            target,
            target_url,
            format_probe_status(r),
            r.get("pool") or "—",
            r.get("release") or "—",
            f"{r['response_time']}s" if r.get("response_time") is not None else "—",
        )
    console.print(table)
    if not proxy_up:
        raise typer.Exit(1)


@app.command()
def version():
    """Muestra la versión de poolswitch"""
    console.print(Panel.fit(
        "[bold cyan]poolswitch[/bold cyan]\n"
        "[dim]Conmutación blue/green sin downtime detrás de Nginx[/dim]\n\n"
        f"[bold]Versión:[/bold] {__version__}\n"
        "[bold]Pools:[/bold] blue, green",
        border_style="cyan"
    ))


def main():
    # .env del directorio actual antes de leer el entorno
    env_file = find_dotenv(usecwd=True)
    if env_file:
        load_dotenv(env_file)
    app()
