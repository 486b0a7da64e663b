"""
poolswitch: conmutación blue/green sin downtime detrás de un único Nginx.

Paquetes:
- core: lógica pura (pools, render, validación, activación, estado).
- providers: implementaciones concretas del proxy (nginx).
- cli: aplicación typer.
"""

__version__ = "1.0.0"
