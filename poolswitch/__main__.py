"""
Punto de entrada: python -m poolswitch

Delega a la misma app que el script de consola `poolswitch`.
"""

from poolswitch.cli.app import main

if __name__ == "__main__":
    main()
