"""
Providers: implementaciones concretas del runtime del proxy.
Importan desde core; el core nunca importa providers.
"""
