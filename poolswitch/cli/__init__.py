"""CLI de poolswitch (typer). Solo compone comandos; la lógica vive en core y providers."""
