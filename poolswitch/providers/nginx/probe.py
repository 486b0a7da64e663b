"""
Probe de pools vía curl.
Reporta qué pool y release atendieron realmente la request (cabeceras X-App-Pool / X-Release-Id).
"""

import subprocess
import time
from typing import Any, Dict, Optional

from poolswitch.core.render.renderer import POOL_HEADER, PROXY_HEADER, RELEASE_HEADER


def _parse_headers(raw: str) -> Dict[str, str]:
    """Cabeceras de la última respuesta en el dump de curl -D -."""
    headers: Dict[str, str] = {}
    for line in raw.splitlines():
        line = line.strip()
        if line.upper().startswith("HTTP/"):
            headers = {}
            continue
        if ":" in line:
            name, value = line.split(":", 1)
            headers[name.strip().lower()] = value.strip()
    return headers


def probe(url: str, timeout: int = 5) -> Dict[str, Any]:
    """
    Hace una request GET y devuelve quién respondió

    Args:
        url: URL a verificar (ej: http://127.0.0.1/healthz)
        timeout: Timeout total en segundos

    Returns:
        Dict con:
            - status: "up", "down", "timeout", "error"
            - http_code: Código HTTP (si disponible)
            - pool / release / proxy: valores de X-App-Pool, X-Release-Id, X-Proxy
            - response_time: Tiempo de respuesta en segundos
            - error: Mensaje de error (si hay error)
    """
    result: Dict[str, Any] = {
        "url": url,
        "status": "unknown",
        "http_code": None,
        "pool": None,
        "release": None,
        "proxy": None,
        "response_time": None,
        "error": None,
    }
    curl_cmd = [
        "curl",
        "-s",
        "-o", "/dev/null",
        "-D", "-",
        "-w", "\n%{http_code}",
        "--max-time", str(timeout),
        "--connect-timeout", "3",
        url,
    ]
    start_time = time.time()
    try:
        curl_result = subprocess.run(
            curl_cmd,
            capture_output=True,
            text=True,
            timeout=timeout + 2,
        )
    except subprocess.TimeoutExpired:
        result["status"] = "timeout"
        return result
    except FileNotFoundError:
        result["status"] = "error"
        result["error"] = "curl no disponible"
        return result

    result["response_time"] = round(time.time() - start_time, 2)
    if curl_result.returncode == 28:
        result["status"] = "timeout"
        return result
    if curl_result.returncode != 0:
        result["status"] = "down"
        result["error"] = f"curl exit {curl_result.returncode}"
        return result

    raw_headers, _, code = curl_result.stdout.rpartition("\n")
    code = code.strip()
    if not code.isdigit() or code == "000":
        result["status"] = "down"
        result["error"] = "No response"
        return result

    headers = _parse_headers(raw_headers)
    http_code = int(code)
    result["http_code"] = http_code
    result["status"] = "up" if http_code < 500 else "down"
    result["pool"] = headers.get(POOL_HEADER.lower())
    result["release"] = headers.get(RELEASE_HEADER.lower())
    result["proxy"] = headers.get(PROXY_HEADER.lower())
    return result


def format_probe_status(probe_result: Dict[str, Any]) -> str:
    """
    Formatea el resultado del probe para mostrar en tabla

    Returns:
        String con Rich markup (una sola línea)
    """
    status = probe_result.get("status", "unknown")
    http_code: Optional[int] = probe_result.get("http_code")

    if status == "up":
        return f"[green]✅ {http_code}[/green]"
    elif status == "down":
        if http_code:
            return f"[red]❌ {http_code}[/red]"
        return "[red]❌ DOWN[/red]"
    elif status == "timeout":
        return "[yellow]⏱ TIMEOUT[/yellow]"
    elif status == "error":
        error = probe_result.get("error") or "Error"
        return f"[red]⚠ {error}[/red]"
    return "[dim]—[/dim]"
