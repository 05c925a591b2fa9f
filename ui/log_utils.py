"""Shared logging utilities."""

import json
import shutil
from concurrent.futures import ThreadPoolExecutor
from datetime import UTC, datetime
from pathlib import Path
from typing import Any
from uuid import uuid4

LOG_ROOT = Path.cwd() / "logs"
CLI_LOG_FILE = LOG_ROOT / "proxy.log"

SECRET_BODY_FIELDS = frozenset({"password", "adminsecretkey", "token"})

# File writes are handed to one worker thread so request handling never waits on disk.
_log_executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="proxy-log")


def write_incoming_log(
    method: str,
    path: str,
    headers: dict[str, str],
    body: Any,
    *,
    log_root: Path = LOG_ROOT,
) -> Path:
    """Write a single incoming request log entry."""
    payload = {
        "timestamp": _utc_now(),
        "method": method,
        "path": path,
        "headers": _redact_headers(headers),
        "body": _redact_body(body),
    }
    folder = log_root / "incoming" / _path_folder(path)
    _cleanup_session_folder(folder)
    return _write_json(folder, payload)


def write_backend_log(
    route: str,
    method: str,
    path: str,
    status: int,
    *,
    outcome: str,
    elapsed_ms: float,
    log_root: Path = LOG_ROOT,
) -> Path:
    """Write a single forwarded request log entry."""
    payload = {
        "timestamp": _utc_now(),
        "route": route,
        "method": method,
        "path": path,
        "status": status,
        "outcome": outcome,
        "elapsed_ms": round(elapsed_ms, 1),
    }
    folder = log_root / "backend" / route
    _cleanup_session_folder(folder)
    return _write_json(folder, payload)


def write_cli_log(
    level: str,
    message: str,
    **extra: Any,
) -> None:
    """Append a line to the rolling CLI log file."""
    CLI_LOG_FILE.parent.mkdir(parents=True, exist_ok=True)
    timestamp = datetime.now(UTC).strftime("%Y-%m-%d %H:%M:%S")
    extra_str = " ".join(f"{k}={v}" for k, v in extra.items()) if extra else ""
    line = f"[{timestamp}] {level}: {message}"
    if extra_str:
        line += f" {extra_str}"
    line += "\n"
    with CLI_LOG_FILE.open("a") as f:
        f.write(line)


def submit_log(fn, *args: Any, **kwargs: Any) -> None:
    """Run a log writer on the background executor."""
    _log_executor.submit(fn, *args, **kwargs)


def shutdown_log_executor() -> None:
    """Flush pending log writes."""
    _log_executor.shutdown(wait=True)


def clear_logs(log_root: Path = LOG_ROOT) -> None:
    """Remove per-request logs from a previous run."""
    for name in ("incoming", "backend"):
        shutil.rmtree(log_root / name, ignore_errors=True)


def _write_json(folder: Path, payload: dict[str, Any]) -> Path:
    """Write payload to a unique JSON file in the given folder."""
    folder.mkdir(parents=True, exist_ok=True)
    timestamp = datetime.now(UTC).strftime("%Y%m%dT%H%M%S.%fZ")
    file_path = folder / f"{timestamp}_{uuid4().hex}.json"
    file_path.write_text(json.dumps(payload, indent=2, default=str))
    return file_path


def _cleanup_session_folder(folder: Path) -> int:
    """Delete all but the most recent log file in a folder."""
    if not folder.exists():
        return 0

    files = sorted(folder.glob("*.json"))
    deleted = 0
    for old_file in files[:-1]:
        try:
            old_file.unlink()
            deleted += 1
        except OSError:
            pass
    return deleted


def _path_folder(path: str) -> str:
    return path.strip("/").replace("/", "_") or "root"


def _redact_headers(headers: dict[str, str]) -> dict[str, str]:
    """Redact sensitive headers."""
    redacted = {}
    for key, value in headers.items():
        lower = key.lower()
        if "authorization" in lower or "cookie" in lower or "key" in lower:
            redacted[key] = _mask(value)
        else:
            redacted[key] = value
    return redacted


def _redact_body(body: Any) -> Any:
    """Mask secret fields such as passwords in a JSON body."""
    if isinstance(body, dict):
        return {
            key: "***" if key.lower() in SECRET_BODY_FIELDS else _redact_body(value)
            for key, value in body.items()
        }
    if isinstance(body, list):
        return [_redact_body(item) for item in body]
    return body


def _mask(value: str) -> str:
    if len(value) <= 10:
        return "***"
    return value[:6] + "..." + value[-4:]


def _utc_now() -> str:
    return datetime.now(UTC).isoformat()
