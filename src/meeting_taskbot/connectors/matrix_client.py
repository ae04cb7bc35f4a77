# src/meeting_taskbot/connectors/matrix_client.py

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Any

from nio import AsyncClient, AsyncClientConfig, LoginResponse

logger = logging.getLogger(__name__)

try:
    import olm  # type: ignore  # noqa: F401

    OLM_AVAILABLE = True
except Exception:
    OLM_AVAILABLE = False


def _session_path(store_dir: Path) -> Path:
    return store_dir / "session.json"


def _load_session(path: Path) -> dict[str, str]:
    val = json.loads(path.read_text("utf-8"))
    if not isinstance(val, dict):
        raise ValueError("Expected JSON object")
    missing = [k for k in ("access_token", "user_id", "device_id") if not val.get(k)]
    if missing:
        raise ValueError(f"session.json is missing {', '.join(missing)}")
    return {k: str(val[k]) for k in ("access_token", "user_id", "device_id")}


def _save_session(path: Path, data: dict[str, Any]) -> None:
    tmp = path.with_suffix(".tmp")
    tmp.write_text(json.dumps(data, ensure_ascii=False), "utf-8")
    os.replace(tmp, path)
    try:
        os.chmod(path, 0o600)
    except OSError:
        pass


async def create_matrix_client(settings) -> AsyncClient | None:
    """
    Create a logged-in Matrix AsyncClient, or None if Matrix is not usable.

    The access token and device id are kept in <matrix_store_path>/session.json
    so restarts reuse the same device. That file holds a credential and lives
    under the gitignored data dir.
    """
    homeserver = (getattr(settings, "matrix_homeserver", "") or "").strip()
    user_id = (getattr(settings, "matrix_user_id", "") or "").strip()
    password = (getattr(settings, "matrix_password", "") or "").strip()
    store_dir = Path(getattr(settings, "matrix_store_path", Path(".local/taskbot/matrix_store")))

    if not homeserver or not user_id:
        logger.error("Matrix is not configured: set TASKBOT_MATRIX_HOMESERVER and TASKBOT_MATRIX_USER_ID")
        return None

    store_dir.mkdir(parents=True, exist_ok=True)
    session_file = _session_path(store_dir)

    encryption_enabled = bool(OLM_AVAILABLE)
    if encryption_enabled:
        logger.info("python-olm detected: E2EE enabled")
    else:
        logger.warning("python-olm not installed: E2EE disabled, encrypted rooms will be unreadable")

    client = AsyncClient(
        homeserver,
        user_id,
        store_path=str(store_dir) if encryption_enabled else None,
        config=AsyncClientConfig(encryption_enabled=encryption_enabled, store_sync_tokens=True),
    )

    if session_file.exists():
        try:
            data = _load_session(session_file)
            client.access_token = data["access_token"]
            client.user_id = data["user_id"]
            client.device_id = data["device_id"]
            if encryption_enabled:
                try:
                    client.load_store()
                except Exception as e:
                    logger.warning("Failed to load E2EE store: %r", e)
            logger.info("Matrix session restored for %s", client.user_id)
            return client
        except Exception as e:
            logger.warning("Failed to restore Matrix session.json, will try password login: %r", e)

    if not password:
        logger.error(
            "Matrix session.json not found and password is not set. "
            "Set TASKBOT_MATRIX_PASSWORD once to bootstrap a session."
        )
        await client.close()
        return None

    device_name = f"{getattr(settings, 'app_name', 'taskbot')} (Python)"
    logger.info("Logging in to Matrix (device_name=%r)...", device_name)
    resp = await client.login(password=password, device_name=device_name)
    if not isinstance(resp, LoginResponse):
        logger.error("Matrix login failed: %r", resp)
        await client.close()
        return None

    try:
        _save_session(
            session_file,
            {"access_token": resp.access_token, "user_id": resp.user_id, "device_id": resp.device_id},
        )
        logger.info("Matrix session saved to %s (user=%s)", session_file, resp.user_id)
    except OSError as e:
        # The client is logged in; the next start will simply log in again.
        logger.warning("Failed to write Matrix session.json (%s): %r", session_file, e)

    return client
