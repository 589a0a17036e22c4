"""Route handlers for the sync listener."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import TYPE_CHECKING

from starlette.concurrency import run_in_threadpool
from starlette.responses import JSONResponse, Response

from ..errors import ProtocolError, VaultIOError
from .protocol import decode_changes, encode_hashes

if TYPE_CHECKING:
    from starlette.requests import Request

logger = logging.getLogger("vaultsync.sync.routes")


async def health_handler(request: "Request") -> JSONResponse:
    """Liveness probe."""
    service = request.app.state.sync_service
    return JSONResponse({
        "status": "ok",
        "service": "vaultsync",
        "state": service.state.value,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    })


async def hashes_handler(request: "Request") -> Response:
    """Every file in the vault with its digest and base64 content. Read-only."""
    service = request.app.state.sync_service
    client = request.client.host if request.client else "?"

    try:
        records = await run_in_threadpool(service.workspace.collect_records)
    except VaultIOError as e:
        logger.error("Fetch from %s failed: %s", client, e)
        return JSONResponse({"error": str(e), "path": e.path}, status_code=500)

    logger.info("Served %d files to %s", len(records), client, extra={"peer": client})
    return JSONResponse(encode_hashes(records))


async def changes_handler(request: "Request") -> Response:
    """Create or overwrite the posted files, then persist the new baseline."""
    service = request.app.state.sync_service
    client = request.client.host if request.client else "?"

    body = await request.body()
    try:
        changes = decode_changes(body)
    except ProtocolError as e:
        logger.warning("Rejected changes from %s: %s", client, e, extra={"peer": client})
        return JSONResponse({"error": str(e)}, status_code=400)

    try:
        report = await run_in_threadpool(service.accept_changes, changes)
    except VaultIOError as e:
        # Writes landed but the follow-up snapshot could not read the vault
        logger.error("Baseline refresh after changes from %s failed: %s", client, e)
        return JSONResponse({"error": str(e), "path": e.path}, status_code=500)

    if report.failed:
        return JSONResponse(
            {
                "error": f"{len(report.failed)} file(s) could not be written",
                "failed": sorted(report.failed),
            },
            status_code=500,
        )
    return Response(status_code=200)


__all__ = ["changes_handler", "hashes_handler", "health_handler"]
