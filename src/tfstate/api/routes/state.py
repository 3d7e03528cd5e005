"""Terraform http backend endpoints: state read/write/purge and LOCK/UNLOCK.

Store calls block on I/O, so they run on the threadpool. Lock conflicts are
reported with the holder's lock metadata as the JSON body, which Terraform
shows to the user.
"""

from __future__ import annotations

from typing import Annotated, Optional

import structlog
from fastapi import APIRouter, Depends, Path, Query, Request, Response
from starlette.concurrency import run_in_threadpool

from tfstate.core.exceptions import StateLockedError, StateNotLockedError
from tfstate.core.protocols import IStateStore
from tfstate.core.types import STATE_NAME_PATTERN
from tfstate.models.lock import LockRequest

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/state", tags=["state"])

StateName = Annotated[str, Path(pattern=STATE_NAME_PATTERN)]


def get_store(request: Request) -> IStateStore:
    return request.app.state.store


Store = Annotated[IStateStore, Depends(get_store)]


def _locked_response(status_code: int, exc: StateLockedError) -> Response:
    return Response(content=exc.lock_data or "", status_code=status_code, media_type="application/json")


@router.get("/{name}")
async def get_state(name: StateName, store: Store) -> Response:
    data = await run_in_threadpool(store.get_state, name)
    if data is None:
        return Response(status_code=404)
    return Response(content=data, media_type="application/json")


@router.post("/{name}")
async def update_state(
    name: StateName,
    request: Request,
    store: Store,
    lock_id: Annotated[Optional[str], Query(alias="ID")] = None,
) -> Response:
    """Write the request body as the new state; ``ID`` is the caller's lock ID."""
    body = await request.body()
    if not body:
        return Response(status_code=400)
    try:
        data = body.decode("utf-8")
    except UnicodeDecodeError:
        return Response(status_code=400)

    try:
        await run_in_threadpool(store.update_state, name, data, lock_id or None)
    except StateLockedError as exc:
        logger.info("update_rejected_locked", state=name, lock_id=lock_id)
        return _locked_response(423, exc)
    return Response(status_code=200)


@router.delete("/{name}")
async def purge_state(
    name: StateName,
    store: Store,
    force: Annotated[Optional[str], Query()] = None,
) -> Response:
    """Delete the state; any non-empty ``force`` skips the lock check.

    The value is not parsed: ``?force=false`` and ``?force=0`` also force the
    delete. Only an absent or empty ``force`` honours the lock.
    """
    try:
        await run_in_threadpool(store.delete_state, name, bool(force))
    except StateLockedError:
        logger.info("delete_rejected_locked", state=name)
        return Response(status_code=423)
    return Response(status_code=200)


@router.api_route("/{name}", methods=["LOCK"])
async def lock_state(name: StateName, lock_request: LockRequest, store: Store) -> Response:
    try:
        await run_in_threadpool(store.lock_state, name, lock_request)
    except StateLockedError as exc:
        logger.info("lock_conflict", state=name, lock_id=lock_request.id)
        return _locked_response(409, exc)
    return Response(status_code=200)


@router.api_route("/{name}", methods=["UNLOCK"])
async def unlock_state(name: StateName, lock_request: LockRequest, store: Store) -> Response:
    try:
        await run_in_threadpool(store.unlock_state, name, lock_request)
    except StateLockedError as exc:
        logger.info("unlock_conflict", state=name, lock_id=lock_request.id)
        return _locked_response(423, exc)
    except StateNotLockedError:
        logger.warning("unlock_not_locked", state=name, lock_id=lock_request.id)
        return Response(status_code=409)
    return Response(status_code=200)
