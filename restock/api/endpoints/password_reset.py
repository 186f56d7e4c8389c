"""
    Password Reset Flow Endpoints
    Each browser client opens a flow and drives it step by step. The flow keeps
    the session state; these endpoints only feed it input and return its view.
    Endpoints:
    - POST /: Opens a flow and returns its id.
    - GET /{flow_id}: Returns the current session view.
    - POST /{flow_id}/email: Submits the email and requests a verification code.
    - POST /{flow_id}/code: Submits the verification code.
    - POST /{flow_id}/password: Submits the new password and its confirmation.
    - POST /{flow_id}/back: Returns to the previous step, keeping entered data.
    - POST /{flow_id}/close: Resets the flow to a fresh session.
    - POST /{flow_id}/acknowledge: Ends a completed flow and discards it.
    - DELETE /{flow_id}: Discards the flow.
    Step failures are reported in the session's ``error`` with status 200.
    Acting on the wrong step, or while a request is in flight, returns 409.
    Flows left idle are evicted after RESET_FLOW_IDLE_TTL_SEC.
"""
from fastapi import APIRouter, Depends, HTTPException, Request, Response, status
from redis.asyncio import Redis

from restock.api.dependencies import get_flow_registry, get_redis
from restock.core.config import settings
from restock.core.exceptions import FlowStateError
from restock.core.reset_flow import PasswordResetFlow, ResetStep
from restock.helpers.getters import getClientIp
from restock.helpers.rate_limit import allow
from restock.schemas.password_reset import (
    ResetEmailIn,
    ResetCodeIn,
    ResetPasswordIn,
    ResetSessionOut,
    ResetFlowOut,
)
from restock.services.flow_registry import FlowRegistry

router = APIRouter()


def _session_view(flow: PasswordResetFlow) -> ResetSessionOut:
    return ResetSessionOut.model_validate(flow.session)


def get_flow(flow_id: str, registry: FlowRegistry = Depends(get_flow_registry)) -> PasswordResetFlow:
    flow = registry.get(flow_id)
    if flow is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Password reset flow not found")
    return flow


@router.post("", response_model=ResetFlowOut, status_code=status.HTTP_201_CREATED)
async def open_flow(registry: FlowRegistry = Depends(get_flow_registry)):
    flow_id, flow = registry.open()
    return ResetFlowOut(flow_id=flow_id, session=_session_view(flow))


@router.get("/{flow_id}", response_model=ResetSessionOut)
async def read_flow(flow: PasswordResetFlow = Depends(get_flow)):
    return _session_view(flow)


@router.post("/{flow_id}/email", response_model=ResetSessionOut)
async def submit_email(
    payload: ResetEmailIn,
    request: Request,
    flow: PasswordResetFlow = Depends(get_flow),
    redis: Redis = Depends(get_redis),
):
    if not await allow(redis, "fp:start", payload.email, getClientIp(request),
                       max_attempts=settings.RESET_START_MAX_ATTEMPTS,
                       window_sec=settings.RESET_RATE_WINDOW_SEC):
        raise HTTPException(status_code=status.HTTP_429_TOO_MANY_REQUESTS, detail="Too many requests")

    try:
        flow.require_step(ResetStep.EMAIL)
        flow.set_email(payload.email)
        await flow.submit_email()
    except FlowStateError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=e.message)
    return _session_view(flow)


@router.post("/{flow_id}/code", response_model=ResetSessionOut)
async def submit_code(
    payload: ResetCodeIn,
    request: Request,
    flow: PasswordResetFlow = Depends(get_flow),
    redis: Redis = Depends(get_redis),
):
    if not await allow(redis, "fp:verify", flow.session.email, getClientIp(request),
                       max_attempts=settings.RESET_VERIFY_MAX_ATTEMPTS,
                       window_sec=settings.RESET_RATE_WINDOW_SEC):
        raise HTTPException(status_code=status.HTTP_429_TOO_MANY_REQUESTS, detail="Too many attempts")

    try:
        flow.require_step(ResetStep.CODE)
        if not flow.set_code(payload.code):
            raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
                                detail=f"Code must be at most {flow.code_length} digits")
        await flow.submit_code()
    except FlowStateError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=e.message)
    return _session_view(flow)


@router.post("/{flow_id}/password", response_model=ResetSessionOut)
async def submit_password(payload: ResetPasswordIn, flow: PasswordResetFlow = Depends(get_flow)):
    try:
        flow.require_step(ResetStep.PASSWORD)
        flow.set_passwords(payload.new_password, payload.confirm_password)
        await flow.submit_password()
    except FlowStateError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=e.message)
    return _session_view(flow)


@router.post("/{flow_id}/back", response_model=ResetSessionOut)
async def go_back(flow: PasswordResetFlow = Depends(get_flow)):
    try:
        flow.back()
    except FlowStateError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=e.message)
    return _session_view(flow)


@router.post("/{flow_id}/close", response_model=ResetSessionOut)
async def close_flow(flow: PasswordResetFlow = Depends(get_flow)):
    flow.close()
    return _session_view(flow)


@router.post("/{flow_id}/acknowledge", status_code=status.HTTP_204_NO_CONTENT)
async def acknowledge_flow(
    flow_id: str,
    flow: PasswordResetFlow = Depends(get_flow),
    registry: FlowRegistry = Depends(get_flow_registry),
):
    try:
        flow.acknowledge()
    except FlowStateError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=e.message)
    registry.discard(flow_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.delete("/{flow_id}", status_code=status.HTTP_204_NO_CONTENT)
async def discard_flow(flow_id: str, registry: FlowRegistry = Depends(get_flow_registry)):
    if not registry.discard(flow_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Password reset flow not found")
    return Response(status_code=status.HTTP_204_NO_CONTENT)
