from fastapi import APIRouter, HTTPException, Request, Response, status
from pydantic import ValidationError

from api.dependencies.rate_limits import get_limiter
from infrastructure.logging import get_module_logger
from infrastructure.services.dependencies import EngineDep
from modules.reminders.errors import (
    DuplicateTriggerError,
    InvalidScheduleError,
    SettingsNotWritableError,
    TemplateNotFoundError,
    TriggerNotFoundError,
)
from modules.reminders.models import (
    Channel,
    ChannelConfig,
    DoNotDisturbConfig,
    GroupStatsInfo,
    TemplateStatsInfo,
    TriggerStatsInfo,
)
from modules.reminders.schemas import (
    ChannelConfigRequest,
    CreateTriggerRequest,
    ErrorResponse,
    PutTemplateRequest,
    QuietHoursRequest,
    TemplateResponse,
    TriggerResponse,
)

logger = get_module_logger()

router = APIRouter(prefix="/reminders", tags=["Reminders"])
limiter = get_limiter()


NOT_FOUND = {404: {"model": ErrorResponse}}
NOT_WRITABLE = {501: {"model": ErrorResponse}}


def _not_found(exc: Exception) -> HTTPException:
    return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc))


def _not_writable(exc: SettingsNotWritableError) -> HTTPException:
    return HTTPException(status_code=status.HTTP_501_NOT_IMPLEMENTED, detail=str(exc))


@router.post(
    "/triggers",
    response_model=TriggerResponse,
    status_code=status.HTTP_201_CREATED,
)
@limiter.limit("30/minute")
def create_trigger(
    request: Request,  # pylint: disable=unused-argument
    payload: CreateTriggerRequest,
    engine: EngineDep,
):
    """Schedule a new reminder trigger.

    Returns 422 for an invalid schedule expression or timezone and 409 when a
    trigger with the same id is already scheduled.
    """
    try:
        trigger = engine.enqueue_trigger(payload.to_trigger())
    except InvalidScheduleError as e:
        logger.warning(
            "trigger_rejected",
            trigger_id=payload.id,
            schedule_expression=payload.schedule_expression,
            error=str(e),
        )
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(e)
        ) from e
    except DuplicateTriggerError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e)) from e
    return TriggerResponse.from_trigger(trigger)


@router.get(
    "/triggers/{trigger_id}", response_model=TriggerResponse, responses=NOT_FOUND
)
def get_trigger(trigger_id: str, engine: EngineDep):
    try:
        return TriggerResponse.from_trigger(engine.get_trigger(trigger_id))
    except TriggerNotFoundError as e:
        raise _not_found(e) from e


@router.delete("/triggers/{trigger_id}", response_model=TriggerResponse)
def cancel_trigger(trigger_id: str, engine: EngineDep):
    """Stop future fires. In-flight deliveries and pending retries still complete."""
    try:
        return TriggerResponse.from_trigger(engine.cancel_trigger(trigger_id))
    except TriggerNotFoundError as e:
        raise _not_found(e) from e


@router.post("/triggers/{trigger_id}/pause", response_model=TriggerResponse)
def pause_trigger(trigger_id: str, engine: EngineDep):
    try:
        return TriggerResponse.from_trigger(engine.pause_trigger(trigger_id))
    except TriggerNotFoundError as e:
        raise _not_found(e) from e


@router.post("/triggers/{trigger_id}/resume", response_model=TriggerResponse)
def resume_trigger(trigger_id: str, engine: EngineDep):
    try:
        return TriggerResponse.from_trigger(engine.resume_trigger(trigger_id))
    except TriggerNotFoundError as e:
        raise _not_found(e) from e


@router.put(
    "/templates/{template_id}",
    response_model=TemplateResponse,
    responses={422: {"model": ErrorResponse}, **NOT_WRITABLE},
)
def put_template(template_id: str, payload: PutTemplateRequest, engine: EngineDep):
    """Create or replace a template. Later occurrences render with the new content."""
    try:
        template = payload.to_template(template_id)
    except ValidationError as e:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(e)
        ) from e
    try:
        return TemplateResponse.from_template(engine.put_template(template))
    except SettingsNotWritableError as e:
        raise _not_writable(e) from e


@router.get(
    "/templates/{template_id}", response_model=TemplateResponse, responses=NOT_FOUND
)
def get_template(template_id: str, engine: EngineDep):
    try:
        return TemplateResponse.from_template(engine.get_template(template_id))
    except TemplateNotFoundError as e:
        raise _not_found(e) from e


@router.put(
    "/accounts/{account_id}/quiet-hours",
    response_model=DoNotDisturbConfig,
    responses=NOT_WRITABLE,
)
def put_quiet_hours(account_id: str, payload: QuietHoursRequest, engine: EngineDep):
    """Set the account's Do Not Disturb window. ``enabled: false`` keeps it but turns it off."""
    try:
        return engine.put_quiet_hours(payload.to_config(account_id))
    except SettingsNotWritableError as e:
        raise _not_writable(e) from e


@router.get(
    "/accounts/{account_id}/quiet-hours",
    response_model=DoNotDisturbConfig,
    responses=NOT_FOUND,
)
def get_quiet_hours(account_id: str, engine: EngineDep):
    config = engine.get_quiet_hours(account_id)
    if config is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"account {account_id} has no quiet hours",
        )
    return config


@router.delete(
    "/accounts/{account_id}/quiet-hours",
    status_code=status.HTTP_204_NO_CONTENT,
    responses=NOT_WRITABLE,
)
def delete_quiet_hours(account_id: str, engine: EngineDep):
    try:
        engine.clear_quiet_hours(account_id)
    except SettingsNotWritableError as e:
        raise _not_writable(e) from e
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.put(
    "/accounts/{account_id}/channels/{channel}",
    response_model=ChannelConfig,
    responses=NOT_WRITABLE,
)
def put_channel_config(
    account_id: str, channel: Channel, payload: ChannelConfigRequest, engine: EngineDep
):
    """Enable or disable a channel for the account and set its recipient address."""
    try:
        return engine.put_channel_config(payload.to_config(account_id, channel))
    except SettingsNotWritableError as e:
        raise _not_writable(e) from e


@router.get("/accounts/{account_id}/channels/{channel}", response_model=ChannelConfig)
def get_channel_config(account_id: str, channel: Channel, engine: EngineDep):
    """The stored configuration, or the default (in-app on, everything else off)."""
    return engine.get_channel_config(account_id, channel)


# Statistics are all-time counters; unknown ids report zeros.
@router.get("/statistics/templates/{template_id}", response_model=TemplateStatsInfo)
def get_template_statistics(template_id: str, engine: EngineDep):
    return engine.get_statistics(template_id=template_id)


@router.get("/statistics/groups/{group_id}", response_model=GroupStatsInfo)
def get_group_statistics(group_id: str, engine: EngineDep):
    return engine.get_statistics(group_id=group_id)


@router.get("/statistics/triggers/{trigger_id}", response_model=TriggerStatsInfo)
def get_trigger_statistics(trigger_id: str, engine: EngineDep):
    return engine.get_statistics(trigger_id=trigger_id)
