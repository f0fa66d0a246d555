"""
Event endpoint.

- POST /events   Publish an update event to every view, optionally debounced
"""

from fastapi import APIRouter, Depends, Request

from invest_sync.api.deps import get_bus, get_publisher
from invest_sync.events.bus import EventBus
from invest_sync.schemas.common import ValidationErrorResponse
from invest_sync.schemas.events import PublishEventRequest, PublishEventResponse

router = APIRouter()


@router.post(
    "",
    response_model=PublishEventResponse,
    status_code=202,
    summary="Publish an update event",
    responses={422: {"model": ValidationErrorResponse, "description": "Unknown event name"}},
)
async def publish_event(
    body: PublishEventRequest,
    request: Request,
    bus: EventBus = Depends(get_bus),
) -> PublishEventResponse:
    if body.debounce:
        get_publisher(request).publish(body.event_name, body.payload, body.source_tag)
        return PublishEventResponse(
            event_name=body.event_name.value, source_tag=body.source_tag, debounced=True
        )

    event = bus.publish(body.event_name, body.payload, body.source_tag)
    return PublishEventResponse(
        event_name=event.event_name,
        source_tag=event.source_tag,
        timestamp=event.timestamp,
    )
