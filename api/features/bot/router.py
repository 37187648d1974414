"""Bot Framework messaging endpoint."""
from botbuilder.core import BotFrameworkAdapter
from botbuilder.schema import Activity
from dependency_injector.wiring import Provide, inject
from fastapi import APIRouter, Depends, HTTPException, Request, Response
from fastapi.responses import JSONResponse

from api.features.bot.handler import TimesheetActivityHandler
from di.container import ApplicationContainer

router = APIRouter()


@router.post("/messages")
@inject
async def messages(
    request: Request,
    adapter: BotFrameworkAdapter = Depends(
        Provide[ApplicationContainer.infrastructure.bot_adapter]
    ),
    bot: TimesheetActivityHandler = Depends(
        Provide[ApplicationContainer.services.activity_handler]
    ),
):
    """Hand an incoming Teams activity to the bot."""
    if "application/json" not in request.headers.get("Content-Type", ""):
        raise HTTPException(status_code=415, detail="Expected application/json")

    activity = Activity().deserialize(await request.json())
    auth_header = request.headers.get("Authorization", "")

    try:
        invoke_response = await adapter.process_activity(activity, auth_header, bot.on_turn)
    except PermissionError:
        raise HTTPException(status_code=401, detail="Unauthorized")
    if invoke_response:
        return JSONResponse(content=invoke_response.body, status_code=invoke_response.status)
    return Response(status_code=201)
