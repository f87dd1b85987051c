"""
HTTP binding for 'ChatController'.

Every remote procedure is exposed as 'POST /<operationName>' with the
operation's input model as JSON body, e.g. 'POST /sendMessage' with
'{"chatId": "...", "content": "hi", "type": "text"}'. The response body is the
serialized 'OperationResult'. The caller is resolved by the 'AuthProvider'
dependency before the request body reaches the controller; a missing or
invalid identity yields HTTP 401.

On start-up the configured default channel is created if it does not exist;
on shutdown the fan-out scheduler is drained and stopped.
"""

from collections.abc import AsyncIterator, Awaitable, Callable
from contextlib import asynccontextmanager
from typing import Any

from fastapi import Depends, FastAPI, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from chat_toolkit.api.auth.base import AuthProvider
from chat_toolkit.chat_database.controller import (
    AddMemberInput,
    AddMembersInput,
    ChannelRefInput,
    ChatController,
    CreateChannelInput,
    DeviceTokenInput,
    EditUserInput,
    MessageRefInput,
    RegisterDeviceInput,
    RemoveMemberInput,
    RenameChannelInput,
    SendMessageInput,
    SendThreadMessageInput,
    UserNotificationInput,
)
from chat_toolkit.errors import UnauthenticatedError
from chat_toolkit.results import OperationResult

Operation = Callable[[ChatController, str, Any], Awaitable[OperationResult[Any]]]

OPERATIONS: dict[str, tuple[type[BaseModel], Operation]] = {
    "createChannel": (CreateChannelInput, ChatController.create_channel),
    "renameChannel": (RenameChannelInput, ChatController.rename_channel),
    "deactivateChannel": (ChannelRefInput, ChatController.deactivate_channel),
    "addMember": (AddMemberInput, ChatController.add_member),
    "addMembers": (AddMembersInput, ChatController.add_members),
    "removeMember": (RemoveMemberInput, ChatController.remove_member),
    "registerDevice": (RegisterDeviceInput, ChatController.register_device),
    "editUser": (EditUserInput, ChatController.edit_user),
    "unregisterDevice": (DeviceTokenInput, ChatController.unregister_device),
    "sendMessage": (SendMessageInput, ChatController.send_message),
    "sendThreadMessage": (SendThreadMessageInput, ChatController.send_thread_message),
    "deleteMessage": (MessageRefInput, ChatController.delete_message),
    "setAllMessagesAsRead": (ChannelRefInput, ChatController.set_all_messages_as_read),
    "markReadMessageForMember": (MessageRefInput, ChatController.mark_read_message_for_member),
    "setTyping": (ChannelRefInput, ChatController.set_typing),
    "sendNotificationToUser": (UserNotificationInput, ChatController.send_notification_to_user),
}


def _add_operation_route(
    app: FastAPI,
    controller: ChatController,
    auth_provider: AuthProvider,
    name: str,
    input_model: type[BaseModel],
    operation: Operation,
) -> None:
    async def endpoint(body: input_model, caller_id: str = Depends(auth_provider.get_current_user_id)):  # type: ignore[valid-type]
        result = await operation(controller, caller_id, body)
        return result.model_dump(mode="json")

    endpoint.__name__ = name
    app.add_api_route(f"/{name}", endpoint, methods=["POST"])


def create_app(
    controller: ChatController,
    auth_provider: AuthProvider,
    default_channel_name: str | None = None,
) -> FastAPI:
    @asynccontextmanager
    async def lifespan(_: FastAPI) -> AsyncIterator[None]:
        if default_channel_name:
            await controller.ensure_default_channel(default_channel_name)
        yield
        await controller.close()

    app = FastAPI(title="Chat Toolkit", lifespan=lifespan)
    auth_provider.bind_to_app(app)

    @app.exception_handler(UnauthenticatedError)
    async def unauthenticated(_: Request, exc: UnauthenticatedError) -> JSONResponse:
        return JSONResponse(status_code=401, content={"error_code": exc.code, "error": str(exc)})

    for name, (input_model, operation) in OPERATIONS.items():
        _add_operation_route(app, controller, auth_provider, name, input_model, operation)

    @app.post("/getBadgeCount")
    async def get_badge_count(caller_id: str = Depends(auth_provider.get_current_user_id)) -> dict[str, Any]:
        result = await controller.get_badge_count(caller_id)
        return result.model_dump(mode="json")

    return app
