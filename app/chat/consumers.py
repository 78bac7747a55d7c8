"""
WebSocket consumer for live chat updates.

Consumers:
    ChatConsumer: One connection per client; joins conversation rooms on
        demand and always listens on the account's own group

Authentication:
    JWTAuthMiddleware attaches the account to self.scope["user"].
    Anonymous connections are closed with 4001.

Channel Groups:
    account_<identifier>: joined on connect, receives every event of every
        conversation the account participates in
    conversation_<id>: joined with a "join" frame (or by connecting to
        ws/chat/<id>/), left with "leave" or on disconnect

Frames from client:
    {"type": "join", "conversation_id": "..."}
    {"type": "leave", "conversation_id": "..."}
    {"type": "message", "to": "...", "text": "...", "message_type": "text", "client_id": "..."}
    {"type": "read", "conversation_id": "..."}
    {"type": "typing", "conversation_id": "...", "is_typing": true}

Frames to client:
    {"type": "<event name>", "event_id": "...", "data": {...}}  (see chat.events)
    {"type": "joined" | "left", "conversation_id": "..."}
    {"type": "message:sent", "client_id": "...", "data": {...}}
    {"type": "typing", "conversation_id": "...", "from": "...", "is_typing": bool}
    {"type": "error", "error": "...", "error_code": "...", "client_id": "..."}
"""

from __future__ import annotations

import logging

from channels.db import database_sync_to_async
from channels.generic.websocket import AsyncJsonWebsocketConsumer

from chat.constants import CLOSE_CODES, FANOUT_CONFIG, MESSAGE_CONFIG
from chat.events import account_group_name, conversation_group_name, to_primitive
from chat.serializers import MessageSerializer
from chat.services import (
    ConversationService,
    MessageService,
    PresenceService,
    ReadStateService,
)

logger = logging.getLogger(__name__)


class ChatConsumer(AsyncJsonWebsocketConsumer):
    """
    WebSocket consumer for one client connection.

    Attributes:
        identifier: Canonical identifier of the connected account
        account_group: The account's own group name
        rooms: Conversation ids whose room this connection joined
    """

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.identifier: str | None = None
        self.account_group: str | None = None
        self.rooms: set[str] = set()

    async def connect(self):
        user = self.scope.get("user")
        if user is None or not user.is_authenticated:
            logger.warning("Rejected unauthenticated WebSocket connection")
            await self.close(code=CLOSE_CODES.NOT_AUTHENTICATED)
            return

        self.identifier = user.phone_number

        conversation_id = self.scope.get("url_route", {}).get("kwargs", {}).get("conversation_id")
        if conversation_id is not None:
            conversation_id = str(conversation_id)
            if not await self._can_join(conversation_id):
                logger.warning(
                    f"{self.identifier} tried to open conversation {conversation_id}"
                )
                await self.close(code=CLOSE_CODES.NOT_FOUND)
                return

        self.account_group = account_group_name(self.identifier)
        await self.channel_layer.group_add(self.account_group, self.channel_name)
        await self._set_presence(True)
        # Browsers drop the socket unless the offered "jwt" subprotocol is echoed
        subprotocol = "jwt" if "jwt" in self.scope.get("subprotocols", []) else None
        await self.accept(subprotocol=subprotocol)
        logger.info(f"{self.identifier} connected")

        if conversation_id is not None:
            await self._join_room(conversation_id)

    async def disconnect(self, close_code):
        if self.identifier is None:
            return

        for conversation_id in list(self.rooms):
            await self.channel_layer.group_discard(
                conversation_group_name(conversation_id),
                self.channel_name,
            )
        self.rooms.clear()

        if self.account_group:
            await self.channel_layer.group_discard(self.account_group, self.channel_name)
            await self._set_presence(False)

        logger.info(f"{self.identifier} disconnected ({close_code})")

    async def receive_json(self, content, **kwargs):
        if not isinstance(content, dict):
            await self._send_error("Frames must be JSON objects", "VALIDATION_ERROR")
            return

        frame_type = content.get("type")
        handler = {
            "join": self._handle_join,
            "leave": self._handle_leave,
            "message": self._handle_message,
            "read": self._handle_read,
            "typing": self._handle_typing,
        }.get(frame_type)

        if handler is None:
            await self._send_error(
                f"Unknown frame type: {frame_type}",
                "UNKNOWN_TYPE",
                client_id=content.get("client_id"),
            )
            return
        await handler(content)

    # -------------------------------------------------------------------------
    # Client frames
    # -------------------------------------------------------------------------

    async def _handle_join(self, content):
        conversation_id = str(content.get("conversation_id") or "")
        if not await self._can_join(conversation_id):
            await self._send_error(
                "Conversation not found",
                "INVALID_CONVERSATION",
                client_id=content.get("client_id"),
            )
            return
        await self._join_room(conversation_id)

    async def _handle_leave(self, content):
        conversation_id = str(content.get("conversation_id") or "")
        if conversation_id in self.rooms:
            await self.channel_layer.group_discard(
                conversation_group_name(conversation_id),
                self.channel_name,
            )
            self.rooms.discard(conversation_id)
        await self.send_json({"type": "left", "conversation_id": conversation_id})

    async def _handle_message(self, content):
        client_id = content.get("client_id")
        result = await self._send_message(
            recipient=content.get("to"),
            text=content.get("text"),
            message_type=content.get("message_type") or MESSAGE_CONFIG.DEFAULT_TYPE,
        )
        if not result["success"]:
            await self._send_error(result["error"], result["error_code"], client_id=client_id)
            return

        await self.send_json(
            {"type": "message:sent", "client_id": client_id, "data": result["data"]}
        )

    async def _handle_read(self, content):
        # Failed reads are dropped; the client retries on its next natural trigger
        await self._mark_read(str(content.get("conversation_id") or ""))

    async def _handle_typing(self, content):
        conversation_id = str(content.get("conversation_id") or "")
        if conversation_id not in self.rooms:
            return

        await self.channel_layer.group_send(
            conversation_group_name(conversation_id),
            {
                "type": FANOUT_CONFIG.TYPING_HANDLER_TYPE,
                "conversation_id": conversation_id,
                "identifier": self.identifier,
                "is_typing": bool(content.get("is_typing", False)),
            },
        )

    # -------------------------------------------------------------------------
    # Channel layer handlers
    # -------------------------------------------------------------------------

    async def chat_event(self, event):
        """Forward a published chat event to the client."""
        await self.send_json(
            {
                "type": event["event"],
                "event_id": event["event_id"],
                "data": event["payload"],
            }
        )

    async def chat_typing(self, event):
        if event["identifier"] == self.identifier:
            return

        await self.send_json(
            {
                "type": "typing",
                "conversation_id": event["conversation_id"],
                "from": event["identifier"],
                "is_typing": event["is_typing"],
            }
        )

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    async def _join_room(self, conversation_id: str):
        await self.channel_layer.group_add(
            conversation_group_name(conversation_id),
            self.channel_name,
        )
        self.rooms.add(conversation_id)
        # Opening the conversation delivers everything addressed to us
        await self._mark_delivered(conversation_id)
        await self.send_json({"type": "joined", "conversation_id": conversation_id})

    async def _send_error(self, error: str, error_code: str, client_id=None):
        await self.send_json(
            {
                "type": "error",
                "error": error,
                "error_code": error_code,
                "client_id": client_id,
            }
        )

    @database_sync_to_async
    def _can_join(self, conversation_id: str) -> bool:
        return ConversationService.get_for_participant(conversation_id, self.identifier).success

    @database_sync_to_async
    def _set_presence(self, online: bool) -> None:
        PresenceService.update(self.identifier, online)

    @database_sync_to_async
    def _mark_delivered(self, conversation_id: str) -> None:
        ReadStateService.mark_delivered(conversation_id, self.identifier)

    @database_sync_to_async
    def _mark_read(self, conversation_id: str) -> None:
        result = ReadStateService.mark_read(conversation_id, self.identifier)
        if not result:
            logger.debug(f"Read for {conversation_id} by {self.identifier} ignored: {result.error_code}")

    @database_sync_to_async
    def _send_message(self, recipient, text, message_type: str) -> dict:
        result = MessageService.send_message(
            sender=self.identifier,
            recipient=recipient,
            text=text,
            message_type=message_type,
        )
        if not result:
            return {"success": False, "error": result.error, "error_code": result.error_code}

        receipt = result.data
        return {
            "success": True,
            "data": {
                "message": to_primitive(MessageSerializer(receipt.message).data),
                "conversation_id": str(receipt.conversation_id),
            },
        }
