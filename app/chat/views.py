"""
ViewSets for chat API.

This module provides REST API endpoints for the chat system:
- ConversationViewSet: Conversation directory, message history, read state
- SendMessageView: Send a message by recipient identifier

URL Structure:
    /api/v1/chat/conversations/                   GET, POST
    /api/v1/chat/conversations/{id}/              GET, DELETE (?mode=soft|hard)
    /api/v1/chat/conversations/{id}/messages/     GET (?page=&page_size=)
    /api/v1/chat/conversations/{id}/read/         POST
    /api/v1/chat/conversations/{id}/delivered/    POST
    /api/v1/chat/conversations/{id}/restore/      POST
    /api/v1/chat/messages/                        POST

Design Decisions:
    - The authenticated account is always the acting participant; clients
      never pass their own identifier
    - All operations go through the service layer
    - Service failures are raised as core.exceptions and rendered by the
      project exception handler, so every error body has the same shape
"""

from __future__ import annotations

from drf_spectacular.types import OpenApiTypes
from drf_spectacular.utils import (
    OpenApiParameter,
    OpenApiResponse,
    extend_schema,
    extend_schema_view,
)
from rest_framework import status, viewsets
from rest_framework.decorators import action
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from accounts.directory import IdentityDirectory
from chat.serializers import (
    ConversationCreateSerializer,
    ConversationDeleteQuerySerializer,
    ConversationSerializer,
    MessageCreateSerializer,
    MessagePageQuerySerializer,
    MessageSerializer,
)
from chat.services import ConversationService, MessageService, ReadStateService
from core.exceptions import NotFoundError, ValidationError

NOT_FOUND_CODES = {"PARTICIPANT_NOT_FOUND", "INVALID_CONVERSATION"}


def raise_for_failure(result):
    """Raise the application error matching a failed ServiceResult."""
    if result:
        return
    if result.error_code in NOT_FOUND_CODES:
        raise NotFoundError(result.error, error_code=result.error_code)
    raise ValidationError(
        result.error,
        error_code=result.error_code or "VALIDATION_ERROR",
        details={"errors": result.errors} if result.errors else None,
    )


@extend_schema_view(
    list=extend_schema(
        operation_id="list_conversations",
        summary="List conversations",
        description="Non-archived conversations with at least one message, newest activity first.",
        tags=["Chat - Conversations"],
    ),
    retrieve=extend_schema(
        operation_id="get_conversation",
        summary="Get conversation",
        tags=["Chat - Conversations"],
    ),
)
class ConversationViewSet(viewsets.GenericViewSet):
    """
    ViewSet for conversation operations.

    list:
        Conversations of the current account with viewer-relative unread count.

    create:
        Create-or-get the conversation with another participant.

    retrieve:
        One conversation the account participates in.

    destroy:
        Archive (mode=soft) or permanently delete (mode=hard).

    messages:
        Reverse-chronological page of the message log.

    read / delivered:
        Advance inbound message status.

    restore:
        Un-archive a soft-deleted conversation.
    """

    permission_classes = [IsAuthenticated]
    serializer_class = ConversationSerializer

    @property
    def identifier(self) -> str:
        return self.request.user.phone_number

    def get_queryset(self):
        return ConversationService.list_for(self.identifier)

    def get_serializer_context(self):
        context = super().get_serializer_context()
        if self.request.user.is_authenticated:
            context["viewer"] = self.identifier
        return context

    def get_object(self):
        result = ConversationService.get_for_participant(self.kwargs["pk"], self.identifier)
        raise_for_failure(result)
        return result.data

    def list(self, request):
        queryset = self.get_queryset()
        page = self.paginate_queryset(queryset)
        conversations = page if page is not None else list(queryset)

        # One presence lookup for the whole page
        context = self.get_serializer_context()
        context["presence"] = IdentityDirectory.presence_for(
            identifier
            for conversation in conversations
            for identifier in conversation.participant_identifiers
        )
        serializer = self.get_serializer(conversations, many=True, context=context)

        if page is not None:
            return self.get_paginated_response(serializer.data)
        return Response(serializer.data)

    @extend_schema(
        operation_id="create_conversation",
        summary="Create or get conversation",
        description="Returns the pair's existing conversation (200) or creates it (201).",
        tags=["Chat - Conversations"],
        request=ConversationCreateSerializer,
        responses={
            200: ConversationSerializer,
            201: ConversationSerializer,
            404: OpenApiResponse(description="Participant not found"),
        },
    )
    def create(self, request):
        serializer = ConversationCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        result = ConversationService.resolve(
            self.identifier,
            serializer.validated_data["participant"],
        )
        raise_for_failure(result)

        resolution = result.data
        output = self.get_serializer(resolution.conversation)
        return Response(
            output.data,
            status=status.HTTP_201_CREATED if resolution.created else status.HTTP_200_OK,
        )

    def retrieve(self, request, pk=None):
        serializer = self.get_serializer(self.get_object())
        return Response(serializer.data)

    @extend_schema(
        operation_id="delete_conversation",
        summary="Delete conversation",
        tags=["Chat - Conversations"],
        parameters=[
            OpenApiParameter(
                "mode",
                OpenApiTypes.STR,
                OpenApiParameter.QUERY,
                enum=["soft", "hard"],
                description="soft archives, hard deletes with all messages",
            )
        ],
        responses={204: None},
    )
    def destroy(self, request, pk=None):
        query = ConversationDeleteQuerySerializer(data=request.query_params)
        query.is_valid(raise_exception=True)

        result = ConversationService.delete_conversation(
            pk,
            self.identifier,
            mode=query.validated_data["mode"],
        )
        raise_for_failure(result)
        return Response(status=status.HTTP_204_NO_CONTENT)

    @extend_schema(
        operation_id="list_conversation_messages",
        summary="List messages",
        tags=["Chat - Messages"],
        parameters=[MessagePageQuerySerializer],
        responses={200: MessageSerializer(many=True)},
    )
    @action(detail=True, methods=["get"])
    def messages(self, request, pk=None):
        query = MessagePageQuerySerializer(data=request.query_params)
        query.is_valid(raise_exception=True)

        result = MessageService.get_messages(
            pk,
            self.identifier,
            page=query.validated_data["page"],
            page_size=query.validated_data["page_size"],
        )
        raise_for_failure(result)

        return Response(
            {
                "messages": MessageSerializer(result.data.messages, many=True).data,
                "pagination": result.data.pagination,
            }
        )

    @extend_schema(
        operation_id="mark_conversation_read",
        summary="Mark conversation as read",
        tags=["Chat - Conversations"],
        request=None,
    )
    @action(detail=True, methods=["post"])
    def read(self, request, pk=None):
        result = ReadStateService.mark_read(pk, self.identifier)
        raise_for_failure(result)
        return self._read_receipt_response(result.data)

    @extend_schema(
        operation_id="mark_conversation_delivered",
        summary="Mark conversation as delivered",
        tags=["Chat - Conversations"],
        request=None,
    )
    @action(detail=True, methods=["post"])
    def delivered(self, request, pk=None):
        result = ReadStateService.mark_delivered(pk, self.identifier)
        raise_for_failure(result)
        return self._read_receipt_response(result.data)

    @extend_schema(
        operation_id="restore_conversation",
        summary="Restore archived conversation",
        tags=["Chat - Conversations"],
        request=None,
        responses={200: ConversationSerializer},
    )
    @action(detail=True, methods=["post"])
    def restore(self, request, pk=None):
        result = ConversationService.restore_conversation(pk, self.identifier)
        raise_for_failure(result)
        return Response(self.get_serializer(result.data).data)

    def _read_receipt_response(self, receipt):
        return Response(
            {
                "updated_count": receipt.updated_count,
                "conversation": self.get_serializer(receipt.conversation).data,
            }
        )


class SendMessageView(APIView):
    """Send a message, creating the conversation on first contact."""

    permission_classes = [IsAuthenticated]

    @extend_schema(
        operation_id="send_message",
        summary="Send message",
        tags=["Chat - Messages"],
        request=MessageCreateSerializer,
        responses={
            201: MessageSerializer,
            400: OpenApiResponse(description="Validation error"),
            404: OpenApiResponse(description="Recipient not found"),
        },
    )
    def post(self, request):
        serializer = MessageCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        result = MessageService.send_message(
            sender=request.user.phone_number,
            recipient=data["to"],
            text=data["text"],
            message_type=data["type"],
        )
        raise_for_failure(result)

        receipt = result.data
        return Response(
            {
                "message": MessageSerializer(receipt.message).data,
                "conversation": ConversationSerializer(
                    receipt.conversation,
                    context={"viewer": request.user.phone_number},
                ).data,
            },
            status=status.HTTP_201_CREATED,
        )
