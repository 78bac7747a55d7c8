import uuid

import django.db.models.deletion
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="Conversation",
            fields=[
                (
                    "created_at",
                    models.DateTimeField(
                        auto_now_add=True,
                        db_index=True,
                        help_text="Timestamp when this record was created",
                    ),
                ),
                (
                    "updated_at",
                    models.DateTimeField(
                        auto_now=True,
                        help_text="Timestamp when this record was last modified",
                    ),
                ),
                (
                    "id",
                    models.UUIDField(
                        default=uuid.uuid4,
                        editable=False,
                        help_text="Unique identifier for this record",
                        primary_key=True,
                        serialize=False,
                    ),
                ),
                (
                    "participant_lower",
                    models.CharField(
                        help_text="Smaller of the two canonical participant identifiers",
                        max_length=20,
                    ),
                ),
                (
                    "participant_higher",
                    models.CharField(
                        help_text="Larger of the two canonical participant identifiers",
                        max_length=20,
                    ),
                ),
                (
                    "participants",
                    models.JSONField(
                        blank=True,
                        default=list,
                        help_text="Participant display snapshots copied from the identity directory",
                    ),
                ),
                (
                    "last_message_text",
                    models.TextField(
                        blank=True,
                        default="",
                        help_text="Text of the newest message in the log",
                    ),
                ),
                (
                    "last_message_at",
                    models.DateTimeField(
                        blank=True,
                        help_text="Timestamp of the newest message in the log",
                        null=True,
                    ),
                ),
                (
                    "last_message_sender",
                    models.CharField(
                        blank=True,
                        default="",
                        help_text="Identifier of the newest message's sender",
                        max_length=20,
                    ),
                ),
                (
                    "last_message_status",
                    models.CharField(
                        blank=True,
                        choices=[
                            ("sent", "Sent"),
                            ("delivered", "Delivered"),
                            ("read", "Read"),
                            ("failed", "Failed"),
                        ],
                        default="",
                        help_text="Delivery status of the newest message",
                        max_length=10,
                    ),
                ),
                (
                    "unread_count_lower",
                    models.PositiveIntegerField(
                        default=0,
                        help_text="Unread messages addressed to participant_lower",
                    ),
                ),
                (
                    "unread_count_higher",
                    models.PositiveIntegerField(
                        default=0,
                        help_text="Unread messages addressed to participant_higher",
                    ),
                ),
                (
                    "is_archived",
                    models.BooleanField(
                        default=False,
                        help_text="Soft-deleted conversations are hidden from the list",
                    ),
                ),
                (
                    "archived_at",
                    models.DateTimeField(
                        blank=True,
                        help_text="When the conversation was archived",
                        null=True,
                    ),
                ),
            ],
            options={
                "db_table": "chat_conversation",
                "ordering": ["-last_message_at", "-created_at"],
                "indexes": [
                    models.Index(
                        condition=models.Q(("is_archived", False)),
                        fields=["participant_lower", "-last_message_at"],
                        name="chat_conv_lower_recent_idx",
                    ),
                    models.Index(
                        condition=models.Q(("is_archived", False)),
                        fields=["participant_higher", "-last_message_at"],
                        name="chat_conv_higher_recent_idx",
                    ),
                ],
                "constraints": [
                    models.UniqueConstraint(
                        fields=("participant_lower", "participant_higher"),
                        name="unique_conversation_participant_pair",
                    ),
                    models.CheckConstraint(
                        condition=models.Q(
                            ("participant_lower__lt", models.F("participant_higher"))
                        ),
                        name="participant_lower_less_than_higher",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="Message",
            fields=[
                (
                    "created_at",
                    models.DateTimeField(
                        auto_now_add=True,
                        db_index=True,
                        help_text="Timestamp when this record was created",
                    ),
                ),
                (
                    "updated_at",
                    models.DateTimeField(
                        auto_now=True,
                        help_text="Timestamp when this record was last modified",
                    ),
                ),
                (
                    "id",
                    models.UUIDField(
                        default=uuid.uuid4,
                        editable=False,
                        help_text="Unique identifier for this record",
                        primary_key=True,
                        serialize=False,
                    ),
                ),
                (
                    "sender",
                    models.CharField(
                        help_text="Canonical identifier of the sender", max_length=20
                    ),
                ),
                (
                    "recipient",
                    models.CharField(
                        help_text="Canonical identifier of the recipient", max_length=20
                    ),
                ),
                (
                    "sender_name",
                    models.CharField(
                        blank=True,
                        default="",
                        help_text="Sender display name when the message was sent",
                        max_length=150,
                    ),
                ),
                ("text", models.TextField(help_text="Message body")),
                (
                    "message_type",
                    models.CharField(
                        choices=[
                            ("text", "Text"),
                            ("image", "Image"),
                            ("document", "Document"),
                            ("audio", "Audio"),
                            ("video", "Video"),
                        ],
                        default="text",
                        help_text="Kind of message content",
                        max_length=10,
                    ),
                ),
                (
                    "timestamp",
                    models.DateTimeField(
                        help_text="Send time, strictly increasing within the conversation"
                    ),
                ),
                (
                    "status",
                    models.CharField(
                        choices=[
                            ("sent", "Sent"),
                            ("delivered", "Delivered"),
                            ("read", "Read"),
                            ("failed", "Failed"),
                        ],
                        default="sent",
                        help_text="Delivery status; only moves forward",
                        max_length=10,
                    ),
                ),
                (
                    "conversation",
                    models.ForeignKey(
                        help_text="Conversation this message belongs to",
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="messages",
                        to="chat.conversation",
                    ),
                ),
            ],
            options={
                "db_table": "chat_message",
                "ordering": ["timestamp", "id"],
                "indexes": [
                    models.Index(
                        fields=["conversation", "timestamp"],
                        name="chat_msg_conv_ts_idx",
                    ),
                    models.Index(
                        fields=["conversation", "recipient", "status"],
                        name="chat_msg_conv_unread_idx",
                    ),
                ],
            },
        ),
    ]
