from django.db import migrations, models


class Migration(migrations.Migration):

    dependencies = [
        ("accounts", "0001_initial"),
    ]

    operations = [
        migrations.AddField(
            model_name="account",
            name="connection_count",
            field=models.PositiveIntegerField(
                default=0,
                help_text="Live WebSocket connections currently open for the account",
            ),
        ),
    ]
