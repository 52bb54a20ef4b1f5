import django.db.models.deletion
from django.db import migrations, models


class Migration(migrations.Migration):

    dependencies = [
        ("accounts", "0001_initial"),
        ("inventory", "0001_initial"),
    ]

    operations = [
        migrations.AddField(
            model_name="businessmembership",
            name="default_branch",
            field=models.ForeignKey(
                blank=True,
                help_text="Branch used when a request does not name one",
                null=True,
                on_delete=django.db.models.deletion.SET_NULL,
                related_name="default_memberships",
                to="inventory.branch",
            ),
        ),
    ]
