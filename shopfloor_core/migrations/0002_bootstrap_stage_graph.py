# shopfloor_core/migrations/0002_bootstrap_stage_graph.py

from django.conf import settings
from django.db import migrations


def bootstrap_stage_graph(apps, schema_editor):
    """
    Store the settings stage graph as an inactive "default" definition so it
    can be exported, copied and edited from the admin.

    Safe, idempotent, and non-destructive: the settings graph stays in force
    until a definition is activated.
    """
    StageGraphDefinition = apps.get_model("shopfloor_core", "StageGraphDefinition")

    if StageGraphDefinition.objects.filter(code="default", version="v1").exists():
        return

    StageGraphDefinition.objects.create(
        code="default",
        name="Default production stages",
        version="v1",
        description="Copied from settings.PRODUCTION_STAGE_GRAPH at install time.",
        definition=settings.PRODUCTION_STAGE_GRAPH,
        is_active=False,
    )


class Migration(migrations.Migration):

    dependencies = [
        ("shopfloor_core", "0001_initial"),
    ]

    operations = [
        migrations.RunPython(
            bootstrap_stage_graph,
            reverse_code=migrations.RunPython.noop,
        ),
    ]
