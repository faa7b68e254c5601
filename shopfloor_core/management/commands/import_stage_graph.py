import json
from django.core.management.base import BaseCommand, CommandError

from shopfloor_core.config.graph_io import upsert_definition_from_dict
from shopfloor_core.config.services import activate_definition


class Command(BaseCommand):
    help = "Import a stage graph definition from JSON, optionally activating it."

    def add_arguments(self, parser):
        parser.add_argument("path", type=str)
        parser.add_argument("--activate", action="store_true")

    def handle(self, *args, **options):
        path = options["path"]

        try:
            with open(path, encoding="utf-8") as f:
                payload = json.load(f)
        except (OSError, json.JSONDecodeError) as exc:
            raise CommandError(f"Cannot read {path}: {exc}") from exc

        try:
            definition = upsert_definition_from_dict(payload)
            if options["activate"]:
                activate_definition(definition)
        except (KeyError, ValueError) as exc:
            raise CommandError(f"Invalid stage graph: {exc}") from exc

        state = "active" if definition.is_active else "inactive"
        self.stdout.write(
            self.style.SUCCESS(f"Imported {definition.code} ({definition.version}), {state}")
        )
