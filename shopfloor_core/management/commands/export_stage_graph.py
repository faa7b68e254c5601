import json
from django.core.management.base import BaseCommand, CommandError

from shopfloor_core.config.graph_io import definition_to_dict, graph_to_dict
from shopfloor_core.config.models import StageGraphDefinition
from shopfloor_core.config.services import load_stage_graph


class Command(BaseCommand):
    help = "Export a stage graph definition to JSON (the graph in force when no code is given)."

    def add_arguments(self, parser):
        parser.add_argument("code", type=str, nargs="?", default="")
        parser.add_argument("--graph-version", dest="graph_version", type=str, default="v1")
        parser.add_argument("--out", type=str, default="")

    def handle(self, *args, **options):
        code = options["code"]
        out = options["out"]

        if code:
            try:
                definition = StageGraphDefinition.objects.get(code=code, version=options["graph_version"])
            except StageGraphDefinition.DoesNotExist as exc:
                raise CommandError(f"Stage graph not found: {code}") from exc
            payload = definition_to_dict(definition)
        else:
            payload = graph_to_dict(load_stage_graph())

        text = json.dumps(payload, indent=2, sort_keys=True)

        if out:
            with open(out, "w", encoding="utf-8") as f:
                f.write(text + "\n")
            self.stdout.write(self.style.SUCCESS(f"Exported {code or 'active graph'} -> {out}"))
        else:
            self.stdout.write(text)
