import json
from typing import override

from django.core.management.base import BaseCommand, CommandError

from elections.exceptions import ElectionsError
from elections.management.commands._targets import add_election_arguments, election_from_options
from elections.tally import list_all_winners


class Command(BaseCommand):
    help = "Print the per-zone winners of an election."

    @override
    def add_arguments(self, parser) -> None:
        add_election_arguments(parser)
        parser.add_argument(
            "--json",
            action="store_true",
            help="Print winner rows as JSON instead of a table.",
        )

    @override
    def handle(self, *args, **options) -> None:
        election = election_from_options(options)
        try:
            rows = list_all_winners(election.pk)
        except ElectionsError as exc:
            raise CommandError(str(exc)) from exc

        if options.get("json"):
            self.stdout.write(json.dumps(rows, indent=2))
            return

        self.stdout.write(f"{election.title} ({election.type}, {election.status})")
        if not rows:
            self.stdout.write("No counted votes.")
            return

        current_zone = None
        for row in rows:
            if row["zone_id"] != current_zone:
                current_zone = row["zone_id"]
                self.stdout.write(f"\n{row['zone_name']} [{row['zone_code']}]")
            label = f"{row['candidate_name']} (NOTA)" if row["is_nota"] else row["candidate_name"]
            self.stdout.write(f"  {row['rank']}. {label}: {row['votes']}")
