from typing import override

from django.core.management.base import BaseCommand, CommandError

from elections.exceptions import ElectionsError
from elections.ledger import repair_has_voted_flags
from elections.lookups import get_election


class Command(BaseCommand):
    help = "Recompute every voter's has_voted flag from the vote ledger."

    @override
    def add_arguments(self, parser) -> None:
        parser.add_argument(
            "--dry-run",
            action="store_true",
            help="Report how many flags are stale without changing them.",
        )
        parser.add_argument(
            "--election-id",
            dest="election_id",
            default="",
            help="Election to attach the audit log entry to.",
        )

    @override
    def handle(self, *args, **options) -> None:
        dry_run: bool = bool(options.get("dry_run"))
        election_id = str(options.get("election_id") or "").strip()

        election = None
        if election_id:
            try:
                election = get_election(election_id)
            except ElectionsError as exc:
                raise CommandError(str(exc)) from exc

        changed = repair_has_voted_flags(election=election, dry_run=dry_run)
        verb = "would change" if dry_run else "changed"
        self.stdout.write(f"repair_has_voted: {verb} {changed} voter(s)")
