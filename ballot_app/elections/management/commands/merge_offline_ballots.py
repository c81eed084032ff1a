import json
import logging
from typing import override

from django.core.management.base import BaseCommand, CommandError

from elections.exceptions import ElectionsError
from elections.management.commands._targets import add_election_arguments, election_from_options
from elections.reconciler import merge_offline_ballots

logger = logging.getLogger(__name__)


class Command(BaseCommand):
    help = "Merge queued offline ballots into the vote ledger. Safe to re-run."

    @override
    def add_arguments(self, parser) -> None:
        add_election_arguments(parser)
        parser.add_argument(
            "--actor",
            dest="actor",
            default="",
            help="Name recorded in the audit log for this merge.",
        )

    @override
    def handle(self, *args, **options) -> None:
        election = election_from_options(options)
        actor = str(options.get("actor") or "").strip() or "manage.py"

        logger.info("merge_offline_ballots: command election=%s actor=%s", election.pk, actor)
        try:
            result = merge_offline_ballots(election.pk, actor=actor)
        except ElectionsError as exc:
            raise CommandError(str(exc)) from exc

        self.stdout.write(json.dumps(result.as_dict(), indent=2, sort_keys=True))
        if result.skipped:
            self.stderr.write(f"{len(result.skipped)} voter(s) skipped; see the skipped list.")
