from __future__ import annotations

import json
from io import StringIO

from django.core.management import call_command
from django.core.management.base import CommandError
from django.test import TestCase

from elections.models import OfflineVote, Vote, Voter
from elections.offline_intake import record_offline_ballot_set
from elections.tests.helpers import at, ledger_vote, make_candidate, make_election, make_voter, make_zone


class ElectionCommandsTests(TestCase):
    def setUp(self) -> None:
        self.election = make_election(title="Trust Mandal 2026")
        self.zone = make_zone("BHUJ", name="Bhuj")
        self.alice = make_candidate(self.zone, "Alice")
        self.voter = make_voter("VID-0001", zone=self.zone)

    def test_merge_command_prints_summary(self) -> None:
        record_offline_ballot_set(
            vid="VID-0001",
            election_id=self.election.pk,
            candidate_ids=[self.alice.pk],
            admin="clerk",
        )
        out = StringIO()

        call_command("merge_offline_ballots", "--type", "TRUSTEES", stdout=out)

        self.assertEqual(json.loads(out.getvalue()), {"merged_count": 1, "skipped": [], "voter_count": 1})
        self.assertTrue(Vote.objects.filter(voter=self.voter).exists())
        self.assertFalse(OfflineVote.objects.filter(is_merged=False).exists())

    def test_merge_command_needs_exactly_one_target(self) -> None:
        with self.assertRaisesMessage(CommandError, "One of --election-id or --type is required."):
            call_command("merge_offline_ballots", stdout=StringIO())
        with self.assertRaisesMessage(CommandError, "Choose only one"):
            call_command(
                "merge_offline_ballots",
                "--type",
                "TRUSTEES",
                "--election-id",
                str(self.election.pk),
                stdout=StringIO(),
            )

    def test_merge_command_reports_unknown_election(self) -> None:
        with self.assertRaises(CommandError):
            call_command("merge_offline_ballots", "--election-id", "999999", stdout=StringIO())

    def test_compute_winners_table_and_json(self) -> None:
        ledger_vote(voter=self.voter, election=self.election, candidate=self.alice, when=at(1))

        out = StringIO()
        call_command("compute_winners", "--election-id", str(self.election.pk), stdout=out)
        self.assertIn("Bhuj [BHUJ]", out.getvalue())
        self.assertIn("1. Alice: 1", out.getvalue())

        out = StringIO()
        call_command("compute_winners", "--type", "TRUSTEES", "--json", stdout=out)
        rows = json.loads(out.getvalue())
        self.assertEqual([(row["candidate_name"], row["rank"]) for row in rows], [("Alice", 1)])

    def test_repair_has_voted_dry_run_then_fix(self) -> None:
        Voter.objects.filter(pk=self.voter.pk).update(has_voted=True)

        out = StringIO()
        call_command("repair_has_voted", "--dry-run", stdout=out)
        self.assertIn("would change 1 voter(s)", out.getvalue())
        self.assertTrue(Voter.objects.get(pk=self.voter.pk).has_voted)

        out = StringIO()
        call_command("repair_has_voted", "--election-id", str(self.election.pk), stdout=out)
        self.assertIn("changed 1 voter(s)", out.getvalue())
        self.assertFalse(Voter.objects.get(pk=self.voter.pk).has_voted)
