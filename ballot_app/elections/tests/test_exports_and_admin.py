from __future__ import annotations

from django.contrib.admin.sites import AdminSite
from django.test import RequestFactory, TestCase
from import_export.formats import base_formats
from tablib import Dataset

from elections.admin import (
    CandidateResource,
    OfflineVoteAdmin,
    VoteAdmin,
    VoterAdmin,
    VoterResource,
    ZoneResource,
)
from elections.exceptions import ElectionValidationError
from elections.exports import build_dataset, export_election_data
from elections.models import Candidate, ElectionType, OfflineVote, Vote, Voter, Zone
from elections.offline_intake import record_offline_ballot_set
from elections.reconciler import merge_offline_ballots
from elections.tests.helpers import at, ledger_vote, make_candidate, make_election, make_voter, make_zone


class ExportTests(TestCase):
    def setUp(self) -> None:
        self.election = make_election()
        self.zone = make_zone("BHUJ")
        self.alice = make_candidate(self.zone, "Alice")
        self.voter = make_voter("VID-0001", zone=self.zone)
        self.tester = make_voter("TEST_0001", zone=self.zone)

    def test_vote_dataset_marks_source_and_test_voters(self) -> None:
        ledger_vote(voter=self.tester, election=self.election, candidate=self.alice, when=at(1))
        record_offline_ballot_set(
            vid="VID-0001",
            election_id=self.election.pk,
            candidate_ids=[self.alice.pk],
            admin="clerk",
        )
        OfflineVote.objects.update(timestamp=at(2))
        merge_offline_ballots(self.election.pk)

        dataset = build_dataset(election=self.election, kind="votes")

        self.assertEqual(
            dataset.headers,
            ["id", "VID", "Zone", "Candidate", "NOTA", "Source", "Timestamp", "Test Voter"],
        )
        rows = dataset.dict
        self.assertEqual([(row["VID"], row["Source"], row["Test Voter"]) for row in rows], [
            ("TEST_0001", "online", True),
            ("VID-0001", "offline", False),
        ])
        self.assertEqual(rows[1]["Timestamp"], at(2).isoformat())

    def test_offline_dataset_shows_all_nota_placeholder(self) -> None:
        record_offline_ballot_set(vid="VID-0001", election_id=self.election.pk, candidate_ids=[], admin="clerk")

        dataset = build_dataset(election=self.election, kind="offline-votes")

        row = dataset.dict[0]
        self.assertEqual(row["VID"], "VID-0001")
        self.assertEqual(row["Candidate"], "NOTA (all)")
        self.assertEqual(row["Zone"], "")
        self.assertEqual(row["Entered By"], "clerk")

    def test_export_file_naming_and_content_type(self) -> None:
        export = export_election_data(election_id=self.election.pk, kind="votes", file_format="CSV")

        self.assertEqual(export.filename, f"election-{self.election.pk}-votes.csv")
        self.assertTrue(export.content_type.startswith("text/csv"))
        self.assertIsInstance(export.content, bytes)

    def test_unknown_kind_is_rejected(self) -> None:
        with self.assertRaises(ElectionValidationError):
            export_election_data(election_id=self.election.pk, kind="voters", file_format="csv")
        self.assertEqual(Vote.objects.count(), 0)


class AdminImportTests(TestCase):
    def test_import_formats_are_tabular(self) -> None:
        admin_instance = VoterAdmin(Voter, AdminSite())

        self.assertEqual(admin_instance.get_import_formats(), [base_formats.CSV, base_formats.XLSX])

    def test_zone_candidate_and_voter_import(self) -> None:
        zones = Dataset(headers=["election_type", "code", "name", "seats", "is_active"])
        zones.append(["TRUSTEES", "BHUJ", "Bhuj", "2", "1"])
        zones.append(["YUVA_PANKH", "BHUJ", "Bhuj (Yuva)", "1", "1"])
        zone_result = ZoneResource().import_data(zones, dry_run=False)
        self.assertFalse(zone_result.has_errors())
        self.assertEqual(Zone.objects.count(), 2)

        candidates = Dataset(headers=["id", "election_type", "zone", "name", "status", "is_nota"])
        candidates.append(["", "YUVA_PANKH", "BHUJ", "Kiran", "APPROVED", "0"])
        candidate_result = CandidateResource().import_data(candidates, dry_run=False)
        self.assertFalse(candidate_result.has_errors())
        kiran = Candidate.objects.get(name="Kiran")
        self.assertEqual(kiran.zone.election_type, ElectionType.yuva_pankh)

        voters = Dataset(headers=["voter_id", "name", "is_active"])
        voters.append(["VID-0001", "Asha", "1"])
        voters.append(["VID-0002", "Ravi", "1"])
        VoterResource().import_data(voters, dry_run=False)
        voters[0] = ("VID-0001", "Asha Shah", "1")
        VoterResource().import_data(voters, dry_run=False)

        self.assertEqual(Voter.objects.count(), 2)
        self.assertEqual(Voter.objects.get(voter_id="VID-0001").name, "Asha Shah")


class LedgerAdminTests(TestCase):
    def setUp(self) -> None:
        self.election = make_election()
        self.zone = make_zone("BHUJ")
        self.alice = make_candidate(self.zone, "Alice")
        self.voter = make_voter("VID-0001", zone=self.zone)
        self.request = RequestFactory().get("/admin/")

    def test_deleting_votes_recomputes_has_voted(self) -> None:
        ledger_vote(voter=self.voter, election=self.election, candidate=self.alice, when=at(1))
        vote_admin = VoteAdmin(Vote, AdminSite())

        vote_admin.delete_queryset(self.request, Vote.objects.filter(voter=self.voter))

        self.voter.refresh_from_db()
        self.assertFalse(self.voter.has_voted)

    def test_deleting_one_vote_keeps_flag_while_others_remain(self) -> None:
        bob = make_candidate(self.zone, "Bob")
        first = ledger_vote(voter=self.voter, election=self.election, candidate=self.alice, when=at(1))
        ledger_vote(voter=self.voter, election=self.election, candidate=bob, when=at(2))

        VoteAdmin(Vote, AdminSite()).delete_model(self.request, first)

        self.voter.refresh_from_db()
        self.assertTrue(self.voter.has_voted)

    def test_offline_queue_is_read_only(self) -> None:
        queue_admin = OfflineVoteAdmin(OfflineVote, AdminSite())

        self.assertFalse(queue_admin.has_add_permission(self.request))
        self.assertFalse(queue_admin.has_change_permission(self.request))
        self.assertIn("candidate", queue_admin.get_readonly_fields(self.request))
