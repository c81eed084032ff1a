from __future__ import annotations

from unittest.mock import patch

from django.db import IntegrityError
from django.test import TestCase

from elections import reconciler
from elections.exceptions import ElectionValidationError, NotFoundError
from elections.models import AuditLogEntry, Election, OfflineVote, Vote, Voter
from elections.offline_intake import record_offline_ballot, record_offline_ballot_set
from elections.reconciler import merge_offline_ballots
from elections.tests.helpers import at, ledger_vote, make_candidate, make_election, make_voter, make_zone


class MergeOfflineBallotsTests(TestCase):
    def setUp(self) -> None:
        self.election = make_election()
        self.zone = make_zone("BHUJ", seats=2)
        self.c1 = make_candidate(self.zone, "C1")
        self.c2 = make_candidate(self.zone, "C2")
        self.c3 = make_candidate(self.zone, "C3")
        self.v1 = make_voter("VID-0001", zone=self.zone)
        self.v2 = make_voter("VID-0002", zone=self.zone)

    def _queue(self, voter: Voter, *candidates) -> list[OfflineVote]:
        return record_offline_ballot_set(
            vid=voter.voter_id,
            election_id=self.election.pk,
            candidate_ids=[c.pk for c in candidates],
            admin="clerk",
        )

    def test_offline_ballot_becomes_ledger_vote(self) -> None:
        rows = self._queue(self.v1, self.c1)
        OfflineVote.objects.filter(pk=rows[0].pk).update(timestamp=at(5))

        result = merge_offline_ballots(self.election.pk)

        self.assertEqual(result.as_dict(), {"merged_count": 1, "voter_count": 1, "skipped": []})
        vote = Vote.objects.get(voter=self.v1, election=self.election)
        self.assertEqual(vote.candidate, self.c1)
        self.assertEqual(vote.source, Vote.Source.offline)
        self.assertEqual(vote.timestamp, at(5))
        self.assertEqual(vote.offline_vote_id, rows[0].pk)
        self.assertEqual(
            vote.source_meta,
            {"channel": "offline", "entered_by": "clerk", "offline_vote_id": rows[0].pk},
        )

        row = OfflineVote.objects.get(pk=rows[0].pk)
        self.assertTrue(row.is_merged)
        self.assertIsNotNone(row.merged_at)
        self.v1.refresh_from_db()
        self.assertTrue(self.v1.has_voted)

    def test_online_vote_wins_over_offline_entry(self) -> None:
        OfflineVote.objects.create(
            voter_vid="VID-0002",
            election=self.election,
            candidate=self.c3,
            timestamp=at(1),
            entered_by="clerk",
        )
        ledger_vote(voter=self.v2, election=self.election, candidate=self.c2, when=at(2))

        result = merge_offline_ballots(self.election.pk)

        self.assertEqual(result.merged_count, 0)
        self.assertEqual(result.as_dict()["skipped"], [{"vid": "VID-0002", "reason": "AlreadyHasOnlineVote"}])
        self.assertEqual(
            list(Vote.objects.filter(voter=self.v2).values_list("candidate_id", "source")),
            [(self.c2.pk, "online")],
        )
        self.assertFalse(OfflineVote.objects.filter(is_merged=False).exists())
        self.v2.refresh_from_db()
        self.assertTrue(self.v2.has_voted)

    def test_empty_queue_writes_nothing(self) -> None:
        result = merge_offline_ballots(self.election.pk)

        self.assertEqual(result.as_dict(), {"merged_count": 0, "voter_count": 0, "skipped": []})
        self.assertFalse(AuditLogEntry.objects.filter(election=self.election).exists())
        self.assertEqual(Vote.objects.count(), 0)

    def test_second_run_is_a_no_op(self) -> None:
        self._queue(self.v1, self.c1, self.c2)
        self._queue(self.v2, self.c3)

        first = merge_offline_ballots(self.election.pk)
        ledger_after_first = sorted(Vote.objects.values_list("voter_id", "candidate_id"))
        second = merge_offline_ballots(self.election.pk)

        self.assertEqual(first.merged_count, 3)
        self.assertEqual(first.voter_count, 2)
        self.assertEqual(second.as_dict(), {"merged_count": 0, "voter_count": 0, "skipped": []})
        self.assertEqual(sorted(Vote.objects.values_list("voter_id", "candidate_id")), ledger_after_first)

    def test_no_voter_is_double_counted(self) -> None:
        self._queue(self.v1, self.c1)
        OfflineVote.objects.create(
            voter_vid="VID-0001",
            election=self.election,
            candidate=self.c1,
            timestamp=at(3),
            entered_by="second-clerk",
        )

        merge_offline_ballots(self.election.pk)

        self.assertEqual(Vote.objects.filter(voter=self.v1, candidate=self.c1).count(), 1)
        self.assertFalse(OfflineVote.objects.filter(voter_vid="VID-0001", is_merged=False).exists())

    def test_all_nota_placeholder_merges_without_votes(self) -> None:
        self._queue(self.v1)

        result = merge_offline_ballots(self.election.pk)

        self.assertEqual(result.merged_count, 0)
        self.assertEqual(result.skipped, [])
        self.assertTrue(OfflineVote.objects.get(voter_vid="VID-0001").is_merged)
        self.v1.refresh_from_db()
        self.assertFalse(self.v1.has_voted)

    def test_unknown_vid_stays_queued(self) -> None:
        OfflineVote.objects.create(
            voter_vid="VID-9999",
            election=self.election,
            candidate=self.c1,
            timestamp=at(1),
            entered_by="clerk",
        )

        result = merge_offline_ballots(self.election.pk)

        self.assertEqual(result.as_dict()["skipped"], [{"vid": "VID-9999", "reason": "VoterNotFound"}])
        self.assertFalse(OfflineVote.objects.get(voter_vid="VID-9999").is_merged)

    def test_failure_for_one_voter_does_not_block_others(self) -> None:
        self._queue(self.v1, self.c1)
        self._queue(self.v2, self.c2)

        original_create = Vote.objects.create

        def _create(**kwargs):
            if kwargs["voter"].voter_id == "VID-0001":
                raise IntegrityError("duplicate key value violates unique constraint")
            return original_create(**kwargs)

        with patch.object(Vote.objects, "create", side_effect=_create):
            result = merge_offline_ballots(self.election.pk)

        self.assertEqual(result.merged_count, 1)
        self.assertEqual(
            result.as_dict()["skipped"],
            [{"vid": "VID-0001", "reason": "IntegrityError: duplicate key value violates unique constraint"}],
        )
        self.assertFalse(OfflineVote.objects.get(voter_vid="VID-0001").is_merged)
        self.assertTrue(OfflineVote.objects.get(voter_vid="VID-0002").is_merged)
        self.assertTrue(Vote.objects.filter(voter=self.v2).exists())

        retry = merge_offline_ballots(self.election.pk)
        self.assertEqual(retry.merged_count, 1)
        self.assertEqual(retry.skipped, [])

    def test_has_voted_matches_ledger_after_merge(self) -> None:
        self._queue(self.v1, self.c1)
        make_voter("VID-0003", zone=self.zone)

        merge_offline_ballots(self.election.pk)

        for voter in Voter.objects.all():
            self.assertEqual(voter.has_voted, Vote.objects.filter(voter=voter).exists(), voter.voter_id)

    def test_audit_entry_records_summary_and_actor(self) -> None:
        self._queue(self.v1, self.c1)

        merge_offline_ballots(self.election.pk, actor="returning-officer")

        entry = AuditLogEntry.objects.get(election=self.election, event_type="offline_votes_merged")
        self.assertEqual(entry.payload["merged_count"], 1)
        self.assertEqual(entry.payload["actor"], "returning-officer")
        self.assertFalse(entry.is_public)

    def test_cannot_start_for_unknown_or_closed_election(self) -> None:
        with self.assertRaises(NotFoundError):
            merge_offline_ballots(987654)

        self.election.status = Election.Status.completed
        self.election.save(update_fields=["status"])
        with self.assertRaises(ElectionValidationError):
            merge_offline_ballots(self.election.pk)

    def test_selection_added_during_run_is_merged_with_its_group(self) -> None:
        self._queue(self.v1, self.c1)
        original = reconciler._merge_voter_group

        def add_selection_then_merge(**kwargs):
            record_offline_ballot(
                vid="VID-0001",
                election_id=self.election.pk,
                candidate_id=self.c2.pk,
                admin="clerk-2",
                additional_selection=True,
            )
            return original(**kwargs)

        with patch("elections.reconciler._merge_voter_group", side_effect=add_selection_then_merge):
            result = merge_offline_ballots(self.election.pk)

        self.assertEqual(result.as_dict(), {"merged_count": 2, "voter_count": 1, "skipped": []})
        self.assertEqual(
            sorted(Vote.objects.filter(voter=self.v1).values_list("candidate__name", flat=True)),
            ["C1", "C2"],
        )
        self.assertFalse(OfflineVote.objects.filter(is_merged=False).exists())

    def test_rows_queued_after_offline_merge_are_reported_as_such(self) -> None:
        self._queue(self.v1, self.c1)
        merge_offline_ballots(self.election.pk)
        OfflineVote.objects.create(
            voter_vid="VID-0001",
            election=self.election,
            candidate=self.c2,
            timestamp=at(40),
            entered_by="clerk",
        )

        result = merge_offline_ballots(self.election.pk)

        self.assertEqual(result.as_dict()["skipped"], [{"vid": "VID-0001", "reason": "AlreadyMergedOffline"}])
        self.assertEqual(Vote.objects.filter(voter=self.v1).count(), 1)
        self.assertFalse(OfflineVote.objects.filter(is_merged=False).exists())
