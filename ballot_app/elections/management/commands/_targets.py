from django.core.management.base import CommandError

from elections.exceptions import ElectionsError
from elections.lookups import active_election_for_type, get_election
from elections.models import Election


def add_election_arguments(parser) -> None:
    parser.add_argument(
        "--election-id",
        dest="election_id",
        default="",
        help="Election to operate on.",
    )
    parser.add_argument(
        "--type",
        dest="election_type",
        default="",
        help="Use the active election of this type (e.g. TRUSTEES) instead of --election-id.",
    )


def election_from_options(options: dict) -> Election:
    election_id = str(options.get("election_id") or "").strip()
    election_type = str(options.get("election_type") or "").strip()
    if election_id and election_type:
        raise CommandError("Choose only one of --election-id or --type.")
    if not election_id and not election_type:
        raise CommandError("One of --election-id or --type is required.")

    try:
        if election_id:
            return get_election(election_id)
        return active_election_for_type(election_type)
    except ElectionsError as exc:
        raise CommandError(str(exc)) from exc
