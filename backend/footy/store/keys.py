"""Collection names and document keys."""

CONTESTS = "contests"
CONTEST_MATCHES = "contest_matches"
PREDICTION_ENTRIES = "prediction_entries"
PARTICIPANTS = "participants"
WORKER_STATE = "worker_state"


def contest_match_key(contest_id: str, match_id: int | str) -> str:
    return f"{contest_id}:{match_id}"


def entry_key(match_id: int | str, participant_id: str) -> str:
    return f"{match_id}:{participant_id}"


def participant_from_entry_key(key: str) -> str:
    return key.split(":", 1)[1] if ":" in key else key
