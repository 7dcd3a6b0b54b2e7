"""Exceptions raised by the clustering engine.

The HTTP layer maps these onto status codes (see
``loss_dedup.api.app``); the orchestrator decides which are fatal.
"""

from __future__ import annotations


class LossDedupError(Exception):
    """Base class for engine errors."""

    status_code: int = 500


class AuthenticationError(LossDedupError):
    """Missing or wrong shared secret on the trigger endpoint."""

    status_code = 401


class FetchError(LossDedupError):
    """The unclustered-signal set could not be read.  Aborts the pass."""


class RunInProgressError(LossDedupError):
    """Another pass currently holds the run lock."""

    status_code = 409


class PerCandidateError(LossDedupError):
    """Merging one candidate failed; the pass continues with the next."""

    def __init__(self, signal_ids: list[str], cause: BaseException) -> None:
        self.signal_ids = signal_ids
        self.cause = cause
        super().__init__(f"Error merging candidate of {len(signal_ids)} signal(s) [{', '.join(signal_ids[:5])}]: {cause}")


class PersistenceConflict(LossDedupError):
    """Every signal of a candidate was already linked to a cluster.

    Raised inside the candidate transaction so a freshly created cluster is
    rolled back; callers treat it as a successful no-op.
    """
