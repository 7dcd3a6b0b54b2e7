"""Candidate building and cluster merging for loss signals."""

from .candidates import Candidate, CandidateResult, build_candidates
from .merger import MergeOutcome, merge_candidate

__all__ = ["Candidate", "CandidateResult", "MergeOutcome", "build_candidates", "merge_candidate"]
