"""Loss signal deduplication and confidence-fusion engine."""
