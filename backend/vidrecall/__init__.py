"""VidRecall: semantic indexing, search and grounded Q&A over saved videos."""

__version__ = "0.1.0"
