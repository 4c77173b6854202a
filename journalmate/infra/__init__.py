"""Infrastructure package for JournalMate (metrics)."""
