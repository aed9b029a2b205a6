"""HTML rendering for public notes."""
