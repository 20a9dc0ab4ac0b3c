"""JSON API for the conference submission workflow."""
