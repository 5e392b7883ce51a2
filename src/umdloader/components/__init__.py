"""Load coordination components."""
