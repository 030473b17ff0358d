"""League match results and ELO ratings with immediate or deferred consolidation."""
