# =============================================================================
# scripts/ - Operational CLIs
# =============================================================================
# Run as modules from the repository root, e.g.
#   python -m scripts.backfill_mux_durations --dry-run
# =============================================================================
