"""Safety-aware walking route planning."""
