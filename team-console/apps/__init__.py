"""Django apps of the Team Console."""
