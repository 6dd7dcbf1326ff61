"""Command-line helpers shared by the launcher and worker entry points."""
