"""Long-running and command-line entry points."""
