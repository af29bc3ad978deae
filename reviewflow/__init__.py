"""ReviewFlow: review scheduling and evaluation service."""
