"""Terminal front end: CLI entry point, renderer, interrupt handling."""
