"""Command-line helpers: capture replay plotting and debug instrumentation."""
