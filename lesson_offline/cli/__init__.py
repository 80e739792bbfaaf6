"""
Command-Line Interface Layer.

The Typer application, the Rich progress display, and console formatters.
"""
