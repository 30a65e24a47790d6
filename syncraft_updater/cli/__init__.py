"""
Command-line interface: the Typer application, Rich progress window and
console formatters.
"""
