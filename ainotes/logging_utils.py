"""
logging_utils.py

Logging helpers shared by the CLI and the HTTP API.

Two channels exist:

    • log_verbose() prints short, plain-English progress messages through
      Typer when --verbose is set.
    • configure_logging() wires the standard library loggers used inside the
      package (ainotes.storage, ainotes.service, ...) to stderr.
"""

import logging

import typer

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def log_verbose(message: str, verbose: bool) -> None:
    """
    Print a high‑level progress message when verbose mode is enabled.

    Parameters
    ----------
    message : str
        Short description of what is happening (e.g. "Saving note...").
    verbose : bool
        Whether verbose mode is active. When False, this function does
        nothing.
    """
    if verbose:
        typer.echo(message)


def configure_logging(debug: bool = False) -> None:
    """
    Route package logs to stderr.

    DEBUG level when `debug` is set, WARNING otherwise so the CLI stays quiet
    unless something goes wrong.
    """
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.WARNING,
        format=LOG_FORMAT,
        force=True,
    )
