"""Common base for every error awsso reports to the user."""

from __future__ import annotations


class AwssoError(Exception):
    """Base class for domain errors.

    Every subclass carries a human-readable, actionable message.  The CLI
    catches this type, prints the message and exits non-zero; anything else
    is a bug and propagates with a traceback.
    """
