"""
Exceptions surfaced by the ToonStudio service layer.
"""

from __future__ import annotations


class StoryServiceError(RuntimeError):
    """
    Generic failure indicator for an AI request that could not be completed.

    Raised for network, authentication, or malformed-request failures (and for
    throttling once the retry budget is spent). Callers show a short advisory
    message and let the user retry the triggering action.
    """
