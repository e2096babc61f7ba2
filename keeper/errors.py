"""
errors.py — Exception types shared by the stores, engines and API.

"Not applicable" and "not evaluable" are not errors: the evaluators return
None for those.
"""


class KeeperError(Exception):
    """Base class for all Dota Keeper errors."""


class StoreError(KeeperError):
    """A database read or write failed; the transaction was rolled back."""


class InvalidStateError(KeeperError):
    """The requested operation is not allowed in the current state.

    Examples: rerolling after a weekly challenge was accepted, a third
    reroll in the same week, accepting twice, or an illegal parse-state
    transition. The message is meant to be shown to the user.
    """


class NotFoundError(KeeperError):
    """A row looked up by id does not exist."""


class OpenDotaError(KeeperError):
    """Network or HTTP error while talking to the OpenDota API."""
