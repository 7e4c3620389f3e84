"""
Exceptions shared by all layers.

Rule violations by an agent are NOT exceptions: the rule engine returns them as verdicts.
These are raised for invalid input handed to the system and for requests that do not fit the match state.
"""


class ArenaError(Exception):
    """Base class for everything raised by the arena."""


class InvalidFENError(ArenaError):
    """String cannot be interpreted as a (6-field) FEN."""


class IllegalMoveError(ArenaError):
    """A move was applied/forced that the rules do not allow."""


class MatchStateError(ArenaError):
    """Operation not allowed in the current match status."""


class DirectorError(MatchStateError):
    """A director action was rejected. Nothing about the match has changed."""


class AgentError(ArenaError):
    """The agent (or its transport) failed to produce any reply at all."""


class InvalidRequestError(ArenaError):
    """Request model failed validation at the boundary."""


class RepositoryError(ArenaError):
    """Persistence layer could not find or store a record."""
