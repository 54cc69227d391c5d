"""Error taxonomy for the game entity, controller and remote game methods."""


class GameError(Exception):
    """Misuse of the Game entity contract."""


class AlreadyPersistedError(GameError):
    """save() called on a Game that already has an id."""


class NotPersistedError(GameError):
    """A store write was attempted on a Game that has never been saved."""


class PlayerNotFoundError(GameError):
    """The player to update is not part of the Game."""


class RemoteMethodError(Exception):
    """Failure reported by a server-side game method.

    Carries a stable machine-readable error code (sent over the wire as
    "error") and human-readable details.
    """

    code = "internal-error"

    def __init__(self, details: str = "", *, code: str | None = None) -> None:
        super().__init__(details or self.code)
        if code is not None:
            self.code = code
        self.details = details

    def to_dict(self) -> dict[str, str]:
        return {"error": self.code, "details": self.details}


class InvalidParametersError(RemoteMethodError, GameError):
    """An operation received something other than the entity it expects."""

    code = "invalid-parameters"


class GameNotFoundError(RemoteMethodError):
    """No active game in the lobby state matches the access code."""

    code = "game-not-found"


class TooManyAttemptsError(RemoteMethodError):
    """A unique access code could not be generated within the retry budget."""

    code = "too-many-attempts"


REMOTE_ERRORS: dict[str, type[RemoteMethodError]] = {
    cls.code: cls for cls in (InvalidParametersError, GameNotFoundError, TooManyAttemptsError)
}


def remote_error_from_dict(data: dict[str, object]) -> RemoteMethodError:
    """Rebuild a RemoteMethodError from its wire form ({"error": code, "details": ...})."""
    code = str(data.get("error") or RemoteMethodError.code)
    details = str(data.get("details") or "")
    cls = REMOTE_ERRORS.get(code)
    if cls is None:
        return RemoteMethodError(details, code=code)
    return cls(details)
