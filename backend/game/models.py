"""Game entity: one document per match, with embedded players and a host.

Every mutation is applied to the in-memory instance and to the bound store
in the same call, so the caller's copy and the stored document stay in step
(other observers see the change through the store's change feed).
"""

from __future__ import annotations

from collections.abc import Mapping
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any, Self

import structlog
from pydantic import BaseModel, ConfigDict, Field, PrivateAttr
from pydantic_core import to_jsonable_python

from game.errors import AlreadyPersistedError, NotPersistedError, PlayerNotFoundError
from shared.ids import generate_id, random_id

if TYPE_CHECKING:
    from shared.dal import Document, GameStore

logger = structlog.get_logger()

INITIAL_STATE = "init"


class Host(BaseModel):
    """The device that created the game. Not a player."""

    model_config = ConfigDict(extra="allow")

    id: str = Field(default_factory=random_id)


class Player(BaseModel):
    """A joined participant. Game-specific fields are kept as extras."""

    model_config = ConfigDict(extra="allow", validate_assignment=True)

    id: str = Field(default_factory=generate_id)
    name: str | None = None
    is_ready: bool = False


def _player_id(player: Player | Mapping[str, Any] | None) -> str | None:
    if isinstance(player, Player):
        return player.id
    if isinstance(player, Mapping):
        return player.get("id")
    return None


class Game(BaseModel):
    model_config = ConfigDict(extra="allow", validate_assignment=True)

    id: str | None = None  # assigned by the store on save()
    name: str = ""
    host: Host | None = None
    players: list[Player] = Field(default_factory=list)  # join order
    state: str = INITIAL_STATE
    access_code: str | None = None
    active: bool = False
    modified: datetime | None = None

    _store: GameStore | None = PrivateAttr(default=None)

    @classmethod
    def from_document(cls, document: Document, store: GameStore | None = None) -> Self:
        game = cls.model_validate(document)
        if store is not None:
            game.bind(store)
        return game

    def to_document(self) -> Document:
        doc = self.model_dump(mode="json")
        if doc["id"] is None:
            del doc["id"]
        return doc

    def bind(self, store: GameStore) -> Self:
        self._store = store
        return self

    @property
    def store(self) -> GameStore:
        if self._store is None:
            raise RuntimeError("Game is not bound to a store")
        return self._store

    def find_player(self, player_id: str | None) -> Player | None:
        if not player_id:
            return None
        return next((p for p in self.players if p.id == player_id), None)

    def save(self) -> str:
        """Insert this game into the store and record the assigned id."""
        if self.id is not None:
            raise AlreadyPersistedError(f"Cannot save game {self.id!r}: it already has an id. Use update() instead.")
        self.id = self.store.insert(self.to_document())
        logger.debug("game saved", game_id=self.id)
        return self.id

    def update(self, changes: Mapping[str, Any] | None = None) -> None:
        """Set the given top-level fields here and in the store, stamping modified.

        Anything other than a mapping is ignored. The id cannot be changed.
        """
        if not isinstance(changes, Mapping):
            return
        if self.id is None:
            raise NotPersistedError("Cannot update a game that has not been saved")

        fields = {key: value for key, value in changes.items() if key != "id"}
        fields["modified"] = self._next_modified()
        # Validate the whole change set before touching either copy.
        candidate = self.model_validate({**self.model_dump(), **fields})
        validated = {key: getattr(candidate, key) for key in fields}
        self.store.set_fields(self.id, validated)
        for key, value in validated.items():
            setattr(self, key, value)

    def add_player(self, player: Player | Mapping[str, Any] | None = None) -> Player:
        """Append a player (a blank one by default), generating its id if needed.

        Does not check for an existing player with the same id.
        """
        if self.id is None:
            raise NotPersistedError("Cannot add a player to a game that has not been saved")

        if isinstance(player, Player):
            record = player
            if not record.id:
                record.id = generate_id()
        else:
            data = dict(player or {})
            if not data.get("id"):
                data.pop("id", None)
            record = Player.model_validate(data)

        now = self._next_modified()
        self.store.push(self.id, "players", record, set_fields={"modified": now})
        self.modified = now
        self.players.append(record)
        logger.debug("player added", game_id=self.id, player_id=record.id)
        return record

    def update_player(
        self,
        player: Player | Mapping[str, Any] | None,
        changes: Mapping[str, Any] | None = None,
    ) -> Player:
        """Apply changes to the player with the same id as player.

        player may be a detached copy; it is matched by id. Only the named
        fields of that one player are written to the store. modified is
        bumped even when changes is empty.
        """
        player_id = _player_id(player)
        index = next((i for i, p in enumerate(self.players) if player_id and p.id == player_id), None)
        if index is None:
            raise PlayerNotFoundError("The specified player could not be found in this game")
        if self.id is None:
            raise NotPersistedError("Cannot update a player in a game that has not been saved")

        target = self.players[index]
        changes = dict(changes or {})
        candidate = Player.model_validate({**target.model_dump(), **changes})
        validated = {key: getattr(candidate, key) for key in changes}

        now = self._next_modified()
        fields: dict[str, Any] = {f"players.{index}.{key}": value for key, value in validated.items()}
        fields["modified"] = now
        self.store.set_fields(self.id, fields)
        for key, value in validated.items():
            setattr(target, key, value)
        self.modified = now

        if isinstance(player, Player) and player is not target:
            for key in changes:
                setattr(player, key, getattr(target, key))
        return target

    def remove_player(self, player: Player | Mapping[str, Any] | None = None) -> bool:
        """Remove player by value from the store and the local list.

        Returns whether a local removal happened. The store removal is
        attempted regardless, so a local copy that has drifted from the
        stored one can report False while the stored player is removed (or
        True while it is not).
        """
        value = to_jsonable_python(player) if player is not None else None
        now = self._next_modified()
        if self.id is not None and value is not None:
            self.store.pull(self.id, "players", value, set_fields={"modified": now})
        elif self.id is not None:
            self.store.set_fields(self.id, {"modified": now})
        self.modified = now

        index = next(
            (i for i, p in enumerate(self.players) if p is player or p.model_dump(mode="json") == value),
            None,
        )
        if index is None:
            return False
        removed = self.players.pop(index)
        logger.debug("player removed", game_id=self.id, player_id=removed.id)
        return True

    def _next_modified(self) -> datetime:
        """Current UTC time, never earlier than the previous modified stamp."""
        now = datetime.now(tz=UTC)
        if self.modified is not None and self.modified > now:
            return self.modified
        return now
