from pydantic import BaseModel, ConfigDict, Field

MAX_PLAYER_NAME_LENGTH = 50
MAX_ACCESS_CODE_LENGTH = 32


class JoinRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    access_code: str = Field(min_length=1, max_length=MAX_ACCESS_CODE_LENGTH)
    name: str | None = Field(default=None, max_length=MAX_PLAYER_NAME_LENGTH)


class JoinResult(BaseModel, frozen=True):
    """Identifiers handed back to a device that joined a game."""

    game_id: str
    player_id: str


class AccessCodeResponse(BaseModel):
    access_code: str
    unique: bool | None = None
