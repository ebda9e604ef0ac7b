from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, field_validator
from pydantic.alias_generators import to_camel

FLAG_FIELDS = ("milo", "potat", "aballs", "zoiv", "cheating")
STAT_FIELDS = (
    "star",
    "fkdr",
    "wlr",
    "bblr",
    "kdr",
    "finals",
    "final_deaths",
    "beds",
    "beds_lost",
    "kills",
    "deaths",
)


class CamelModel(BaseModel):
    """JSON bodies use camelCase keys (finalDeaths, dateAdded, urchinTag...)."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


def _truthy(v: Any) -> bool:
    return bool(v)


class SweatCreate(CamelModel):
    username: str | None = None  # Checked by crud.create_sweat so a missing name is a 400
    uuid: str | None = None

    star: float = 0
    fkdr: float = 0
    wlr: float = 0
    bblr: float = 0
    kdr: float = 0
    finals: float = 0
    final_deaths: float = 0
    beds: float = 0
    beds_lost: float = 0
    kills: float = 0
    deaths: float = 0

    milo: bool = False
    potat: bool = False
    aballs: bool = False
    zoiv: bool = False
    cheating: bool = False

    date_added: str | None = None

    @field_validator(*STAT_FIELDS, mode="before")
    @classmethod
    def default_stats(cls, v):
        # null, "" and other falsy values count as "not given"
        return v or 0

    @field_validator(*FLAG_FIELDS, mode="before")
    @classmethod
    def coerce_flags(cls, v):
        return _truthy(v)

    @field_validator("uuid", "date_added", mode="before")
    @classmethod
    def blank_to_none(cls, v):
        return v or None


class SweatUpdate(CamelModel):
    milo: bool | None = None
    potat: bool | None = None
    aballs: bool | None = None
    zoiv: bool | None = None
    urchin_tag: str | None = None

    @field_validator("milo", "potat", "aballs", "zoiv", mode="before")
    @classmethod
    def coerce_flags(cls, v):
        return _truthy(v)


class SweatResponse(CamelModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)

    id: int
    username: str
    uuid: str | None = None
    star: float
    fkdr: float
    wlr: float
    bblr: float
    kdr: float
    finals: float
    final_deaths: float
    beds: float
    beds_lost: float
    kills: float
    deaths: float
    milo: bool
    potat: bool
    aballs: bool
    zoiv: bool
    cheating: bool
    date_added: str
    created_at: datetime
    urchin_tag: str | None = None


class DeleteResponse(CamelModel):
    ok: bool
    deleted_id: int


class PingResponse(BaseModel):
    ok: bool
    ts: str
