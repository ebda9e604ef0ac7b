from datetime import UTC, datetime

from sqlmodel import Field, SQLModel


class Sweat(SQLModel, table=True):
    id: int | None = Field(default=None, primary_key=True)
    username: str = Field(index=True)
    uuid: str | None = Field(default=None, index=True)

    star: float = Field(default=0)
    fkdr: float = Field(default=0)
    wlr: float = Field(default=0)
    bblr: float = Field(default=0)
    kdr: float = Field(default=0)
    finals: float = Field(default=0)
    final_deaths: float = Field(default=0)
    beds: float = Field(default=0)
    beds_lost: float = Field(default=0)
    kills: float = Field(default=0)
    deaths: float = Field(default=0)

    # "Beaten by" flags
    milo: bool = Field(default=False)
    potat: bool = Field(default=False)
    aballs: bool = Field(default=False)
    zoiv: bool = Field(default=False)
    cheating: bool = Field(default=False)

    date_added: str  # YYYY-MM-DD format
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC), index=True)
    urchin_tag: str | None = Field(default=None)  # Comma-separated tag names
