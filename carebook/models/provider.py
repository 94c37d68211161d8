from sqlmodel import Field, SQLModel


class Provider(SQLModel, table=True):
    __tablename__ = "providers"
    id: str = Field(primary_key=True)
    first_name: str = ""
    middle_name: str = ""
    last_name: str = ""
    suffix: str = ""
    name: str | None = None  # legacy single-field name
    specialization: str | None = None


class ProviderPublic(SQLModel):
    id: str
    display_name: str
    specialization: str
