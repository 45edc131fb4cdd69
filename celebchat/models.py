from pydantic import BaseModel, Field


class Identity(BaseModel):
    sub: str
    email: str | None = None


# --- Persona Models ---


class PersonaInfo(BaseModel):
    id: str
    name: str
    avatar: str


class IndexContext(BaseModel):
    title: str
    personas: list[PersonaInfo]
    models: dict[str, str] = Field(default_factory=dict)
    user: Identity | None = None


class ChatContext(BaseModel):
    personas: list[PersonaInfo]
    selected: PersonaInfo
    selected_id: str
    model: str
    user: Identity | None = None


# --- Health Models ---


class BackendHealth(BaseModel):
    status: str
    models: int | None = None
    error: str | None = None


class HealthStatus(BaseModel):
    status: str
    backend: BackendHealth
