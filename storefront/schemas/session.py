from pydantic import BaseModel, ConfigDict

from storefront.schemas.principal import Principal


class SessionSnapshot(BaseModel):
    """Principal plus credential, as persisted by the session storage adapter."""

    model_config = ConfigDict(frozen=True)

    principal: Principal
    token: str | None = None
