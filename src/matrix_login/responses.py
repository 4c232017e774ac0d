"""Client-server API response bodies used during login."""

from pydantic import BaseModel, ConfigDict, Field, SecretStr


class HomeserverInformation(BaseModel):
    base_url: str


class DiscoveryInformation(BaseModel):
    """Body of ``/.well-known/matrix/client`` (also embedded in login responses)."""

    model_config = ConfigDict(populate_by_name=True)

    homeserver: HomeserverInformation = Field(alias="m.homeserver")


class VersionsResponse(BaseModel):
    versions: list[str]
    unstable_features: dict[str, bool] = Field(default_factory=dict)


class LoginFlow(BaseModel):
    model_config = ConfigDict(extra="ignore")

    type: str


class LoginFlowsResponse(BaseModel):
    flows: list[LoginFlow] = Field(default_factory=list)


class LoginResponse(BaseModel):
    user_id: str
    access_token: SecretStr
    device_id: str
    well_known: DiscoveryInformation | None = None
