"""Registry configuration."""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class RegistryConfig(BaseSettings):
    """Settings for an IdentityService and its content store client.

    Every field can be set from a ``CLAIM_REGISTRY_<FIELD>`` environment
    variable, or from a ``.env`` file passed as ``_env_file``.

    Attributes:
        handle_vocab_length: Number of words handle indices may refer to
        handle_max_length: Longest handle, in words
        clear_social_on_revoke: Drop every follow/friend edge of an address
            when its claim is revoked
        content_api_url: Base URL of the IPFS-compatible HTTP API
        content_timeout: Request timeout for the content store, in seconds
    """

    model_config = SettingsConfigDict(env_prefix="CLAIM_REGISTRY_", extra="ignore")

    handle_vocab_length: int = Field(default=2048, gt=0, le=0x10000)
    handle_max_length: int = Field(default=4, gt=0, le=255)
    clear_social_on_revoke: bool = False
    content_api_url: str = "http://127.0.0.1:5001"
    content_timeout: float = Field(default=30.0, gt=0)
