from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, ConfigDict

from distmirror.blobstores.base import BaseBlobStore
from distmirror.constants import DEFAULT_ORIGIN_HOST
from distmirror.exceptions import BlobStoreError


class BlobStoreSchema(BaseModel):

    type: str
    options: dict[str, Any] = {}


class ConfigSchema(BaseModel):

    upstream_prefix: str
    import_branch_prefix: str = "c"
    version: int
    no_storage_download: bool = False
    origin_host: str = DEFAULT_ORIGIN_HOST
    blob_store: BlobStoreSchema | None = None


class RunConfig(BaseModel):
    """
    Immutable settings for one package run, handed to every component.
    """

    model_config = ConfigDict(frozen=True)

    package: str
    upstream_location: str
    import_branch_prefix: str = "c"
    version: int
    no_storage_download: bool = False
    origin_host: str = DEFAULT_ORIGIN_HOST


class Config:
    """
    Config file parser
    """

    def __init__(self, config_data: ConfigSchema):
        self.config_data = config_data

    @classmethod
    def load(cls, config_path: Path) -> "Config":
        with open(config_path) as fh:
            return cls(ConfigSchema(**(yaml.safe_load(fh.read()) or {})))

    def run_config(self, package: str, **overrides) -> RunConfig:
        """
        Builds the frozen settings for one package. Overrides that are None
        are ignored, so CLI options can be passed straight through.
        """
        values = {
            "package": package,
            "upstream_location": (
                f"{self.config_data.upstream_prefix.rstrip('/')}/{package}"
            ),
            "import_branch_prefix": self.config_data.import_branch_prefix,
            "version": self.config_data.version,
            "no_storage_download": self.config_data.no_storage_download,
            "origin_host": self.config_data.origin_host,
        }
        values.update({k: v for k, v in overrides.items() if v is not None})
        return RunConfig(**values)

    def blob_store(self) -> BaseBlobStore | None:
        """
        Instantiates the configured blob store, if there is one.
        """
        # Implementations register themselves on import
        from distmirror.blobstores import local, s3  # noqa: F401

        store_config = self.config_data.blob_store
        if store_config is None:
            return None
        try:
            store_class = BaseBlobStore.implementation_get(store_config.type)
        except KeyError:
            raise BlobStoreError(f"Unknown blob store type {store_config.type!r}")
        return store_class(**store_config.options)
