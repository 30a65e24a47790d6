"""
Typed structures describing one update: where to fetch artifacts from, where to
install them, and which files to remove or replace.
"""

from dataclasses import dataclass, field
from pathlib import PurePath

from pydantic import BaseModel, Field, field_validator

from syncraft_updater.utils.path import validate_install_root, validate_relative_path


@dataclass(frozen=True)
class ServerEndpoint:
    """Host and port of the update server."""

    host: str
    port: int

    def base_url(self) -> str:
        host = f"[{self.host}]" if ":" in self.host else self.host
        return f"http://{host}:{self.port}"


@dataclass(frozen=True)
class Manifest:
    """
    The decoded update instructions.

    `removals` and `updates` map a path relative to `install_root` to a content
    hash. For updates the hash is the key the server knows the artifact by.
    """

    endpoint: ServerEndpoint
    install_root: PurePath
    removals: dict[str, str] = field(default_factory=dict)
    updates: dict[str, str] = field(default_factory=dict)

    @property
    def total_items(self) -> int:
        return len(self.removals) + len(self.updates)


class ManifestDocument(BaseModel):
    """
    JSON description of a manifest, used by tooling that produces the binary
    form (the `encode` command).
    """

    host: str = Field(min_length=1)
    port: int = Field(gt=0, le=65535)
    install_root: str
    remove: dict[str, str] = Field(default_factory=dict)
    update: dict[str, str] = Field(default_factory=dict)

    @field_validator("install_root")
    @classmethod
    def validate_root(cls, v: str) -> str:
        validate_install_root(v)
        return v

    @field_validator("remove", "update")
    @classmethod
    def validate_paths(cls, v: dict[str, str]) -> dict[str, str]:
        for path in v:
            validate_relative_path(path)
        return v

    def to_manifest(self) -> Manifest:
        return Manifest(
            endpoint=ServerEndpoint(host=self.host, port=self.port),
            install_root=PurePath(self.install_root),
            removals=dict(self.remove),
            updates=dict(self.update),
        )
