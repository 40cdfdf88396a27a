"""
Pydantic models for the VPM package repository builder.

This module defines all data models used throughout the application, including:
- The source configuration describing the repository listing
- GitHub release and asset payloads
- Package descriptors read from each release's package.json
- The assembled package index written to disk

All models use Pydantic for validation, serialization, and type safety.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
    model_serializer,
    model_validator,
)


# ---------------------------------------------------------------------------
# Source Configuration Models
# ---------------------------------------------------------------------------


class Author(BaseModel):
    """
    Author of a package listing.

    Accepts either a bare string (the author's name) or an object with
    ``name``/``url`` keys. Written back as a bare string when no URL is set.
    """

    name: Optional[str] = None
    url: Optional[str] = None

    @model_validator(mode="before")
    @classmethod
    def _coerce(cls, value: Any) -> Any:
        if isinstance(value, str):
            return {"name": value}
        if isinstance(value, dict):
            # Keys are matched case-insensitively; unknown keys are dropped.
            data: Dict[str, Any] = {}
            for key, item in value.items():
                lowered = str(key).lower()
                if lowered in ("name", "url"):
                    data[lowered] = item
            return data
        return value

    @model_serializer(mode="wrap")
    def _serialize(self, handler):
        if self.url is None:
            return self.name
        return handler(self)


class Source(BaseModel):
    """
    Top-level configuration describing the listing and the repositories to scan.

    Loaded from ``source.json`` (see ``vpm_repository.data.source``) and never
    modified afterwards.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    name: str = Field(description="Display name of the package listing.")
    id: str = Field(description="Unique identifier of the listing (e.g. 'com.example.vpm').")
    url: str = Field(description="Public URL the generated index will be served from.")
    author: Optional[Author] = Field(
        default=None,
        description="Author applied to every package version in the index.",
    )
    repositories: List[str] = Field(
        default_factory=list,
        alias="githubRepos",
        description="GitHub repositories to scan, as 'owner/repo' strings.",
    )

    @field_validator("author")
    @classmethod
    def _drop_empty_author(cls, value: Optional[Author]) -> Optional[Author]:
        # An author with neither name nor url would serialize as null.
        if value is not None and value.name is None and value.url is None:
            return None
        return value


# ---------------------------------------------------------------------------
# GitHub Release Models
# ---------------------------------------------------------------------------


class Asset(BaseModel):
    """One file attached to a GitHub release."""

    name: str
    content_type: Optional[str] = None
    browser_download_url: str
    size: Optional[int] = None


class Release(BaseModel):
    """One published release of a scanned repository."""

    name: Optional[str] = None
    tag_name: Optional[str] = None
    draft: bool = False
    assets: List[Asset] = Field(default_factory=list)

    @property
    def label(self) -> str:
        return self.name or self.tag_name or "<unnamed>"


# ---------------------------------------------------------------------------
# Package Models
# ---------------------------------------------------------------------------


class PackageDescriptor(BaseModel):
    """
    Package metadata extracted from a release's ``package.json`` asset.

    ``url`` and ``zip_sha256`` are back-filled by the ingestion pipeline once
    the release's zip archive has been found; ``author`` is replaced by the
    source author when the index is assembled. Field order here is the order
    used when the index is serialized.
    """

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    name: str
    display_name: Optional[str] = Field(default=None, alias="displayName")
    version: str
    author: Optional[Author] = None
    url: Optional[str] = None
    description: Optional[str] = None
    unity: Optional[str] = None
    unity_release: Optional[str] = Field(default=None, alias="unityRelease")
    dependencies: Optional[Dict[str, str]] = None
    vpm_dependencies: Optional[Dict[str, str]] = Field(default=None, alias="vpmDependencies")
    legacy_folders: Optional[Dict[str, str]] = Field(default=None, alias="legacyFolders")
    legacy_files: Optional[Dict[str, str]] = Field(default=None, alias="legacyFiles")
    legacy_packages: Optional[List[str]] = Field(default=None, alias="legacyPackages")
    changelog_url: Optional[str] = Field(default=None, alias="changelogUrl")
    zip_sha256: Optional[str] = Field(default=None, alias="zipSHA256")


class PackageVersions(BaseModel):
    """All published versions of a single package, newest first."""

    versions: Dict[str, PackageDescriptor] = Field(default_factory=dict)


class PackageIndex(BaseModel):
    """
    The assembled repository listing consumed by VPM clients.

    Persisted at: the configured output path (``index.json`` by default).
    """

    name: str
    author: Optional[Author] = None
    url: str
    id: str
    packages: Dict[str, PackageVersions] = Field(default_factory=dict)
