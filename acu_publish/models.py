"""Data models shared by the tag fetcher, name replacer and platform client."""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class Credentials(BaseModel):
    """Acumatica login body"""
    model_config = ConfigDict(frozen=True)

    name: str
    password: str
    tenant: str = ""
    branch: str = ""
    locale: str = "EN-US"


class Tag(BaseModel):
    """A repository tag that matched the configured pattern"""
    name: str
    sha: str = ""
    url: str = ""


class FetchResult(BaseModel):
    """Outcome of looking up the latest matching tag for one repository"""
    repository: str
    error: Optional[str] = None
    latest_tag: Optional[str] = None
    sha: Optional[str] = None
    total_matching_tags: int = 0
    all_matching_tags: List[str] = Field(default_factory=list)

    @property
    def succeeded(self) -> bool:
        return self.error is None and bool(self.latest_tag)


class Replacement(BaseModel):
    repository: str
    target_name: str
    original_name: str
    latest_tag: str
    new_version: str
    index: int


class ReplacementResult(BaseModel):
    replacements: List[Replacement] = Field(default_factory=list)
    updated_names: List[str] = Field(default_factory=list)
    original_names: List[str] = Field(default_factory=list)


class PublishedProject(BaseModel):
    """Customization project as reported by GetPublished; extra fields are kept."""
    model_config = ConfigDict(extra="allow")

    name: str


class PlatformSession(BaseModel):
    """Cookie header captured at login and replayed on every authenticated call"""
    model_config = ConfigDict(frozen=True)

    cookie_header: str = ""


class PublishRequest(BaseModel):
    """PublishBegin request body"""
    model_config = ConfigDict(populate_by_name=True)

    project_names: List[str] = Field(alias="projectNames")
    is_merge_with_existing_packages: bool = Field(default=False, alias="isMergeWithExistingPackages")
    is_only_validation: bool = Field(default=False, alias="isOnlyValidation")
    is_only_db_updates: bool = Field(default=False, alias="isOnlyDbUpdates")
    is_replay_previously_executed_scripts: bool = Field(
        default=False, alias="isReplayPreviouslyExecutedScripts"
    )
    tenant_mode: str = Field(default="All", alias="tenantMode")

    def to_wire(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True)
