"""
Dataclasses describing the already-computed release state that templates are
expanded against: project/version info, git metadata, artifacts and builds.
"""
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Optional

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)

@dataclass
class Semver:
    # resolved semantic version components.
    major: int = 0
    minor: int = 0
    patch: int = 0
    prerelease: str = ""

@dataclass
class GitInfo:
    # git state as computed by the release pipeline.
    current_tag: str = ""
    branch: str = ""
    commit: str = ""
    short_commit: str = ""
    full_commit: str = ""
    commit_date: datetime = EPOCH
    url: str = ""

@dataclass
class ReleaseContext:
    # snapshot of a release run, consumed by Template.new.
    project_name: str = ""
    version: str = ""
    semver: Semver = field(default_factory=Semver)
    git: GitInfo = field(default_factory=GitInfo)
    env: Dict[str, str] = field(default_factory=dict)
    date: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    snapshot: bool = False

@dataclass
class Artifact:
    """A built file as seen by packaging/publishing steps.

    ``extra`` is an open attribute bag; the templating layer reads the
    ``Binary`` and ``ArtifactUploadHash`` entries from it.
    """
    name: str = ""
    path: str = ""
    goos: str = ""
    goarch: str = ""
    goarm: str = ""
    gomips: str = ""
    extra: Dict[str, Any] = field(default_factory=dict)

@dataclass
class BuildOptions:
    # per-build-target options handed to a builder.
    target: str = ""
    ext: str = ""
    name: str = ""
    path: str = ""
    os: str = ""
    arch: str = ""

@dataclass
class RunConfig:
    # everything the CLI loads from TOML besides the release context itself.
    context: ReleaseContext = field(default_factory=ReleaseContext)
    replacements: Dict[str, str] = field(default_factory=dict)
    artifact: Optional[Artifact] = None
    build: Optional[BuildOptions] = None
    extra_fields: Dict[str, Any] = field(default_factory=dict)
