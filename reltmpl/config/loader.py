# reltmpl/config/loader.py
"""
Handles loading and merging release configuration from TOML files and turning
it into the ReleaseContext/Artifact/BuildOptions the templates are built from.
"""
import re
import toml
from datetime import date, datetime, timezone
from pathlib import Path
from typing import Any, Dict, Mapping, Optional
import structlog

from reltmpl.exceptions import ConfigError

from .settings import Artifact, BuildOptions, GitInfo, ReleaseContext, RunConfig, Semver, EPOCH

log = structlog.get_logger(__name__)

PROJECT_CONFIG_FILENAMES = [".reltmpl.toml", "reltmpl.toml", "pyproject.toml"]
USER_CONFIG_DIR = Path.home() / ".config" / "reltmpl"
USER_CONFIG_FILE = USER_CONFIG_DIR / "config.toml"

KNOWN_TOP_LEVEL_KEYS = {
    "project_name", "version", "snapshot", "date",
    "semver", "git", "env", "replacements", "artifact", "build", "fields",
}

SEMVER_RE = re.compile(
    r"^v?(0|[1-9]\d*)\.(0|[1-9]\d*)\.(0|[1-9]\d*)"
    r"(?:-([0-9A-Za-z.-]+))?(?:\+[0-9A-Za-z.-]+)?$"
)

def _load_toml_file_data(file_path: Path, required: bool = False) -> Dict[str, Any]:
    if not file_path.is_file():
        if required:
            raise ConfigError(f"config file not found: {file_path}")
        return {}
    log.debug("loading_toml_config_file", path=str(file_path))
    try:
        data = toml.load(file_path)
    except (toml.TomlDecodeError, OSError) as e:
        log.error("config_file_load_error", path=str(file_path), error=str(e))
        raise ConfigError(f"could not read config file {file_path}: {e}") from e
    return data.get("tool", {}).get("reltmpl", {}) if file_path.name == "pyproject.toml" else data

def _merge(base: Dict[str, Any], override: Mapping[str, Any]) -> Dict[str, Any]:
    # tables are merged one level deep; scalar values are replaced.
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(base.get(key), dict):
            base[key] = {**base[key], **value}
        else:
            base[key] = value
    return base

def load_and_merge_configs(config_path: Optional[Path] = None) -> Dict[str, Any]:
    """User config first, then the project config (or ``config_path`` when given) on top."""
    merged: Dict[str, Any] = {}
    if USER_CONFIG_FILE.is_file():
        log.info("loading_user_global_config", path=str(USER_CONFIG_FILE))
        _merge(merged, _load_toml_file_data(USER_CONFIG_FILE))

    if config_path is not None:
        log.info("loading_explicit_config", path=str(config_path))
        _merge(merged, _load_toml_file_data(config_path, required=True))
        return merged

    for filename in PROJECT_CONFIG_FILENAMES:
        candidate = Path.cwd() / filename
        if candidate.is_file():
            project_settings = _load_toml_file_data(candidate)
            if project_settings:
                log.info("loading_project_local_config", path=str(candidate))
                _merge(merged, project_settings)
                break
    if not merged:
        log.debug("no_configuration_files_loaded")
    return merged

def parse_semver(version: str) -> Semver:
    match = SEMVER_RE.match(version.strip())
    if match is None:
        raise ConfigError(f"version {version!r} is not a semantic version; set [semver] explicitly")
    major, minor, patch, prerelease = match.groups()
    return Semver(int(major), int(minor), int(patch), prerelease or "")

def _table(data: Mapping[str, Any], key: str) -> Dict[str, Any]:
    value = data.get(key, {})
    if not isinstance(value, dict):
        raise ConfigError(f"'{key}' must be a table, got {type(value).__name__}")
    return value

def _str(table: Mapping[str, Any], key: str, default: str = "") -> str:
    value = table.get(key, default)
    if isinstance(value, (dict, list)):
        raise ConfigError(f"'{key}' must be a plain value, got {type(value).__name__}")
    return str(value)

def _int(table: Mapping[str, Any], key: str) -> int:
    value = table.get(key, 0)
    if isinstance(value, bool) or not isinstance(value, int):
        raise ConfigError(f"'{key}' must be an integer, got {value!r}")
    return value

def _datetime(value: Any, key: str) -> datetime:
    if isinstance(value, datetime):
        return value
    if isinstance(value, str):
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            return datetime.fromisoformat(text)
        except ValueError as e:
            raise ConfigError(f"'{key}' is not an ISO-8601 date: {value!r}") from e
    if isinstance(value, date):
        # bare TOML dates mean midnight UTC.
        return datetime(value.year, value.month, value.day, tzinfo=timezone.utc)
    if isinstance(value, int) and not isinstance(value, bool):
        return datetime.fromtimestamp(value, tz=timezone.utc)
    raise ConfigError(f"'{key}' must be a date, got {value!r}")

def _string_map(table: Mapping[str, Any]) -> Dict[str, str]:
    return {str(k): _str(table, k) for k in table} if table else {}

def load_release_context(data: Mapping[str, Any], environ: Optional[Mapping[str, str]] = None) -> ReleaseContext:
    """Builds a ReleaseContext from merged config data.

    Without an ``[env]`` table the given ``environ`` (usually ``os.environ``)
    becomes the environment map.
    """
    unknown = set(data) - KNOWN_TOP_LEVEL_KEYS
    if unknown:
        log.warning("unknown_config_keys_ignored", keys=sorted(unknown))

    version = _str(data, "version")
    semver_table = _table(data, "semver")
    if semver_table:
        semver = Semver(
            _int(semver_table, "major"), _int(semver_table, "minor"),
            _int(semver_table, "patch"), _str(semver_table, "prerelease"),
        )
    elif version:
        semver = parse_semver(version)
    else:
        semver = Semver()

    git_table = _table(data, "git")
    commit = _str(git_table, "commit")
    git = GitInfo(
        current_tag=_str(git_table, "tag"),
        branch=_str(git_table, "branch"),
        commit=commit,
        short_commit=_str(git_table, "short_commit", commit[:7]),
        full_commit=_str(git_table, "full_commit", commit),
        commit_date=_datetime(git_table["commit_date"], "git.commit_date") if "commit_date" in git_table else EPOCH,
        url=_str(git_table, "url"),
    )

    if "env" in data:
        env = _string_map(_table(data, "env"))
    else:
        env = dict(environ or {})

    snapshot = data.get("snapshot", False)
    if not isinstance(snapshot, bool):
        raise ConfigError(f"'snapshot' must be true or false, got {snapshot!r}")

    ctx = ReleaseContext(
        project_name=_str(data, "project_name"),
        version=version,
        semver=semver,
        git=git,
        env=env,
        snapshot=snapshot,
    )
    if "date" in data:
        ctx.date = _datetime(data["date"], "date")
    log.debug("release_context_loaded", project=ctx.project_name, version=ctx.version)
    return ctx

def load_run_config(data: Mapping[str, Any], environ: Optional[Mapping[str, str]] = None) -> RunConfig:
    run_config = RunConfig(
        context=load_release_context(data, environ),
        replacements=_string_map(_table(data, "replacements")),
        extra_fields=dict(_table(data, "fields")),
    )
    artifact_table = _table(data, "artifact")
    if artifact_table:
        extra: Dict[str, Any] = {}
        if "binary" in artifact_table:
            extra["Binary"] = _str(artifact_table, "binary")
        if "upload_hash" in artifact_table:
            extra["ArtifactUploadHash"] = _str(artifact_table, "upload_hash")
        run_config.artifact = Artifact(
            name=_str(artifact_table, "name"),
            path=_str(artifact_table, "path"),
            goos=_str(artifact_table, "os"),
            goarch=_str(artifact_table, "arch"),
            goarm=_str(artifact_table, "arm"),
            gomips=_str(artifact_table, "mips"),
            extra=extra,
        )
    build_table = _table(data, "build")
    if build_table:
        run_config.build = BuildOptions(
            target=_str(build_table, "target"),
            ext=_str(build_table, "ext"),
            name=_str(build_table, "name"),
            path=_str(build_table, "path"),
            os=_str(build_table, "os"),
            arch=_str(build_table, "arch"),
        )
    return run_config
