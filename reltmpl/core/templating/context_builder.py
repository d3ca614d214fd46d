"""
Builds the general Field Set from a release context snapshot.
"""
import calendar
from datetime import datetime, timezone
from typing import Tuple
import structlog

from reltmpl.config.settings import ReleaseContext
from . import fields as f

log = structlog.get_logger(__name__)

def _utc(moment: datetime) -> datetime:
    # naive datetimes are taken to already be in UTC.
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc)

def format_rfc3339(moment: datetime) -> str:
    """Formats a datetime as a UTC RFC 3339 string, e.g. ``2024-05-01T10:00:00Z``."""
    return _utc(moment).strftime("%Y-%m-%dT%H:%M:%SZ")

def unix_seconds(moment: datetime) -> int:
    return calendar.timegm(_utc(moment).utctimetuple())

def date_fields(moment: datetime) -> Tuple[str, int]:
    return format_rfc3339(moment), unix_seconds(moment)

def build_general_fields(ctx: ReleaseContext) -> f.Fields:
    """Constructs the general fields every template can reference."""
    sv = ctx.semver
    raw_version = "%d.%d.%d" % (sv.major, sv.minor, sv.patch)
    commit_date, commit_timestamp = date_fields(ctx.git.commit_date)
    date, timestamp = date_fields(ctx.date)

    general_fields: f.Fields = {
        f.PROJECT_NAME: ctx.project_name,
        f.VERSION: ctx.version,
        f.RAW_VERSION: raw_version,
        f.TAG: ctx.git.current_tag,
        f.BRANCH: ctx.git.branch,
        f.COMMIT: ctx.git.commit,
        f.SHORT_COMMIT: ctx.git.short_commit,
        f.FULL_COMMIT: ctx.git.full_commit,
        f.COMMIT_DATE: commit_date,
        f.COMMIT_TIMESTAMP: commit_timestamp,
        f.GIT_URL: ctx.git.url,
        f.ENV: ctx.env,
        f.DATE: date,
        f.TIMESTAMP: timestamp,
        f.MAJOR: sv.major,
        f.MINOR: sv.minor,
        f.PATCH: sv.patch,
        f.PRERELEASE: sv.prerelease,
        f.IS_SNAPSHOT: ctx.snapshot,
    }
    log.debug("general_fields_built", project=ctx.project_name, version=ctx.version)
    return general_fields
