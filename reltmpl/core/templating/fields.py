"""
Field keys available to release templates.

Keys are case-sensitive and are written in templates as ``{{ .ProjectName }}``,
``{{ .Env.HOME }}`` and so on.
"""
from typing import Any, Dict

# Field Set handed to the template engine.
Fields = Dict[str, Any]

# general keys.
PROJECT_NAME = "ProjectName"
VERSION = "Version"
RAW_VERSION = "RawVersion"
TAG = "Tag"
BRANCH = "Branch"
COMMIT = "Commit"
SHORT_COMMIT = "ShortCommit"
FULL_COMMIT = "FullCommit"
COMMIT_DATE = "CommitDate"
COMMIT_TIMESTAMP = "CommitTimestamp"
GIT_URL = "GitURL"
MAJOR = "Major"
MINOR = "Minor"
PATCH = "Patch"
PRERELEASE = "Prerelease"
IS_SNAPSHOT = "IsSnapshot"
ENV = "Env"
DATE = "Date"
TIMESTAMP = "Timestamp"

# artifact-only keys.
OS = "Os"
ARCH = "Arch"
ARM = "Arm"
MIPS = "Mips"
BINARY = "Binary"
ARTIFACT_NAME = "ArtifactName"
ARTIFACT_PATH = "ArtifactPath"

# gitlab only.
ARTIFACT_UPLOAD_HASH = "ArtifactUploadHash"

# build keys.
NAME = "Name"
EXT = "Ext"
PATH = "Path"
TARGET = "Target"

GENERAL_KEYS = (
    PROJECT_NAME, VERSION, RAW_VERSION, TAG, BRANCH, COMMIT, SHORT_COMMIT,
    FULL_COMMIT, COMMIT_DATE, COMMIT_TIMESTAMP, GIT_URL, MAJOR, MINOR, PATCH,
    PRERELEASE, IS_SNAPSHOT, ENV, DATE, TIMESTAMP,
)
ARTIFACT_KEYS = (OS, ARCH, ARM, MIPS, BINARY, ARTIFACT_NAME, ARTIFACT_PATH, ARTIFACT_UPLOAD_HASH)
BUILD_KEYS = (TARGET, EXT, NAME, PATH, OS, ARCH)
