"""Version strings shown by the command line."""

from __future__ import annotations

import os
import platform
import sysconfig

PACKAGE_VERSION = "0.3.0"


def version_suffix(commit_hash: str | None, dirty: bool, describe: str | None) -> str:
    """Return ``"-dev"`` for a dirty tree or a build not on a tag, else ``""``.

    Without a commit hash no suffix is derived.
    """
    if not commit_hash:
        return ""
    sha_short = commit_hash[:7]
    not_on_tag = (describe or "").strip().endswith(f"-g{sha_short}")
    return "-dev" if dirty or not_on_tag else ""


def short_version(version: str, suffix: str, commit_hash: str) -> str:
    """Return e.g. ``v0.3.0 (f6e511ee)``."""
    return f"v{version}{suffix} ({commit_hash[:8]})"


def long_version(
    version: str,
    suffix: str,
    commit_hash: str,
    built: str,
    target: str,
    runtime: str,
    features: str,
) -> str:
    """Return the multi-line version description."""
    rows = [
        ("Version:", f"{version}{suffix}"),
        ("Commit:", commit_hash),
        ("Built:", built),
        ("Target:", target),
        ("Runtime:", runtime),
        ("Features:", features),
    ]
    return "\n".join(f"{label:<13}{value}" for label, value in rows)


COMMIT_HASH = os.environ.get("MEV_COMMIT_HASH", "unknown")
BUILD_TIMESTAMP = os.environ.get("MEV_BUILD_TIMESTAMP", "unknown")
VERSION_SUFFIX = os.environ.get("MEV_VERSION_SUFFIX", "")
TARGET = sysconfig.get_platform()
RUNTIME_VERSION = platform.python_version()
FEATURES = "boost,build"

SHORT_VERSION = short_version(PACKAGE_VERSION, VERSION_SUFFIX, COMMIT_HASH)
LONG_VERSION = long_version(
    PACKAGE_VERSION,
    VERSION_SUFFIX,
    COMMIT_HASH,
    BUILD_TIMESTAMP,
    TARGET,
    RUNTIME_VERSION,
    FEATURES,
)