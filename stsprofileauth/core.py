"""
Profile parsing and resolution for sts-profile-auth.

Reads the shared AWS ``config`` and ``credentials`` files, merges them into a
single profile table and resolves each entry into a ``ProfileRecord``.
"""

import logging
import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Optional

from .errors import ConfigLocationError, ProfileNotFound, UnresolvableProfile

logger = logging.getLogger(__name__)

DEFAULT_REGION = "us-east-1"
DEFAULT_PROFILE = "default"

CONFIG_DIR_ENV = "AWS_CONFIG_FILE"
PROFILE_ENV = "AWS_PROFILE"

CONFIG_FILE_NAMES = ("config", "credentials")

PROFILE_REGEX = re.compile(r"^\[(profile )?([^\]]+)\]$")


@dataclass(frozen=True)
class ProfileRecord:
    """Profile meta-data: either a profile with an access key, or one that assumes a role."""

    name: str
    region: str
    aws_access_key_id: str
    aws_secret_access_key: str = field(repr=False)
    role_arn: Optional[str] = None
    source_profile: Optional[str] = None


def parse_config_lines(lines):
    """
    Parse the lines of an AWS config or credentials file.

    Args:
        lines: Iterable of raw text lines

    Returns:
        dict mapping profile name to a dict of key/value directives
    """
    result = {}
    profile = None

    for raw_line in lines:
        line = raw_line.strip()
        if not line or line.startswith("#"):
            continue

        match = PROFILE_REGEX.match(line)
        if match:
            profile = match.group(2)
            continue

        parts = line.split("=", 1)
        if len(parts) != 2:
            continue
        key, value = parts[0].strip(), parts[1].strip()
        if not key or not value or profile is None:
            continue

        result.setdefault(profile, {})[key] = value

    return result


def parse_config_file(file_path):
    """
    Parse an AWS config or credentials file.

    Args:
        file_path: Path to the file

    Returns:
        dict of dicts as returned by parse_config_lines, or None if the path
        is missing or is not a regular file
    """
    path = Path(file_path)
    if not path.is_file():
        return None

    with open(path, "r", encoding="utf-8", errors="replace") as f:
        return parse_config_lines(f)


def get_aws_config_dir():
    """
    Get the directory holding the AWS config and credentials files.

    ``AWS_CONFIG_FILE`` overrides the default ``~/.aws``. When it names an
    existing file, the file's directory is used.

    Raises:
        ConfigLocationError: If no override is set and HOME cannot be determined
    """
    override = os.environ.get(CONFIG_DIR_ENV)
    if override:
        path = Path(override).expanduser()
        if path.is_file():
            return path.parent
        return path

    try:
        home = Path.home()
    except (RuntimeError, KeyError) as e:
        raise ConfigLocationError() from e
    return home / ".aws"


def get_aws_config_path():
    """Get the AWS config file path."""
    return get_aws_config_dir() / "config"


def get_aws_credentials_path():
    """Get the AWS credentials file path."""
    return get_aws_config_dir() / "credentials"


def merge_profile_tables(tables):
    """
    Merge raw profile tables in order.

    A profile seen in a later table has its keys merged into the earlier
    entry (later values win); new profiles are added as they are.
    """
    merged = {}
    for table in tables:
        for name, values in table.items():
            if name in merged:
                merged[name].update(values)
            else:
                merged[name] = dict(values)
    return merged


def build_profile_record(profile_name, profile_table):
    """
    Build a ProfileRecord from a merged raw profile table.

    A profile with a ``source_profile`` borrows the source's key pair when the
    source carries both halves of it. Only one level of indirection is
    followed.

    Args:
        profile_name: Name of the profile to resolve
        profile_table: dict of dicts as returned by merge_profile_tables

    Returns:
        ProfileRecord

    Raises:
        ProfileNotFound: If the profile, or the source profile it references,
            is not in the table
        UnresolvableProfile: If no complete access key pair is left after
            source-profile substitution
    """
    values = profile_table.get(profile_name)
    if values is None:
        raise ProfileNotFound(profile_name)

    region = values.get("region", DEFAULT_REGION)
    role_arn = values.get("role_arn")
    source_profile = values.get("source_profile")
    access_key = values.get("aws_access_key_id")
    secret_key = values.get("aws_secret_access_key")

    if source_profile is not None:
        source = profile_table.get(source_profile)
        if source is None:
            raise ProfileNotFound(source_profile)
        source_key = source.get("aws_access_key_id")
        source_secret = source.get("aws_secret_access_key")
        if source_key and source_secret:
            access_key, secret_key = source_key, source_secret

    if not access_key or not secret_key:
        raise UnresolvableProfile(profile_name)

    return ProfileRecord(
        name=profile_name,
        region=region,
        aws_access_key_id=access_key,
        aws_secret_access_key=secret_key,
        role_arn=role_arn,
        source_profile=source_profile,
    )


def profile_from_table(profile_name, profile_table):
    """Like build_profile_record, but return None for profiles that cannot be resolved."""
    try:
        return build_profile_record(profile_name, profile_table)
    except (ProfileNotFound, UnresolvableProfile) as e:
        logger.debug(f"Skipping profile '{profile_name}': {e}")
        return None


def fill_profile_map(config_dir=None) -> Dict[str, ProfileRecord]:
    """
    Read ``config`` and ``credentials`` and return every resolvable profile.

    Args:
        config_dir: Directory holding the two files (default: get_aws_config_dir())

    Returns:
        dict mapping profile name to ProfileRecord; empty if neither file exists

    Raises:
        ConfigLocationError: If the config directory cannot be determined
    """
    if config_dir is None:
        config_dir = get_aws_config_dir()
    config_dir = Path(config_dir)

    tables = []
    for file_name in CONFIG_FILE_NAMES:
        table = parse_config_file(config_dir / file_name)
        if table is None:
            logger.debug(f"No {file_name} file in {config_dir}")
            continue
        tables.append(table)

    raw_profiles = merge_profile_tables(tables)

    profiles = {}
    for name in raw_profiles:
        record = profile_from_table(name, raw_profiles)
        if record is not None:
            profiles[name] = record

    return profiles


def get_profile_name(profile_name=None):
    """Pick the profile to use: explicit name, then AWS_PROFILE, then 'default'."""
    if profile_name:
        return profile_name
    return os.environ.get(PROFILE_ENV) or DEFAULT_PROFILE


def resolve_profile(profile_name=None, profiles=None):
    """
    Look up a resolved profile by name.

    Args:
        profile_name: Profile to resolve (default: AWS_PROFILE or 'default')
        profiles: Pre-built profile map (default: fill_profile_map())

    Returns:
        ProfileRecord

    Raises:
        ProfileNotFound: If the profile is not in the resolved table
        ConfigLocationError: If the config directory cannot be determined
    """
    name = get_profile_name(profile_name)
    if profiles is None:
        profiles = fill_profile_map()

    record = profiles.get(name)
    if record is None:
        raise ProfileNotFound(name)
    return record
