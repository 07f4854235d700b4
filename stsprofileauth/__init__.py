"""
sts-profile-auth: authenticate with a profile from your AWS config files.

Resolves a named profile from ``~/.aws/config`` and ``~/.aws/credentials``,
follows a ``source_profile`` reference to find its long-lived key pair, and
when the profile names a ``role_arn`` hands out temporary STS credentials for
that role that refresh themselves shortly before they expire.

Key features:
- Lenient parsing and merging of the config and credentials files
- One level of source_profile indirection for role profiles
- Single-flight, thread-safe credential refresh
- boto3 sessions and clients backed by the refreshing credentials
"""

__version__ = "0.7.2"
__license__ = "MIT"

from .core import (
    DEFAULT_PROFILE,
    DEFAULT_REGION,
    PROFILE_REGEX,
    ProfileRecord,
    build_profile_record,
    fill_profile_map,
    get_aws_config_dir,
    get_aws_config_path,
    get_aws_credentials_path,
    get_profile_name,
    merge_profile_tables,
    parse_config_file,
    parse_config_lines,
    profile_from_table,
    resolve_profile,
)
from .credentials import (
    DEFAULT_REFRESH_MARGIN,
    DEFAULT_SESSION_NAME,
    AssumeRoleFetcher,
    AutoRefreshingProvider,
    CredentialChain,
    TemporaryCredentials,
    build_credential_chain,
    get_provider,
    get_region,
)
from .errors import (
    ConfigLocationError,
    CredentialRefreshError,
    NoHomeDirectory,
    ProfileNotFound,
    RemoteApiError,
    StsClientError,
    TransportInitError,
    UnresolvableProfile,
)
from .instance import StsInstance

__all__ = [
    # Python API - Most commonly used for programmatic access
    "StsInstance",
    "resolve_profile",
    "build_credential_chain",
    "get_region",
    "get_provider",
    # Profile table
    "ProfileRecord",
    "fill_profile_map",
    "build_profile_record",
    "profile_from_table",
    "merge_profile_tables",
    "get_profile_name",
    # Config file parsing
    "PROFILE_REGEX",
    "parse_config_lines",
    "parse_config_file",
    "get_aws_config_dir",
    "get_aws_config_path",
    "get_aws_credentials_path",
    # Credentials
    "CredentialChain",
    "TemporaryCredentials",
    "AssumeRoleFetcher",
    "AutoRefreshingProvider",
    # Defaults
    "DEFAULT_PROFILE",
    "DEFAULT_REGION",
    "DEFAULT_REFRESH_MARGIN",
    "DEFAULT_SESSION_NAME",
    # Errors
    "StsClientError",
    "ConfigLocationError",
    "NoHomeDirectory",
    "ProfileNotFound",
    "UnresolvableProfile",
    "TransportInitError",
    "CredentialRefreshError",
    "RemoteApiError",
]
