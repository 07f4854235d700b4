"""
Exceptions raised by sts-profile-auth.
"""


class StsClientError(Exception):
    """Base class for every error raised by this package."""


class ConfigLocationError(StsClientError):
    """No home directory could be determined and no override was given."""

    def __init__(self, message="No HOME directory"):
        super().__init__(message)


NoHomeDirectory = ConfigLocationError


class ProfileNotFound(StsClientError):
    """A requested profile (or the source profile it points at) is missing."""

    def __init__(self, profile_name):
        self.profile_name = profile_name
        super().__init__(f"Profile {profile_name} is not available")


class UnresolvableProfile(StsClientError):
    """A profile exists but has no usable key pair."""

    def __init__(self, profile_name):
        self.profile_name = profile_name
        super().__init__(f"Profile {profile_name} has no usable access key pair")


class TransportInitError(StsClientError):
    """Building a boto3 session or client failed."""


class CredentialRefreshError(StsClientError):
    """The role-assumption call failed or returned something unusable."""


class RemoteApiError(StsClientError):
    """Any other AWS API error, with the original message preserved."""
