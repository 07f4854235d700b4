"""
StsInstance: a resolved profile plus everything needed to build AWS clients from it.
"""

import logging
import threading

import boto3
import botocore.session
from botocore.credentials import DeferredRefreshableCredentials
from botocore.exceptions import BotoCoreError, ClientError

from .core import resolve_profile
from .credentials import (
    DEFAULT_REFRESH_MARGIN,
    TemporaryCredentials,
    build_credential_chain,
    get_provider,
    get_region,
)
from .errors import RemoteApiError, TransportInitError

logger = logging.getLogger(__name__)


class StsInstance:
    """
    Credentials for one profile.

    Profiles with a ``role_arn`` sign requests with temporary credentials from
    an AutoRefreshingProvider; all other profiles use their static key pair.
    """

    def __init__(self, profile, refresh_margin=DEFAULT_REFRESH_MARGIN):
        self.profile = profile
        self.chain = build_credential_chain(profile)
        self.refresh_margin = refresh_margin
        self._provider = None
        self._provider_lock = threading.Lock()

    @classmethod
    def new(cls, profile_name=None, profiles=None, refresh_margin=DEFAULT_REFRESH_MARGIN):
        """
        Create an instance for a profile name, AWS_PROFILE, or 'default'.

        Raises:
            ProfileNotFound: If the profile cannot be resolved
            ConfigLocationError: If the config directory cannot be determined
        """
        profile = resolve_profile(profile_name, profiles=profiles)
        logger.debug(f"Using profile '{profile.name}' in {profile.region}")
        return cls(profile, refresh_margin=refresh_margin)

    @property
    def role_arn(self):
        return self.chain.role_arn

    def get_region(self):
        return get_region(self.chain)

    def get_provider(self):
        """
        Get the auto-refreshing provider for this profile's role.

        The same provider is returned on every call so all clients built from
        this instance share one credential cache.

        Returns:
            AutoRefreshingProvider, or None for profiles without a role
        """
        with self._provider_lock:
            if self._provider is None:
                self._provider = get_provider(self.chain, refresh_margin=self.refresh_margin)
            return self._provider

    def get_credentials(self):
        """
        Get credentials to sign requests with.

        Returns:
            TemporaryCredentials; for profiles without a role this is the
            static key pair with no token and no expiration
        """
        provider = self.get_provider()
        if provider is None:
            return TemporaryCredentials(
                access_key_id=self.chain.aws_access_key_id,
                secret_access_key=self.chain.aws_secret_access_key,
            )
        return provider.get_credentials()

    def _refresh_metadata(self):
        credentials = self.get_provider().get_credentials()
        return {
            "access_key": credentials.access_key_id,
            "secret_key": credentials.secret_access_key,
            "token": credentials.session_token,
            "expiry_time": credentials.expiration.isoformat(),
        }

    def get_session(self):
        """
        Create a boto3 session that signs with this profile's credentials.

        Raises:
            TransportInitError: If the session cannot be created
        """
        try:
            if self.get_provider() is None:
                return boto3.Session(
                    aws_access_key_id=self.chain.aws_access_key_id,
                    aws_secret_access_key=self.chain.aws_secret_access_key,
                    region_name=self.get_region(),
                )

            botocore_session = botocore.session.get_session()
            # set_credentials() only takes static keys, so refreshable
            # credentials go into the private slot get_credentials() reads.
            botocore_session._credentials = DeferredRefreshableCredentials(
                refresh_using=self._refresh_metadata,
                method="sts-assume-role",
            )
            return boto3.Session(botocore_session=botocore_session, region_name=self.get_region())
        except (BotoCoreError, ValueError) as e:
            raise TransportInitError(f"Session init failed: {e}") from e

    def get_client(self, service_name, region=None):
        """
        Create a boto3 client for any service.

        Args:
            service_name: AWS service name, e.g. 'ec2'
            region: Region override (default: the profile's region)

        Raises:
            TransportInitError: If the client cannot be created
        """
        session = self.get_session()
        try:
            return session.client(service_name, region_name=region or self.get_region())
        except (BotoCoreError, ValueError) as e:
            raise TransportInitError(f"HttpClient init failed for {service_name}: {e}") from e

    def get_caller_identity(self):
        """
        Call sts:GetCallerIdentity with this profile's credentials.

        Returns:
            dict with UserId, Account and Arn

        Raises:
            RemoteApiError: If the call fails
        """
        client = self.get_client("sts")
        try:
            response = client.get_caller_identity()
        except (ClientError, BotoCoreError) as e:
            raise RemoteApiError(f"AWS API error: {e}") from e
        return {key: response[key] for key in ("UserId", "Account", "Arn") if key in response}
