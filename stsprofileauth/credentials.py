"""
Static credential chains and the auto-refreshing assume-role provider.
"""

import logging
import threading
from concurrent.futures import Future
from concurrent.futures import TimeoutError as FutureTimeoutError
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Optional

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from .core import DEFAULT_REGION
from .errors import CredentialRefreshError, StsClientError, TransportInitError

logger = logging.getLogger(__name__)

DEFAULT_SESSION_NAME = "default"

# Matches botocore's advisory refresh window.
DEFAULT_REFRESH_MARGIN = timedelta(minutes=15)


def _utcnow():
    return datetime.now(timezone.utc)


def _mask(access_key_id):
    return f"{access_key_id[:4]}..." if access_key_id else "<none>"


def _chain_error(error, cause):
    """Attach ``cause`` to ``error`` the way ``raise error from cause`` does."""
    error.__cause__ = cause
    error.__suppress_context__ = True
    return error


@dataclass(frozen=True)
class CredentialChain:
    """Static key pair, region and optional role used to authenticate STS calls."""

    aws_access_key_id: str
    aws_secret_access_key: str = field(repr=False)
    region: str = DEFAULT_REGION
    role_arn: Optional[str] = None


@dataclass(frozen=True)
class TemporaryCredentials:
    """
    A credential set as handed to request signers.

    Assumed-role credentials carry a session token and a timezone-aware UTC
    ``expiration``. ``StsInstance.get_credentials`` also returns this type for
    profiles without a role: the static key pair, with no token and
    ``expiration=None``, since those keys never expire.
    """

    access_key_id: str
    secret_access_key: str = field(repr=False)
    session_token: Optional[str] = field(default=None, repr=False)
    expiration: Optional[datetime] = None


def build_credential_chain(record):
    """
    Build a CredentialChain from a resolved ProfileRecord.

    The record already carries the source profile's keys where it has one, so
    no lookup or network access happens here.
    """
    return CredentialChain(
        aws_access_key_id=record.aws_access_key_id,
        aws_secret_access_key=record.aws_secret_access_key,
        region=record.region,
        role_arn=record.role_arn,
    )


def get_region(chain):
    """Get the region name of a credential chain."""
    return chain.region


def parse_expiration(value):
    """Normalise an STS expiration (datetime or ISO string) to an aware UTC datetime."""
    if isinstance(value, str):
        value = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if not isinstance(value, datetime):
        raise TypeError(f"Unexpected expiration type: {type(value).__name__}")
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class AssumeRoleFetcher:
    """Calls sts:AssumeRole with a static credential chain."""

    def __init__(self, chain, role_arn, session_name=DEFAULT_SESSION_NAME, client=None):
        self.chain = chain
        self.role_arn = role_arn
        self.session_name = session_name
        self._client = client

    def _get_client(self):
        if self._client is None:
            try:
                self._client = boto3.client(
                    "sts",
                    aws_access_key_id=self.chain.aws_access_key_id,
                    aws_secret_access_key=self.chain.aws_secret_access_key,
                    region_name=self.chain.region,
                )
            except (BotoCoreError, ValueError) as e:
                raise TransportInitError(f"STS client init failed: {e}") from e
        return self._client

    def __call__(self):
        """
        Assume the role once.

        Returns:
            TemporaryCredentials

        Raises:
            TransportInitError: If the STS client cannot be built
            CredentialRefreshError: If the call fails or the response is malformed
        """
        client = self._get_client()
        logger.debug(f"Assuming role {self.role_arn} with key {_mask(self.chain.aws_access_key_id)}")

        try:
            response = client.assume_role(RoleArn=self.role_arn, RoleSessionName=self.session_name)
        except (ClientError, BotoCoreError) as e:
            raise CredentialRefreshError(f"Error obtaining STS Credentials {e}") from e

        try:
            credentials = response["Credentials"]
            return TemporaryCredentials(
                access_key_id=credentials["AccessKeyId"],
                secret_access_key=credentials["SecretAccessKey"],
                session_token=credentials["SessionToken"],
                expiration=parse_expiration(credentials["Expiration"]),
            )
        except (KeyError, TypeError, ValueError) as e:
            raise CredentialRefreshError(f"Malformed AssumeRole response: {e}") from e


class AutoRefreshingProvider:
    """
    Caches temporary credentials and refreshes them shortly before they expire.

    At most one refresh is in flight at any time. Callers that arrive while a
    refresh is running wait on the same future and get its result or its
    error. The refresh itself runs on its own thread, so a caller that stops
    waiting (see ``timeout``) does not abort it; the result is cached for
    whoever asks next. A failed refresh leaves the cache as it was.
    """

    def __init__(self, fetcher, refresh_margin=DEFAULT_REFRESH_MARGIN, clock=None):
        self._fetcher = fetcher
        self._refresh_margin = refresh_margin
        self._clock = clock or _utcnow
        self._lock = threading.Lock()
        self._credentials = None
        self._refresh_future = None

    @property
    def refresh_margin(self):
        return self._refresh_margin

    def _needs_refresh(self, credentials):
        if credentials is None:
            return True
        return credentials.expiration - self._refresh_margin <= self._clock()

    def get_credentials(self, timeout=None):
        """
        Get a currently valid credential set, refreshing it if needed.

        Args:
            timeout: Seconds to wait for a running refresh (default: no limit)

        Returns:
            TemporaryCredentials

        Raises:
            CredentialRefreshError: If the refresh failed or the wait timed out
            TransportInitError: If the STS client could not be built
        """
        with self._lock:
            credentials = self._credentials
            if not self._needs_refresh(credentials):
                return credentials

            future = self._refresh_future
            if future is None:
                future = Future()
                self._refresh_future = future
                thread = threading.Thread(
                    target=self._refresh,
                    args=(future,),
                    name="sts-credential-refresh",
                    daemon=True,
                )
                thread.start()

        try:
            return future.result(timeout=timeout)
        except FutureTimeoutError as e:
            raise CredentialRefreshError("Timed out waiting for STS credential refresh") from e

    def _check_credentials(self, credentials):
        if not isinstance(credentials, TemporaryCredentials):
            raise CredentialRefreshError(
                f"Refresh returned {type(credentials).__name__}, not TemporaryCredentials"
            )
        expiration = credentials.expiration
        if not isinstance(expiration, datetime) or expiration.tzinfo is None:
            raise CredentialRefreshError("Refreshed credentials have no timezone-aware expiration")
        if self._needs_refresh(credentials):
            logger.warning(
                f"Refreshed credentials expire at {expiration.isoformat()}, "
                f"inside the {self._refresh_margin} refresh margin"
            )
        return credentials

    def _refresh(self, future):
        credentials = None
        error = None
        try:
            credentials = self._check_credentials(self._fetcher())
        except StsClientError as e:
            error = e
        except Exception as e:
            error = _chain_error(CredentialRefreshError(f"Error obtaining STS Credentials {e}"), e)
        finally:
            if credentials is None and error is None:
                error = CredentialRefreshError("STS credential refresh was interrupted")
            self._finish_refresh(future, credentials=credentials, error=error)

    def _finish_refresh(self, future, credentials=None, error=None):
        with self._lock:
            if error is None:
                self._credentials = credentials
            self._refresh_future = None

        if error is not None:
            logger.warning(f"STS credential refresh failed: {error}")
            future.set_exception(error)
        else:
            logger.debug(f"STS credentials refreshed, valid until {credentials.expiration.isoformat()}")
            future.set_result(credentials)


def get_provider(chain, refresh_margin=DEFAULT_REFRESH_MARGIN, session_name=DEFAULT_SESSION_NAME):
    """
    Get an auto-refreshing provider for the chain's role.

    Returns:
        AutoRefreshingProvider, or None if the chain has no role to assume
    """
    if not chain.role_arn:
        return None
    fetcher = AssumeRoleFetcher(chain, chain.role_arn, session_name=session_name)
    return AutoRefreshingProvider(fetcher, refresh_margin=refresh_margin)
