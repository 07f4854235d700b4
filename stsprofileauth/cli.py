"""
Command-line interface for sts-profile-auth.
"""

import argparse
import json
import logging
import shlex
import sys

from .core import fill_profile_map, get_aws_config_dir
from .errors import ConfigLocationError, ProfileNotFound, StsClientError
from .instance import StsInstance


def print_profiles(profiles):
    """Print resolved profiles, one per line, without any key material."""
    if not profiles:
        print("No usable profiles found", file=sys.stderr)
        return

    width = max(len(name) for name in profiles)
    for name in sorted(profiles):
        profile = profiles[name]
        details = [profile.region]
        if profile.role_arn:
            details.append(f"role={profile.role_arn}")
        if profile.source_profile:
            details.append(f"source={profile.source_profile}")
        print(f"{name:<{width}}  {'  '.join(details)}")


def format_exports(credentials, region):
    """Format credentials as shell export statements."""
    lines = [
        f"export AWS_ACCESS_KEY_ID={shlex.quote(credentials.access_key_id)}",
        f"export AWS_SECRET_ACCESS_KEY={shlex.quote(credentials.secret_access_key)}",
    ]
    if credentials.session_token:
        lines.append(f"export AWS_SESSION_TOKEN={shlex.quote(credentials.session_token)}")
    else:
        lines.append("unset AWS_SESSION_TOKEN")
    lines.append(f"export AWS_REGION={shlex.quote(region)}")
    return "\n".join(lines)


def format_credential_process(credentials):
    """Format credentials as AWS CLI credential_process JSON."""
    data = {
        "Version": 1,
        "AccessKeyId": credentials.access_key_id,
        "SecretAccessKey": credentials.secret_access_key,
    }
    if credentials.session_token:
        data["SessionToken"] = credentials.session_token
    if credentials.expiration is not None:
        data["Expiration"] = credentials.expiration.isoformat()
    return json.dumps(data, indent=2)


def build_parser():
    parser = argparse.ArgumentParser(
        prog="sts-profile-auth",
        description="Resolve AWS profiles and assume their roles with auto-refreshing STS credentials",
        epilog="Examples:\n"
        "  sts-profile-auth --list                          # Show usable profiles\n"
        "  eval $(sts-profile-auth --profile prod --eval)   # Export credentials for 'prod'\n"
        "  sts-profile-auth --profile prod --whoami         # Show the identity 'prod' resolves to\n"
        "\n"
        "As a credential_process in ~/.aws/config:\n"
        "  credential_process = sts-profile-auth --profile prod --credential-process",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "--profile",
        default=None,
        help="Profile to use (defaults to AWS_PROFILE, then 'default')",
    )
    action = parser.add_mutually_exclusive_group()
    action.add_argument(
        "--list",
        action="store_true",
        help="List the profiles that resolve to a usable access key pair",
    )
    action.add_argument(
        "--eval",
        action="store_true",
        help="Print shell export statements for the profile's credentials",
    )
    action.add_argument(
        "--credential-process",
        action="store_true",
        help="Print the profile's credentials as credential_process JSON",
    )
    action.add_argument(
        "--whoami",
        action="store_true",
        help="Print the identity returned by sts:GetCallerIdentity",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Log debug output to stderr",
    )
    return parser


def main(argv=None):
    """Main CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )

    try:
        if args.list:
            print_profiles(fill_profile_map())
            return 0

        if not (args.eval or args.credential_process or args.whoami):
            parser.print_help(sys.stderr)
            return 1

        instance = StsInstance.new(args.profile)

        if args.whoami:
            identity = instance.get_caller_identity()
            print(json.dumps(identity, indent=2))
            return 0

        credentials = instance.get_credentials()
        if args.eval:
            print(format_exports(credentials, instance.get_region()))
        else:
            print(format_credential_process(credentials))
        return 0

    except ConfigLocationError as e:
        print(f"Error: {e}", file=sys.stderr)
        print(
            "  Set AWS_CONFIG_FILE to the directory holding 'config' and 'credentials'",
            file=sys.stderr,
        )
        return 1
    except ProfileNotFound as e:
        print(f"Error: {e}", file=sys.stderr)
        print(
            f"  Looked in {get_aws_config_dir()}. Run 'sts-profile-auth --list' to see usable profiles",
            file=sys.stderr,
        )
        return 1
    except StsClientError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
