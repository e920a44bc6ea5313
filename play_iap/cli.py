"""
Command-line access to Google Play verification and subscription management.

Examples:
  # Verify a one-time purchase
  play-iap verify --package-name com.example.app --product-id coin_pack \\
      --receipt <token> --key-file service-account.json

  # Verify a subscription (also fetches subscriptionsv2)
  play-iap verify --subscription --package-name com.example.app \\
      --product-id monthly --receipt <token> --key-file service-account.json

  # Push the next renewal out by a week
  play-iap defer --package-name com.example.app --product-id monthly \\
      --receipt <token> --key-file service-account.json \\
      --expected-expiry 1700000000000 --desired-expiry 1700604800000
"""

import argparse
import asyncio
import dataclasses
import json
import sys
from pathlib import Path
from typing import Any

from play_iap.exceptions import BillingError
from play_iap.models.google_play import DeferralInfo, PaymentRequest, ServiceAccountKey
from play_iap.observability.logging import get_logger, setup_logging
from play_iap.services.google_play_provider import GooglePlayProvider
from play_iap.services.http_transport import Transport

logger = get_logger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="play-iap",
        description="Verify and manage Google Play purchases",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("--package-name", required=True, help="Android package name")
    common.add_argument("--product-id", required=True, help="Product or subscription ID")
    common.add_argument("--receipt", required=True, help="Purchase token from the device")
    common.add_argument(
        "--key-file", required=True, type=Path, help="Service account JSON key file"
    )

    verify = subparsers.add_parser("verify", parents=[common], help="Verify a purchase")
    verify.add_argument(
        "--subscription", action="store_true", help="Receipt is a subscription token"
    )

    subparsers.add_parser("cancel", parents=[common], help="Cancel a subscription")
    subparsers.add_parser("acknowledge", parents=[common], help="Acknowledge a subscription")

    defer = subparsers.add_parser("defer", parents=[common], help="Defer a subscription renewal")
    defer.add_argument(
        "--expected-expiry", type=int, required=True, help="Current expiry (epoch millis)"
    )
    defer.add_argument(
        "--desired-expiry", type=int, required=True, help="New expiry (epoch millis)"
    )

    return parser


def _build_request(args: argparse.Namespace) -> PaymentRequest:
    return PaymentRequest(
        package_name=args.package_name,
        product_id=args.product_id,
        receipt=args.receipt,
        credential=ServiceAccountKey.parse(args.key_file.read_bytes()),
        is_subscription=getattr(args, "subscription", False),
    )


async def run(args: argparse.Namespace, transport: Transport | None = None) -> Any:
    """Execute the parsed command and return a JSON-serializable result."""
    provider = GooglePlayProvider(transport)
    request = _build_request(args)

    if args.command == "verify":
        result = await provider.verify_payment(request)
        return dataclasses.asdict(result)
    if args.command == "cancel":
        await provider.cancel_subscription(request)
        return {"cancelled": True}
    if args.command == "defer":
        deferral = DeferralInfo(
            expected_expiry_time_millis=args.expected_expiry,
            desired_expiry_time_millis=args.desired_expiry,
        )
        return await provider.defer_subscription(request, deferral)
    if args.command == "acknowledge":
        return {"response": await provider.acknowledge_subscription(request)}

    raise ValueError(f"Unknown command: {args.command}")


def main(argv: list[str] | None = None, transport: Transport | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    # stdout carries only the JSON result
    setup_logging(stream=sys.stderr)

    try:
        result = asyncio.run(run(args, transport))
    except BillingError as exc:
        logger.error("play_iap_command_failed", command=args.command, error=str(exc))
        return 1
    except OSError as exc:
        logger.error("play_iap_key_file_unreadable", path=str(args.key_file), error=str(exc))
        return 1

    print(json.dumps(result, indent=2))
    return 0


if __name__ == "__main__":
    sys.exit(main())
