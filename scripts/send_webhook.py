"""Sign a Razorpay-style webhook body and POST it to the payments service.

Useful for replaying a delivery several times (same `--event-id`) to check
that duplicates are acknowledged without changing payment state.
"""

import argparse
import json
from pathlib import Path
from uuid import uuid4

import httpx

from tutorhub.services.payments.signature import compute_signature


def main() -> None:
    """Parse CLI args, sign the payload, and send it `--repeat` times."""

    parser = argparse.ArgumentParser(description="Send a signed webhook to the payments service.")
    parser.add_argument("--payments-url", default="http://localhost:8001")
    parser.add_argument("--secret", required=True, help="Webhook secret shared with the service")
    parser.add_argument("--json", dest="json_inline", default=None, help="Inline JSON payload")
    parser.add_argument("--file", dest="json_file", default=None, help="Path to JSON file")
    parser.add_argument("--event-id", default=None, help="x-razorpay-event-id; random when omitted")
    parser.add_argument("--repeat", type=int, default=1)
    parser.add_argument("--tamper", action="store_true", help="Flip one signature byte to test rejection")
    args = parser.parse_args()

    if bool(args.json_inline) == bool(args.json_file):
        raise SystemExit("Provide exactly one of --json or --file")

    if args.json_inline:
        payload = json.loads(args.json_inline)
    else:
        payload = json.loads(Path(args.json_file).read_text())

    body = json.dumps(payload).encode("utf-8")
    signature = compute_signature(body, args.secret)
    if args.tamper:
        signature = ("0" if signature[0] != "0" else "1") + signature[1:]
    headers = {
        "content-type": "application/json",
        "x-razorpay-signature": signature,
        "x-razorpay-event-id": args.event_id or f"evt_{uuid4().hex[:14]}",
    }

    with httpx.Client(timeout=10.0) as client:
        for attempt in range(1, args.repeat + 1):
            resp = client.post(f"{args.payments_url}/webhooks/razorpay", content=body, headers=headers)
            print(f"attempt={attempt} status={resp.status_code} body={resp.text}")


if __name__ == "__main__":
    main()
