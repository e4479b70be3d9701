"""Fetch and print parent calls plus the current quota for one enrollment."""

import argparse
import json

import httpx


def main() -> None:
    """CLI entrypoint for quota checks."""

    parser = argparse.ArgumentParser(description="Fetch parent-call quota snapshot for an enrollment.")
    parser.add_argument("--parent-calls-url", default="http://localhost:8002")
    parser.add_argument("--enrollment-id", required=True)
    args = parser.parse_args()

    resp = httpx.get(f"{args.parent_calls_url}/parent-calls/{args.enrollment_id}", timeout=10.0)
    resp.raise_for_status()
    print(json.dumps(resp.json(), indent=2))


if __name__ == "__main__":
    main()
