#!/usr/bin/env python3
"""
Script to check which Azure services are configured and whether a running API is healthy
"""

import argparse
import sys

from azure_lens.client.api_client import ApiError, LensApiClient
from azure_lens.core import config


def configured_services():
    return {
        "Vision": bool(config.VISION_ENDPOINT and config.VISION_API_KEY),
        "Translator": bool(config.TRANSLATOR_API_KEY),
        "OpenAI": bool(config.OPENAI_ENDPOINT and config.OPENAI_API_KEY),
        "Blob Storage": bool(config.STORAGE_CONNECTION_STRING),
        "Key Vault": bool(config.KEY_VAULT_URL),
    }


def check_api(base_url: str) -> bool:
    print(f"\nChecking API health at {base_url} ...")
    try:
        health = LensApiClient(base_url, timeout=10).check_health()
    except ApiError as e:
        # /health answers 503 when degraded, which still means the API is up
        if e.status_code == 503:
            print(f"⚠️  API is running but degraded: {e.message}")
            return True
        print(f"❌ API check failed: {e.message} ({e.details})")
        return False

    print(f"✅ API is {health.get('status')} (version {health.get('version')})")
    for name, service in (health.get("services") or {}).items():
        print(f"   {name}: {service.get('status')}")
    return True


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Verify Azure Lens setup")
    parser.add_argument("--api-url", help="Base URL of a running API to ping")
    args = parser.parse_args(argv)

    print("🔍 Azure Lens Setup Verification")
    print("=" * 50)
    print(f"Environment: {config.ENVIRONMENT}")

    services = configured_services()
    for name, ok in services.items():
        print(f"{'✅' if ok else '❌'} {name} {'configured' if ok else 'not configured'}")

    healthy = True
    if args.api_url:
        healthy = check_api(args.api_url)

    print("\n" + "=" * 50)
    return 0 if healthy and any(services.values()) else 1


if __name__ == "__main__":
    sys.exit(main())
