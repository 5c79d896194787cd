#!/usr/bin/env python3
"""
Generate secure secrets for the Porra application
Run this script to generate SECRET_KEY, WTF_CSRF_SECRET_KEY and SYNC_API_SECRET
"""

import secrets


def generate_secrets():
    """Generate secure random keys for the application"""
    print("🔐 Generating secure secrets for Porra...")
    print("=" * 50)

    print(f"SECRET_KEY={secrets.token_urlsafe(32)}")
    print(f"WTF_CSRF_SECRET_KEY={secrets.token_urlsafe(32)}")
    # Bearer token for the cron job pushing match updates to /api/sync
    print(f"SYNC_API_SECRET={secrets.token_urlsafe(32)}")

    print("=" * 50)
    print("📝 Copy these values to your .env file")
    print("⚠️  Keep these secrets secure and never commit them to version control!")


if __name__ == "__main__":
    generate_secrets()
