#!/usr/bin/env python3
"""
Wallet Storage Reset Script
Removes the persisted wallet state of one namespace
"""

import sys
from pathlib import Path

# Add src to path
sys.path.insert(0, str(Path(__file__).parent / "src"))

from gelap.config import get_settings
from gelap.storage import SQLKeyValueStore, WalletStorage, get_db_manager


def reset_database(namespace=None):
    """Delete keys, notes, tree and watermark stored under namespace."""
    settings = get_settings()
    namespace = namespace or settings.storage_namespace
    print(f"🔄 Resetting wallet storage '{namespace}' in {settings.database_url}...")

    db = get_db_manager(settings.database_url)
    with db.get_session() as session:
        before = db.count_entries(session, prefix=f"{namespace}_")

    WalletStorage(SQLKeyValueStore(db), namespace).clear()

    print(f"\n✅ Removed {before} entries")
    print("⚠️  Keys derived with a timestamp nonce cannot be re-derived; notes must be rediscovered by sync")


if __name__ == "__main__":
    try:
        reset_database(sys.argv[1] if len(sys.argv) > 1 else None)
    except KeyboardInterrupt:
        print("\n\n⚠️  Operation cancelled by user")
        sys.exit(1)
    except Exception as e:
        print(f"\n❌ Fatal error: {e}")
        sys.exit(1)
