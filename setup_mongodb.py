"""
MongoDB Setup Script
Tests the connection, creates the relay indexes and reports message counts.
"""
import asyncio
from relay.config import settings
from relay.models.message import MessageStatus
from relay.repositories import db_manager, MongoMessageStore


async def setup_mongodb():
    """Initialize the relay database with its collection and indexes."""
    print("🔄 Connecting to MongoDB...")
    print(f"   URI: {settings.mongodb_uri}")
    print(f"   Database: {settings.mongodb_database}")
    print()

    try:
        await db_manager.connect()
        store = MongoMessageStore(db_manager.database)
        await store.ping()
        print("✅ Connection successful!")
        print()

        db = db_manager.database
        existing_collections = await db.list_collection_names()
        print(f"📦 Existing collections: {existing_collections or 'None'}")
        print()

        print("🔨 Creating indexes...")
        await db_manager.create_indexes()
        print("✅ Indexes created successfully!")
        print()

        messages_indexes = await db.messages.index_information()
        print(f"📊 Messages collection: {len(messages_indexes)} indexes")
        for idx_name in messages_indexes:
            print(f"      - {idx_name}")
        print()

        print("📝 Message counts:")
        for status in MessageStatus:
            print(f"   {status.value:<8} {await store.count_by_status(status)}")
        print()

    except Exception as e:
        print(f"❌ Error: {e}")
        print()
        print("💡 Troubleshooting:")
        print("   1. Check MONGODB_URI points at a reachable server")
        print("   2. Check that the credentials in the URI are correct")
        print("   3. Ensure the server accepts connections from this host")
        raise

    finally:
        await db_manager.disconnect()
        print("👋 Disconnected from MongoDB")


if __name__ == "__main__":
    asyncio.run(setup_mongodb())
