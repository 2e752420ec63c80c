import sys
import asyncio
from farm_knowledge.activity_store import ActivityStore
from farm_knowledge.config import settings
from farm_knowledge.errors import sanitize_message

async def check_connection() -> bool:
    print("--- Checking MongoDB Connection ---")
    print(f"Connection String (masked): {sanitize_message(settings.final_mongo_uri)}")

    store = ActivityStore(settings)
    try:
        await store.ping()
        print("✅ Connection successful!")

        total, embedded = await store.embedding_coverage()
        coverage = round(embedded / total * 100) if total else 0
        print(f"   Total records: {total}")
        print(f"   Records with embeddings: {embedded}")
        print(f"   Embedding coverage: {coverage}%")
        return True
    except Exception as e:
        print("❌ Connection failed!")
        print(f"Error: {sanitize_message(e)}")
        return False
    finally:
        await store.close()

if __name__ == "__main__":
    if asyncio.run(check_connection()):
        sys.exit(0)
    else:
        sys.exit(1)
