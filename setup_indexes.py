import sys
import json
import asyncio
from farm_knowledge.activity_store import ActivityStore
from farm_knowledge.config import settings
from farm_knowledge.errors import sanitize_message

async def setup_indexes() -> bool:
    """
    Creates the text and filter indexes used by the engine.
    Atlas Vector Search indexes cannot be created through the driver on every
    cluster tier, so the definition is printed for the Atlas UI / CLI instead.
    """
    print(f"--- INDEX SETUP: database '{settings.mongo_db_name}' ---")
    store = ActivityStore(settings)
    try:
        await store.ensure_indexes()
    except Exception as e:
        print(f"❌ Index setup failed: {sanitize_message(e)}")
        return False
    finally:
        await store.close()

    print("--- INDEX SETUP: Text and filter indexes ready ---")
    print("\nCreate this Atlas Vector Search index on "
          f"'{settings.records_collection}' to enable semantic search:")
    print(json.dumps(store.vector_index_definition(), indent=2))
    print("\nUntil it exists, searches fall back to keyword results only.")
    return True

if __name__ == "__main__":
    sys.exit(0 if asyncio.run(setup_indexes()) else 1)
