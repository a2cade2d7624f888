"""
Database initialization script - provisions the Icebreaker Cosmos DB database

Run once to create the database and the pairs/teams/users containers:
    python scripts/init_db.py
"""

import asyncio
import sys
from pathlib import Path
from dotenv import load_dotenv

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

# Load environment variables before settings are built
load_dotenv()

import logging

from icebreaker.core.config import settings, validate_settings
from icebreaker.db.cosmos import CosmosConnection

logging.basicConfig(level=logging.INFO, format='%(levelname)s: %(message)s')
logger = logging.getLogger(__name__)


async def provision():
    """Create the database and containers if they do not exist yet"""
    validate_settings()

    logger.info(f"🔌 Connecting to Cosmos DB: {settings.COSMOS_DB_ENDPOINT_URL}")
    connection = CosmosConnection(settings)

    try:
        await connection.ensure_initialized()

        mode = "shared (database level)" if connection.uses_shared_throughput else "per container"
        logger.info(f"✅ Database '{settings.COSMOS_DB_DATABASE_NAME}' ready")
        logger.info(f"  Throughput: {settings.COSMOS_DEFAULT_THROUGHPUT} RU/s, {mode}")

        for container in (connection.pairs, connection.teams, connection.users):
            logger.info(f"  ✅ {container.id}")

    except Exception as e:
        logger.error(f"\n❌ Error: {e}")
        raise

    finally:
        await connection.close()


async def main():
    """Main initialization"""
    logger.info("=" * 60)
    logger.info("  Icebreaker Database Setup")
    logger.info("=" * 60 + "\n")

    await provision()

    logger.info("\n" + "=" * 60)


if __name__ == "__main__":
    asyncio.run(main())
