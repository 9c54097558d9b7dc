import motor.motor_asyncio
from pymongo import ASCENDING, DESCENDING

from app.utils.config import get_settings
from app.utils.logging_config import get_logger

logger = get_logger(__name__)

RESUMES = "resumes"
SCORES = "resume_scores"
MATCHES = "job_matches"


def create_client(mongo_details: str = None) -> motor.motor_asyncio.AsyncIOMotorClient:
    """New Motor client; a client is bound to the event loop that first uses it."""
    return motor.motor_asyncio.AsyncIOMotorClient(mongo_details or get_settings().mongo_details)


settings = get_settings()
logger.info(f"Initializing MongoDB connection to database: {settings.db_name}")

try:
    client = create_client(settings.mongo_details)
    db = client[settings.db_name]
    logger.info("MongoDB client initialized successfully")
except Exception as e:
    logger.error(f"Failed to initialize MongoDB client: {e}")
    raise


async def init_indexes(database=None):
    """Index initialization for collections."""
    database = database if database is not None else db
    logger.info("Starting database index initialization")

    index_specs = [
        (RESUMES, [("resume_id", ASCENDING)], {"unique": True}),
        (RESUMES, [("owner_id", ASCENDING), ("uploaded_at", DESCENDING)], {}),
        (SCORES, [("resume_id", ASCENDING)], {"unique": True}),
        (MATCHES, [("match_id", ASCENDING)], {"unique": True}),
        (MATCHES, [("owner_id", ASCENDING), ("match_score", DESCENDING)], {}),
        (MATCHES, [("delivered", ASCENDING), ("owner_id", ASCENDING)], {}),
    ]

    for collection, keys, options in index_specs:
        try:
            await database[collection].create_index(keys, **options)
            logger.debug(f"Created index on {collection}.{[k for k, _ in keys]}")
        except Exception as e:
            if "already exists" in str(e).lower():
                logger.debug(f"Index on {collection}.{[k for k, _ in keys]} already exists")
            else:
                logger.warning(f"Could not create index on {collection}.{[k for k, _ in keys]}: {e}")

    logger.info("Database index initialization completed")
