import logging
from movienight.main import app

# Root handler for serverless logs; the app's lifespan refines the level from LOG_LEVEL.
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

logger.info("Vercel api/index.py initialized for %s", app.title)

# Entry point for Vercel Serverless Functions: exports the FastAPI app instance.
