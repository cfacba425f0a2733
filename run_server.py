import os

import uvicorn

from activity_advisor.config import settings
from utils.logging_utils import get_tagged_logger, setup_logging

logger = get_tagged_logger(__name__, tag="server")


if __name__ == "__main__":
    setup_logging(level=settings.log_level, job_name="activity_advisor_api")
    logger.info("Starting API server")

    uvicorn.run(
        "activity_advisor.main:app",
        host="0.0.0.0",
        port=int(os.getenv("PORT", 8000)),
        reload=False,
    )
