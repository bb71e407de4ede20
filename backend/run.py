import os
import uvicorn

if __name__ == "__main__":
    is_dev = os.environ.get("ENVIRONMENT", "development").lower() != "production"
    uvicorn.run(
        "recengine.main:app",
        host="0.0.0.0",
        port=int(os.environ.get("PORT", 8000)),
        reload=is_dev,
        # The in-process scheduler must run in exactly one worker
        workers=1 if is_dev or os.environ.get("RECOMMENDATION_SCHEDULER_IN_PROCESS", "").lower() == "true"
        else int(os.environ.get("WEB_CONCURRENCY", 4)),
    )
