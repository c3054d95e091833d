from fastapi import FastAPI
from redis.exceptions import RedisError
from parking_admin.views.parking_view import router
from parking_admin.views.detection_view import router as detection_router
from parking_admin.database import init_db,redis_client
from parking_admin.dependencies import session_registry
import  logging

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

async def lifespan(app: FastAPI):
    try:
        init_db()
        logger.info("Database Initialized Successfully")
    except Exception as e:
        logger.error(f"Failed to initialized the database {e}")
        raise

    try:
        if redis_client.ping():
            logger.info("Connected to Redis successfully")
    except RedisError as e:
        logger.error(f"Failed to connect to Redis, approval notifications are disabled: {e}")
    yield

    session_registry.clear()
    logger.info("Detection sessions closed")



app: FastAPI = FastAPI(title="Parking Admin", lifespan=lifespan)
app.include_router(router)
app.include_router(detection_router)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("parking_admin.main:app", host="0.0.0.0", port=8000, reload=True)
