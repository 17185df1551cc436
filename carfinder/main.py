from fastapi import FastAPI
from carfinder.api.routes import router as api_router
from carfinder.db import Base, engine
from carfinder.settings import SCHEDULER_ENABLED
import carfinder.models  # noqa: F401 ensure models are imported so tables are known

# create FastAPI instance
app = FastAPI(title="carfinder")
app.include_router(api_router)


@app.on_event("startup")
def on_startup():
    # Ensure database tables are created on startup
    Base.metadata.create_all(bind=engine)
    if SCHEDULER_ENABLED:
        from carfinder.scheduler import start_scheduler
        start_scheduler()


@app.on_event("shutdown")
def on_shutdown():
    if SCHEDULER_ENABLED:
        from carfinder.scheduler import shutdown_scheduler
        shutdown_scheduler()
