from fastapi import FastAPI
from contentbot.config import configure_logging
from contentbot.deps import init_db, shutdown, worker

# Routers
from contentbot.routers import articles, generation, queue, publish, scheduler_api

app = FastAPI(title="Contentbot API", version="0.1.0")


@app.on_event("startup")
def _startup():
    configure_logging()
    init_db()
    worker.start()


@app.on_event("shutdown")
def _shutdown():
    shutdown()


@app.get("/")
def root():
    return {"message": "Contentbot API is running!"}


# Mount routes
app.include_router(articles.router)       # /projects/*, /articles/*
app.include_router(generation.router)     # /articles/{id}/generate|retry|generation-status
app.include_router(queue.router)          # /generation-queue/*
app.include_router(publish.router)        # /articles/{id}/publish|schedule-publish
app.include_router(scheduler_api.router)  # /scheduler/*
