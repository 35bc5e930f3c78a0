from typing import Callable, Generator, List, Optional
from contentbot.db.base import SessionLocal, engine, Base
from contentbot.db import models  # noqa: F401  (registers tables)
from contentbot.services.image_client import ImageClient
from contentbot.services.llm_client import LLMClient
from contentbot.services.orchestrator import GenerationOrchestrator
from contentbot.services.phases.executors import build_executors
from contentbot.services.publisher import Publisher
from contentbot.services.search_client import SearchClient
from contentbot.services.worker import GenerationWorker

worker = GenerationWorker()

_publisher: Optional[Publisher] = None
_orchestrator: Optional[GenerationOrchestrator] = None
_clients: List = []


def init_db() -> None:
    Base.metadata.create_all(bind=engine)


def get_db() -> Generator:
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_publisher() -> Publisher:
    global _publisher
    if _publisher is None:
        _publisher = Publisher(dispatch=worker.submit)
    return _publisher


def get_orchestrator() -> GenerationOrchestrator:
    global _orchestrator
    if _orchestrator is None:
        clients = (LLMClient(), SearchClient(), ImageClient())
        _clients.extend(clients)
        executors = build_executors(*clients)
        _orchestrator = GenerationOrchestrator(executors, publisher=get_publisher())
    return _orchestrator


def dispatch_generation(generation_id: int) -> None:
    orchestrator = get_orchestrator()
    worker.submit(lambda: orchestrator.run(generation_id), f"generation:{generation_id}")


def get_dispatcher() -> Callable[[int], None]:
    return dispatch_generation


async def close_clients() -> None:
    while _clients:
        await _clients.pop().aclose()


def shutdown() -> None:
    """Close the HTTP clients on the loop that used them, then drain and stop the worker."""
    global _orchestrator
    if _clients and worker.running:
        worker.submit(close_clients, "close-clients")
    worker.stop()
    _orchestrator = None
