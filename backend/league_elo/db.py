from fastapi import Request
from sqlalchemy.orm import declarative_base

from .store import TransactionalStore

Base = declarative_base()


def get_store(request: Request) -> TransactionalStore:
    """Provide the application's store for FastAPI dependencies.

    The store is built once in the app lifespan and passed around by reference;
    there is no module-level connection.
    """

    store = getattr(request.app.state, "store", None)
    if store is None:
        raise RuntimeError("store is not initialised; is the app lifespan running?")
    return store
