from .errors import InternalError, http_error
from .store import MemoryStore

# Shared store used by FastAPI dependencies.
store: MemoryStore | None = None


async def init_store() -> MemoryStore:
    global store

    if store is None:
        store = MemoryStore()
    return store


async def close_store() -> None:
    global store

    # Memory-resident: dropping the reference discards all state.
    store = None


async def get_store() -> MemoryStore:
    # Centralized guard to avoid obscure None-type errors in route handlers.
    if store is None:
        raise http_error(InternalError("Store is not initialized"))

    return store
