"""FastAPI application exposing a dotstore key-value store."""

from __future__ import annotations

import contextlib
from typing import Any, AsyncIterator, Dict, Iterator, List, Optional

from fastapi import Depends, FastAPI, HTTPException, Query
from fastapi.responses import JSONResponse

from config import STORE_CONFIG
from dotstore import (
    DotStore,
    StorageError,
    StoreConfig,
    StoreConnectionError,
    UnsupportedOperationError,
    ValidationError,
)
from dotstore.paths import MISSING
from schemas import (
    AmountRequest,
    DeletePriorityRequest,
    ElementRequest,
    FindRequest,
    FindResponse,
    InfoResponse,
    ItemResponse,
    SetItemRequest,
    SetPriorityRequest,
)


@contextlib.contextmanager
def _http_errors() -> Iterator[None]:
    try:
        yield
    except ValidationError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except UnsupportedOperationError as exc:
        raise HTTPException(status_code=501, detail=str(exc)) from exc
    except StoreConnectionError as exc:
        raise HTTPException(status_code=503, detail=str(exc)) from exc
    except StorageError as exc:
        raise HTTPException(status_code=500, detail=str(exc)) from exc


class StoreService:
    """Owns the process-wide :class:`DotStore` and shapes its results for HTTP.

    The store is opened on first use. Store errors become HTTP errors and
    misses on reads and deletes become 404 responses.
    """

    def __init__(self, store_config: StoreConfig) -> None:
        self._config = store_config
        self._store: Optional[DotStore] = None

    # ------------------------------------------------------------------ #
    # Store lifetime
    # ------------------------------------------------------------------ #

    @property
    def store(self) -> DotStore:
        if self._store is None:
            self._store = DotStore(self._config)
        return self._store

    async def close(self) -> None:
        if self._store is not None:
            await self._store.close()
            self._store = None

    # ------------------------------------------------------------------ #
    # Operations mapped to routes
    # ------------------------------------------------------------------ #

    def info(self) -> InfoResponse:
        capabilities = self.store.capabilities
        return InfoResponse(
            adapter=capabilities.name,
            transactions=capabilities.transactions,
            sessions=capabilities.sessions,
            language=self.store.config.language,
        )

    async def set_item(self, key: str, value: Any) -> ItemResponse:
        with _http_errors():
            stored = await self.store.set(key, value)
        return ItemResponse(key=key, value=stored)

    async def get_item(self, key: str) -> ItemResponse:
        with _http_errors():
            value = await self.store.get(key, MISSING)
        if value is MISSING:
            raise HTTPException(status_code=404, detail=f"Key not found: {key}")
        return ItemResponse(key=key, value=value)

    async def delete_item(self, key: str) -> Dict[str, Any]:
        with _http_errors():
            deleted = await self.store.delete(key)
        if not deleted:
            raise HTTPException(status_code=404, detail=f"Key not found: {key}")
        return {"message": "Deleted", "key": key}

    async def add(self, key: str, amount: float) -> ItemResponse:
        with _http_errors():
            value = await self.store.add(key, amount)
        return ItemResponse(key=key, value=value)

    async def subtract(self, key: str, amount: float) -> ItemResponse:
        with _http_errors():
            value = await self.store.subtract(key, amount)
        return ItemResponse(key=key, value=value)

    async def push(self, key: str, element: Any) -> ItemResponse:
        with _http_errors():
            value = await self.store.push(key, element)
        return ItemResponse(key=key, value=value)

    async def unpush(self, key: str, element: Any) -> ItemResponse:
        with _http_errors():
            value = await self.store.unpush(key, element)
        return ItemResponse(key=key, value=value)

    async def set_by_priority(self, key: str, value: Any, index: int) -> ItemResponse:
        with _http_errors():
            result = await self.store.set_by_priority(key, value, index)
        if result is False:
            raise HTTPException(status_code=404, detail=f"No element {index} at {key}")
        return ItemResponse(key=key, value=result)

    async def del_by_priority(self, key: str, index: int) -> ItemResponse:
        with _http_errors():
            result = await self.store.del_by_priority(key, index)
        if result is False:
            raise HTTPException(status_code=404, detail=f"No element {index} at {key}")
        return ItemResponse(key=key, value=result)

    async def all_items(self) -> Dict[str, Any]:
        with _http_errors():
            return await self.store.all()

    async def delete_all(self) -> Dict[str, Any]:
        with _http_errors():
            deleted = await self.store.delete_all()
        return {"message": "Deleted all" if deleted else "Nothing deleted", "deleted": deleted}

    async def find(self, req: FindRequest) -> FindResponse:
        options = req.model_dump(include={"sort", "projection", "skip", "limit"}, exclude_none=True)
        with _http_errors():
            results: List[Any] = await self.store.find(req.query, options, key=req.key)
        return FindResponse(results=results)


_store_service = StoreService(STORE_CONFIG)


@contextlib.asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
    yield
    await _store_service.close()


app = FastAPI(title="dotstore API", lifespan=lifespan)


def get_store_service() -> StoreService:
    """FastAPI dependency returning the shared store service."""
    return _store_service


@app.get("/info", response_model=InfoResponse)
def info(service: StoreService = Depends(get_store_service)) -> InfoResponse:
    """Return the active adapter and its capabilities."""
    return service.info()


@app.put("/item", response_model=ItemResponse)
async def set_item(
    req: SetItemRequest,
    service: StoreService = Depends(get_store_service),
) -> ItemResponse:
    """Create or replace the value at a dot-path key."""
    return await service.set_item(key=req.key, value=req.value)


@app.get("/item", response_model=ItemResponse)
async def get_item(
    key: str = Query(..., min_length=1),
    service: StoreService = Depends(get_store_service),
) -> ItemResponse:
    """Retrieve the value at a dot-path key."""
    return await service.get_item(key=key)


@app.delete("/item", response_class=JSONResponse)
async def delete_item(
    key: str = Query(..., min_length=1),
    service: StoreService = Depends(get_store_service),
) -> JSONResponse:
    """Delete the value at a dot-path key."""
    body = await service.delete_item(key=key)
    return JSONResponse(content=body)


@app.post("/item/add", response_model=ItemResponse)
async def add(req: AmountRequest, service: StoreService = Depends(get_store_service)) -> ItemResponse:
    return await service.add(key=req.key, amount=req.amount)


@app.post("/item/subtract", response_model=ItemResponse)
async def subtract(req: AmountRequest, service: StoreService = Depends(get_store_service)) -> ItemResponse:
    return await service.subtract(key=req.key, amount=req.amount)


@app.post("/item/push", response_model=ItemResponse)
async def push(req: ElementRequest, service: StoreService = Depends(get_store_service)) -> ItemResponse:
    return await service.push(key=req.key, element=req.element)


@app.post("/item/unpush", response_model=ItemResponse)
async def unpush(req: ElementRequest, service: StoreService = Depends(get_store_service)) -> ItemResponse:
    return await service.unpush(key=req.key, element=req.element)


@app.put("/item/priority", response_model=ItemResponse)
async def set_by_priority(
    req: SetPriorityRequest,
    service: StoreService = Depends(get_store_service),
) -> ItemResponse:
    """Replace the n-th (1-based) element of the list at a key."""
    return await service.set_by_priority(key=req.key, value=req.value, index=req.index)


@app.delete("/item/priority", response_model=ItemResponse)
async def del_by_priority(
    req: DeletePriorityRequest,
    service: StoreService = Depends(get_store_service),
) -> ItemResponse:
    """Remove the n-th (1-based) element of the list at a key."""
    return await service.del_by_priority(key=req.key, index=req.index)


@app.get("/all")
async def all_items(service: StoreService = Depends(get_store_service)) -> Dict[str, Any]:
    """Return the whole store."""
    return await service.all_items()


@app.delete("/all")
async def delete_all(service: StoreService = Depends(get_store_service)) -> Dict[str, Any]:
    return await service.delete_all()


@app.post("/find", response_model=FindResponse)
async def find(req: FindRequest, service: StoreService = Depends(get_store_service)) -> FindResponse:
    """Filter, sort, project and paginate stored values."""
    return await service.find(req)


@app.get("/")
def root() -> dict[str, str]:
    """Liveness check pointing at the interactive docs."""
    return {"message": "dotstore API. See /docs for Swagger UI."}


if __name__ == "__main__":
    import uvicorn

    from config import config

    uvicorn.run("app:app", host=config.host, port=config.port, reload=True)
