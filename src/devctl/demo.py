"""Demo ASGI app served by `devctl serve` when no app is given."""

from __future__ import annotations

__all__ = ["app", "create_demo_app"]

from fastapi import FastAPI

from devctl import __version__


def create_demo_app() -> FastAPI:
    """Create the hello-world demo app."""
    demo = FastAPI(title="devctl demo", version=__version__, docs_url=None, redoc_url=None)

    @demo.get("/api/hello")
    async def hello_get() -> dict[str, str]:
        return {"message": "Hello, world!", "method": "GET"}

    @demo.put("/api/hello")
    async def hello_put() -> dict[str, str]:
        return {"message": "Hello, world!", "method": "PUT"}

    @demo.get("/api/hello/{name}")
    async def hello_name(name: str) -> dict[str, str]:
        return {"message": f"Hello, {name}!"}

    return demo


app = create_demo_app()
