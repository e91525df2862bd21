# LocalPass - Local API Server
#
# FastAPI backend for the desktop frontend. Binds to localhost only; the
# vault never leaves this machine over the network.

import logging
from typing import Optional

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .. import __version__
from ..core import VaultSettings, get_settings
from ..vault import SessionLockManager, VaultStore, VaultTransfer
from .security import initialize_session_token
from .vault_routes import router as vault_router

logger = logging.getLogger(__name__)

_allowed_origins = [
    "http://localhost:3000", "http://127.0.0.1:3000",
    "http://localhost:8000", "http://127.0.0.1:8000",
]


def create_app(
    store: Optional[VaultStore] = None,
    settings: Optional[VaultSettings] = None,
) -> FastAPI:
    """
    Build the API app around one vault store.

    Args:
        store: Vault store to serve. Built from settings when omitted.
        settings: Runtime settings (default: environment / .env)
    """
    settings = settings or get_settings()
    if store is None:
        store = VaultStore(settings.vault_path, kdf_iterations=settings.kdf_iterations)

    app = FastAPI(
        title="LocalPass API",
        description="Offline password vault API",
        version=__version__,
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=_allowed_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.state.settings = settings
    app.state.store = store
    app.state.transfer = VaultTransfer(store)
    app.state.lock_manager = SessionLockManager(
        store, timeout_seconds=settings.auto_lock_seconds
    )
    initialize_session_token(app)

    app.include_router(vault_router)

    @app.on_event("shutdown")
    async def _lock_on_shutdown():
        await app.state.lock_manager.stop()
        store.lock(reason="shutdown")

    return app


def start_api_server(host: str = "127.0.0.1", port: int = 8000) -> None:
    """Run the API with uvicorn and print the session token for the frontend."""
    app = create_app()
    print(f"  Session token: {app.state.session_token}")
    logger.info("Starting LocalPass API on %s:%d", host, port)
    uvicorn.run(app, host=host, port=port, log_level="info")
