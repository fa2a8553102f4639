from fastapi import FastAPI

from lnfaucet.api.routes import channels, state
from lnfaucet.faucet.orchestrator import LightningFaucet
from lnfaucet.settings import VERSION


def create_app(faucet: LightningFaucet) -> FastAPI:
    app = FastAPI(
        title="lnfaucet API",
        description="Payment channel faucet: request a channel from the "
        "faucet node",
        version=VERSION,
    )
    app.state.faucet = faucet

    app.include_router(state.router)
    app.include_router(channels.router)

    # Startup and shutdown events
    @app.on_event("startup")
    async def startup_event():
        # the zombie sweeper lives as long as the app does
        faucet.start()

    @app.on_event("shutdown")
    async def shutdown_event():
        await faucet.shutdown()

    return app
