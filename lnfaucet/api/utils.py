from fastapi import Request

from lnfaucet.faucet.orchestrator import LightningFaucet


async def get_faucet(request: Request) -> LightningFaucet:
    return request.app.state.faucet
