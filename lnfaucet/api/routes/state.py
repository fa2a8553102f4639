from fastapi import APIRouter, Depends, HTTPException
import logging

from lnfaucet.api.utils import get_faucet
from lnfaucet.faucet.orchestrator import FaucetError, HomeState, LightningFaucet

logger = logging.getLogger(__name__)
router = APIRouter(tags=["State"])


@router.get("/", response_model=HomeState)
async def get_home_state(faucet: LightningFaucet = Depends(get_faucet)):
    """Current funds, node identity and channels of the faucet"""
    try:
        return await faucet.fetch_home_state()
    except FaucetError as e:
        logger.error(f"unable to fetch home state: {e}")
        raise HTTPException(status_code=500, detail="unable to render home page")
