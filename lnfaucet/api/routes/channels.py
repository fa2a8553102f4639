from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from typing import Optional
import logging

from lnfaucet.api.utils import get_faucet
from lnfaucet.faucet.orchestrator import (
    FaucetError,
    FundingSubmission,
    HomeState,
    LightningFaucet,
)

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/channels", tags=["Channels"])


class FundingForm(BaseModel):
    """values as typed into the faucet form, amounts in whole coins"""
    node: str = Field(default='')
    amt: str = Field(default='')
    bal: str = Field(default='')


class FundingSubmissionResponse(FundingSubmission):
    state: Optional[HomeState] = None


@router.post("", response_model=FundingSubmissionResponse)
async def request_channel(
        form: FundingForm,
        faucet: LightningFaucet = Depends(get_faucet)):
    """
    Ask the faucet to open a channel. Rejections are reported in `outcome`,
    not as an HTTP error
    """
    submission = await faucet.submit_funding_request(
        node=form.node,
        amt=form.amt,
        bal=form.bal,
    )
    try:
        state = await faucet.fetch_home_state()
    except FaucetError as e:
        logger.error(f"unable to fetch home state after submission: {e}")
        state = None

    return FundingSubmissionResponse(**submission.model_dump(), state=state)
