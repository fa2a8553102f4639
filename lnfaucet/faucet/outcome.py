from enum import Enum

from lnfaucet.settings import ATOMS_PER_COIN, DEFAULT_MIN_CHANNEL_SIZE


class SubmissionOutcome(str, Enum):
    """
    result of one funding attempt. this is display data for whoever renders
    the form, callers check it rather than catching anything
    """
    NONE = 'none'
    INVALID_ADDRESS = 'invalid-address'
    PEER_NOT_CONNECTED = 'peer-not-connected'
    AMOUNT_NOT_NUMERIC = 'amount-not-numeric'
    CHANNEL_TOO_LARGE = 'channel-too-large'
    CHANNEL_TOO_SMALL = 'channel-too-small'
    PUSH_AMOUNT_INVALID = 'push-amount-invalid'
    OPEN_FAILED = 'open-failed'
    CHANNEL_ALREADY_EXISTS = 'channel-already-exists'
    PENDING_CHANNEL_ALREADY_EXISTS = 'pending-channel-already-exists'

    @property
    def ok(self) -> bool:
        return self == SubmissionOutcome.NONE

    def message(self, min_channel_size: int = DEFAULT_MIN_CHANNEL_SIZE) -> str:
        if self == SubmissionOutcome.CHANNEL_TOO_SMALL:
            return f'Minimum channel size is {min_channel_size / ATOMS_PER_COIN:g}'
        return _MESSAGES[self]


_MESSAGES = {
    SubmissionOutcome.NONE: '',
    SubmissionOutcome.INVALID_ADDRESS: 'Not a valid public key',
    SubmissionOutcome.PEER_NOT_CONNECTED: 'Faucet cannot connect to this node',
    SubmissionOutcome.AMOUNT_NOT_NUMERIC: 'Amount must be a number',
    SubmissionOutcome.CHANNEL_TOO_LARGE: 'Amount is too large',
    SubmissionOutcome.PUSH_AMOUNT_INVALID: 'Initial Balance is incorrect',
    SubmissionOutcome.OPEN_FAILED: 'Faucet is not able to open a channel with this node',
    SubmissionOutcome.CHANNEL_ALREADY_EXISTS: 'Faucet already has an active channel with this node',
    SubmissionOutcome.PENDING_CHANNEL_ALREADY_EXISTS: 'Faucet already has a pending channel with this node',
}
