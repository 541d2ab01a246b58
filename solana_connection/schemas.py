"""Response shapes and validation for JSON-RPC replies.

Every reply is checked against the shape expected for its method before any
caller sees it. Two envelope forms exist: a plain ``result`` and a result
wrapped with the slot it was read at (``{"context": {"slot": n}, "value": v}``).
"""

from dataclasses import dataclass
from typing import Any, Generic, List, Literal, Optional, Tuple, TypeVar, Union

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    StrictBool,
    StrictFloat,
    StrictInt,
    StrictStr,
    TypeAdapter,
    ValidationError,
)
from pydantic.alias_generators import to_camel

from solana_connection.utils.errors import SchemaError

T = TypeVar("T")

Number = Union[StrictInt, StrictFloat]


class RpcModel(BaseModel):
    """Base for every server payload shape (camelCase on the wire)."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)


class RpcEnvelope(RpcModel):
    """The JSON-RPC 2.0 reply envelope, without its result."""

    jsonrpc: Literal["2.0"]
    id: Optional[StrictStr]
    error: Any = None


class RpcContext(RpcModel):
    slot: StrictInt


class ContextResult(RpcModel, Generic[T]):
    """A result wrapped with the slot at which it was evaluated."""

    context: RpcContext
    value: T


@dataclass(frozen=True)
class RpcResponse:
    """A validated reply: exactly one of ``error`` or ``result`` is meaningful."""

    id: Optional[str]
    error: Any = None
    result: Any = None


class ResponseValidator:
    """Validates decoded replies for one method against its expected shape.

    Args:
        result_type: Type of the ``result`` member (or of ``value`` when
            ``with_context`` is set)
        with_context: Whether the result is wrapped in a slot context
    """

    def __init__(self, result_type: Any, with_context: bool = False):
        self.result_type = result_type
        self.with_context = with_context
        if with_context:
            result_type = ContextResult[result_type]
        self._adapter = TypeAdapter(result_type)

    def validate(self, reply: Any) -> RpcResponse:
        """Validate a decoded reply.

        Args:
            reply: The decoded JSON object

        Returns:
            The validated response

        Raises:
            SchemaError: If the reply does not match the expected shape
        """
        if not isinstance(reply, dict):
            raise SchemaError(f"Expected a JSON object, got {type(reply).__name__}")

        try:
            envelope = RpcEnvelope.model_validate(reply)
        except ValidationError as e:
            raise SchemaError("Malformed JSON-RPC envelope", errors=e.errors(include_url=False)) from e

        if envelope.error is not None:
            return RpcResponse(id=envelope.id, error=envelope.error)

        if "result" not in reply:
            raise SchemaError("JSON-RPC reply carries neither error nor result")

        try:
            result = self._adapter.validate_python(reply["result"])
        except ValidationError as e:
            raise SchemaError("Unexpected result shape", errors=e.errors(include_url=False)) from e

        return RpcResponse(id=envelope.id, result=result)


# Accounts

class AccountInfoResult(RpcModel):
    executable: StrictBool
    owner: StrictStr
    lamports: StrictInt
    data: StrictStr
    rent_epoch: Optional[StrictInt] = None


class ProgramAccountInfoResult(RpcModel):
    pubkey: StrictStr
    account: AccountInfoResult


# Cluster

class ContactInfo(RpcModel):
    """Information describing a cluster node."""

    pubkey: StrictStr
    gossip: StrictStr
    tpu: Optional[StrictStr]
    rpc: Optional[StrictStr]


class VoteAccountInfo(RpcModel):
    """Information describing a vote account."""

    vote_pubkey: StrictStr
    node_pubkey: StrictStr
    activated_stake: StrictInt
    epoch_vote_account: StrictBool
    epoch_credits: List[Tuple[StrictInt, StrictInt, StrictInt]]
    commission: StrictInt
    last_vote: StrictInt
    root_slot: Optional[StrictInt] = None


class VoteAccountStatus(RpcModel):
    current: List[VoteAccountInfo]
    delinquent: List[VoteAccountInfo]


class InflationResult(RpcModel):
    foundation: Number
    foundation_term: Number
    initial: Number
    storage: Number
    taper: Number
    terminal: Number


class EpochInfo(RpcModel):
    epoch: StrictInt
    slot_index: StrictInt
    slots_in_epoch: StrictInt
    absolute_slot: StrictInt


class EpochSchedule(RpcModel):
    slots_per_epoch: StrictInt
    leader_schedule_slot_offset: StrictInt
    warmup: StrictBool
    first_normal_epoch: StrictInt
    first_normal_slot: StrictInt


class Version(RpcModel):
    solana_core: StrictStr = Field(alias="solana-core")


# Signatures

class SignatureSuccess(RpcModel):
    ok: None = Field(alias="Ok")


class TransactionError(RpcModel):
    err: Any = Field(alias="Err")


SignatureStatusResult = Union[SignatureSuccess, TransactionError]


# Blocks

class FeeCalculator(RpcModel):
    lamports_per_signature: StrictInt
    burn_percent: Optional[StrictInt] = None
    max_lamports_per_signature: Optional[StrictInt] = None
    min_lamports_per_signature: Optional[StrictInt] = None
    target_lamports_per_signature: Optional[StrictInt] = None
    target_signatures_per_slot: Optional[StrictInt] = None


class BlockhashAndFeeCalculator(RpcModel):
    blockhash: StrictStr
    fee_calculator: FeeCalculator


class MessageHeader(RpcModel):
    num_required_signatures: StrictInt
    num_readonly_signed_accounts: StrictInt
    num_readonly_unsigned_accounts: StrictInt


class CompiledInstruction(RpcModel):
    accounts: List[StrictInt]
    data: StrictStr
    program_id_index: StrictInt


class ConfirmedMessage(RpcModel):
    account_keys: List[StrictStr]
    header: MessageHeader
    instructions: List[Union[CompiledInstruction, List[StrictInt]]]
    recent_blockhash: StrictStr


class ConfirmedTransaction(RpcModel):
    signatures: List[StrictStr]
    message: ConfirmedMessage


class TransactionMeta(RpcModel):
    status: Optional[SignatureStatusResult] = None
    fee: StrictInt
    pre_balances: List[StrictInt]
    post_balances: List[StrictInt]


class ConfirmedBlockTransaction(RpcModel):
    transaction: ConfirmedTransaction
    meta: Optional[TransactionMeta]


class ConfirmedBlockResult(RpcModel):
    blockhash: StrictStr
    previous_blockhash: StrictStr
    parent_slot: StrictInt
    transactions: List[ConfirmedBlockTransaction]


# Push notifications

class SlotInfo(RpcModel):
    """Slot change information."""

    parent: StrictInt
    slot: StrictInt
    root: StrictInt


class Notification(RpcModel, Generic[T]):
    """Push message body: ``{"subscription": id, "result": payload}``."""

    subscription: StrictInt
    result: T


AccountNotification = Notification[AccountInfoResult]
ProgramAccountNotification = Notification[ProgramAccountInfoResult]
SlotNotification = Notification[SlotInfo]
SignatureNotification = Notification[SignatureStatusResult]


def validate_notification(shape: Any, payload: Any) -> Any:
    """Validate the params of a push message.

    Raises:
        SchemaError: If the payload does not match ``shape``
    """
    try:
        return shape.model_validate(payload)
    except ValidationError as e:
        raise SchemaError("Unexpected notification shape", errors=e.errors(include_url=False)) from e


# Per-method reply validators

GET_BALANCE = ResponseValidator(Optional[StrictInt], with_context=True)
GET_ACCOUNT_INFO = ResponseValidator(Optional[AccountInfoResult], with_context=True)
GET_PROGRAM_ACCOUNTS = ResponseValidator(List[ProgramAccountInfoResult])
CONFIRM_TRANSACTION = ResponseValidator(StrictBool, with_context=True)
GET_CLUSTER_NODES = ResponseValidator(List[ContactInfo])
GET_VOTE_ACCOUNTS = ResponseValidator(VoteAccountStatus)
GET_SLOT = ResponseValidator(StrictInt)
GET_SLOT_LEADER = ResponseValidator(StrictStr)
GET_SIGNATURE_STATUS = ResponseValidator(Optional[SignatureStatusResult])
GET_TRANSACTION_COUNT = ResponseValidator(StrictInt)
GET_TOTAL_SUPPLY = ResponseValidator(StrictInt)
GET_INFLATION = ResponseValidator(InflationResult)
GET_EPOCH_INFO = ResponseValidator(EpochInfo)
GET_EPOCH_SCHEDULE = ResponseValidator(EpochSchedule)
GET_MINIMUM_BALANCE_FOR_RENT_EXEMPTION = ResponseValidator(StrictInt)
GET_RECENT_BLOCKHASH = ResponseValidator(BlockhashAndFeeCalculator, with_context=True)
GET_VERSION = ResponseValidator(Version)
GET_CONFIRMED_BLOCK = ResponseValidator(Optional[ConfirmedBlockResult])
REQUEST_AIRDROP = ResponseValidator(StrictStr)
SEND_TRANSACTION = ResponseValidator(StrictStr)
VALIDATOR_EXIT = ResponseValidator(StrictBool)

SUBSCRIPTION_ID = TypeAdapter(StrictInt)
UNSUBSCRIBE_RESULT = TypeAdapter(StrictBool)
