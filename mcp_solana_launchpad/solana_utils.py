import httpx
from solders.pubkey import Pubkey
from solders.signature import Signature

from mcp_solana_launchpad.errors import InvalidTransactionError, RpcError
from mcp_solana_launchpad.config import RPC_ENDPOINT, RPC_TIMEOUT_SECONDS
from mcp.server.fastmcp.utilities.logging import get_logger

logger = get_logger(__name__)

MAX_TRANSACTION_SIG_LENGTH = 200


def new_rpc_client() -> httpx.AsyncClient:
    """HTTP client for JSON-RPC reads, with the configured timeout."""
    return httpx.AsyncClient(
        timeout=httpx.Timeout(RPC_TIMEOUT_SECONDS, connect=5.0),
        limits=httpx.Limits(max_keepalive_connections=20, max_connections=100),
    )


# --- Reference Validation ---

def validate_transaction_reference(transaction_ref: str) -> str:
    """
    Checks that a caller-supplied transaction reference is a Solana signature.

    The engine never builds or signs transactions; the reference is only copied onto
    events, so a malformed one is rejected before anything is recorded.
    """
    if not transaction_ref or not isinstance(transaction_ref, str):
        raise InvalidTransactionError("Transaction reference must be a non-empty string")
    if len(transaction_ref) > MAX_TRANSACTION_SIG_LENGTH:
        raise InvalidTransactionError("Transaction reference is too long")
    try:
        Signature.from_string(transaction_ref)
    except ValueError as e:
        raise InvalidTransactionError(f"Invalid transaction signature format: {e}")
    return transaction_ref


def parse_pubkey(address: str) -> Pubkey:
    try:
        return Pubkey.from_string(address)
    except ValueError as e:
        raise InvalidTransactionError(f"Invalid Solana address '{address}': {e}")


# --- Balance Reads ---

async def fetch_sol_collected(client: httpx.AsyncClient, vault_address: str) -> int:
    """
    Reads the lamport balance of a launch vault, i.e. the SOL collected by the sale.

    Raises:
        RpcError: If the endpoint fails or answers with an error or malformed payload.
        InvalidTransactionError: If the vault address is not a valid public key.
    """
    vault = parse_pubkey(vault_address)
    try:
        resp = await client.post(
            RPC_ENDPOINT,
            json={
                "jsonrpc": "2.0",
                "id": 1,
                "method": "getBalance",
                "params": [str(vault), {"commitment": "confirmed"}],
            },
        )
        resp.raise_for_status()
        result = resp.json()
    except httpx.HTTPStatusError as e:
        logger.error(f"HTTP error fetching balance for {vault}: {e.response.status_code} - {e.response.text}")
        raise RpcError(f"HTTP error fetching balance: {e.response.status_code}")
    except httpx.HTTPError as e:
        logger.error(f"Transport error fetching balance for {vault}: {e}")
        raise RpcError(f"Could not reach RPC endpoint: {e}")
    except ValueError as e:
        logger.error(f"Malformed JSON fetching balance for {vault}: {e}")
        raise RpcError("RPC endpoint returned malformed JSON")

    if result.get("error"):
        raise RpcError(f"Error fetching balance for {vault}: {result['error']}")

    try:
        lamports = int(result["result"]["value"])
    except (KeyError, TypeError, ValueError):
        raise RpcError(f"Unexpected response format for balance of {vault}")

    logger.debug(f"Vault {vault} holds {lamports} lamports")
    return lamports
