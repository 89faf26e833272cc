"""Serialized size estimates for sizing Bitcoin fee quotes."""

from typing import Iterable, Optional

# version, locktime and the input/output count varints
TX_OVERHEAD = 10
P2PKH_INPUT_SIZE = 148

P2PKH_OUTPUT_SIZE = 34
P2SH_OUTPUT_SIZE = 32
P2WPKH_OUTPUT_SIZE = 31
P2WSH_OUTPUT_SIZE = 43
P2TR_OUTPUT_SIZE = 43

SEGWIT_V0_PREFIXES = ("bc1q", "tb1q", "bcrt1q")
TAPROOT_PREFIXES = ("bc1p", "tb1p", "bcrt1p")
P2WPKH_ADDRESS_MAX_LENGTH = 44


def output_size(address: Optional[str]) -> int:
    """Bytes taken by an output paying `address`; unknown destinations count as P2PKH."""
    if not address:
        return P2PKH_OUTPUT_SIZE

    lowered = address.lower()
    if lowered.startswith(SEGWIT_V0_PREFIXES):
        return P2WPKH_OUTPUT_SIZE if len(address) <= P2WPKH_ADDRESS_MAX_LENGTH else P2WSH_OUTPUT_SIZE
    if lowered.startswith(TAPROOT_PREFIXES):
        return P2TR_OUTPUT_SIZE
    if address[0] in ("3", "2"):
        return P2SH_OUTPUT_SIZE
    return P2PKH_OUTPUT_SIZE


def estimate_transaction_size(input_count: int, output_addresses: Iterable[Optional[str]]) -> int:
    """Size of a transaction spending `input_count` P2PKH inputs to the given outputs."""
    if input_count < 1:
        raise ValueError("A transaction needs at least one input")

    outputs = list(output_addresses)
    if not outputs:
        raise ValueError("A transaction needs at least one output")

    return TX_OVERHEAD + P2PKH_INPUT_SIZE * input_count + sum(output_size(a) for a in outputs)


# one P2PKH input paying one P2PKH output
REFERENCE_TRANSACTION_SIZE = estimate_transaction_size(1, [None])
