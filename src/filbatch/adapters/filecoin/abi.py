"""
Multicall3 + FilForwarder Smart Contract ABI Module

ABI fragments for the two contracts the aggregated payment path calls.

Usage:
    from filbatch.adapters.filecoin.abi import (
        get_aggregate3_value_abi,
        get_forward_abi,
    )

    # Batch N value transfers into one transaction
    multicall_abi = get_aggregate3_value_abi()

    # Pay a native Filecoin address from the EVM side
    forwarder_abi = get_forward_abi()

Selectors and eth_abi type strings used by the builder are derived from
these fragments.
"""

from typing import Any, Dict, List

from eth_utils.abi import collapse_if_tuple, function_abi_to_4byte_selector


def get_aggregate3_value_abi() -> List[Dict[str, Any]]:
    """
    Get ABI for Multicall3 ``aggregate3Value(Call3Value[] calls)``.

    Each call carries its own value; ``msg.value`` must equal their sum.
    A call with ``allowFailure == False`` that reverts reverts the whole
    transaction.

    Returns:
        List[Dict[str, Any]]: ABI for aggregate3Value function

    Example:
        abi = get_aggregate3_value_abi()
        contract = web3.eth.contract(address=MULTICALL3_ADDRESS, abi=abi)
    """
    return [
        {
            "name": "aggregate3Value",
            "type": "function",
            "stateMutability": "payable",
            "inputs": [
                {
                    "name": "calls",
                    "type": "tuple[]",
                    "internalType": "struct Multicall3.Call3Value[]",
                    "components": [
                        {"name": "target", "type": "address"},
                        {"name": "allowFailure", "type": "bool"},
                        {"name": "value", "type": "uint256"},
                        {"name": "callData", "type": "bytes"},
                    ],
                }
            ],
            "outputs": [
                {
                    "name": "returnData",
                    "type": "tuple[]",
                    "internalType": "struct Multicall3.Result[]",
                    "components": [
                        {"name": "success", "type": "bool"},
                        {"name": "returnData", "type": "bytes"},
                    ],
                }
            ],
        }
    ]


def get_forward_abi() -> List[Dict[str, Any]]:
    """
    Get ABI for FilForwarder ``forward(bytes destination)``.

    ``destination`` is the raw byte form of a Filecoin address (protocol
    byte followed by payload); the attached value is sent to it.

    Returns:
        List[Dict[str, Any]]: ABI for forward function
    """
    return [
        {
            "name": "forward",
            "type": "function",
            "stateMutability": "payable",
            "inputs": [{"name": "destination", "type": "bytes"}],
            "outputs": [],
        }
    ]


(AGGREGATE3_VALUE_ABI,) = get_aggregate3_value_abi()
(FORWARD_ABI,) = get_forward_abi()

AGGREGATE3_VALUE_SELECTOR: bytes = function_abi_to_4byte_selector(AGGREGATE3_VALUE_ABI)
FORWARD_SELECTOR: bytes = function_abi_to_4byte_selector(FORWARD_ABI)

#: eth_abi type strings of the aggregate3Value argument and return value.
CALL3_VALUE_ARRAY_TYPE: str = collapse_if_tuple(AGGREGATE3_VALUE_ABI["inputs"][0])
RESULT_ARRAY_TYPE: str = collapse_if_tuple(AGGREGATE3_VALUE_ABI["outputs"][0])
FORWARD_INPUT_TYPES: List[str] = [collapse_if_tuple(p) for p in FORWARD_ABI["inputs"]]
