import json
from functools import lru_cache
from pathlib import Path

CONTRACTS_DIR = Path(__file__).parent.parent / "contracts"


@lru_cache(maxsize=None)
def _load_contract_abi(contract_name: str) -> tuple:
    contract_path = (CONTRACTS_DIR / f"{contract_name}.json").resolve()

    with contract_path.open() as file:
        contract_data = json.load(file)

    return tuple(contract_data["abi"])


def get_contract_abi(contract_name: str) -> list:
    """Fetches ABI of the given contract from the contracts folder"""
    return list(_load_contract_abi(contract_name))
