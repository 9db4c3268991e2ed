"""
Known address labels (centralized exchanges and DeFi routers).

Used by the counterparty and whale aggregators. Addresses are lower-case
Ethereum mainnet addresses.
"""

from enum import Enum
from typing import Optional


class LabelCategory(Enum):
    EXCHANGE = "exchange"
    DEFI = "defi"


_EXCHANGES: dict[str, list[str]] = {
    "Binance": [
        "0x3f5ce5fbfe3e9af3971dd833d26ba9b5c936f0be",
        "0xd551234ae421e3bcba99a0da6d736074f22192ff",
        "0x564286362092d8e7936f0549571a803b203aaced",
        "0x0681d8db095565fe8a346fa0277bffde9c0edbbf",
        "0xfe9e8709d3215310075d67e3ed32a380ccf451c8",
        "0x4e9ce36e442e55ecd9025b9a6e0d88485d628a67",
        "0xbe0eb53f46cd790cd13851d5eff43d12404d33e8",
        "0xf977814e90da44bfa03b6295a0616a897441acec",
        "0x28c6c06298d514db089934071355e5743bf21d60",
        "0x21a31ee1afc51d94c2efccaa2092ad1028285549",
        "0xdfd5293d8e347dfe59e90efd55b2956a1343963d",
        "0x56eddb7aa87536c09ccc2793473599fd21a8b17f",
        "0x9696f59e4d72e237be84ffd425dcad154bf96976",
        "0x4d9ff50ef4da947364bb9650892b2554e7be5e2b",
        "0xd88b55467f58af508dbfdc597e8ebd2ad2de49b3",
        "0x7dfe9a368b6cf0c0309b763bb8d16da326e8f46e",
        "0x345d8e3a1f62ee6b1d483890976fd66168e390f2",
        "0xc3c8e0a39769e2308869f7461364ca48155d1d9e",
    ],
    "Coinbase": [
        "0x2f7e209e0f5f645c7612d7610193fe268f118b28",
        "0xa9d1e08c7793af67e9d92fe308d5697fb81d3e43",
        "0x77696bb39917c91a0c3908d577d5e322095425ca",
        "0x7c195d981abfdc3ddecd2ca0fed0958430488e34",
        "0x95a9bd206ae52c4ba8eecfc93d18eacdd41c88cc",
        "0xb739d0895772dbb71a89a3754a160269068f0d45",
        "0x503828976d22510aad0201ac7ec88293211d23da",
        "0xddfabcdc4d8ffc6d5beaf154f18b778f892a0740",
        "0x3cd751e6b0078be393132286c442345e5dc49699",
        "0xb5d85cbf7cb3ee0d56b3bb207d5fc4b82f43f511",
        "0xeb2629a2734e272bcc07bda959863f316f4bd4cf",
        "0x71660c4005ba85c37ccec55d0c4493e66fe775d3",
    ],
    "Kraken": [
        "0x267be1c1d684f78cb4f6a176c4911b741e4ffdc0",
        "0xfa52274dd61e1643d2205169732f29114bc240b3",
        "0x53d284357ec70ce289d6d64134dfac8e511c8a3d",
        "0x89e51fa8ca5d66cd220baed62ed01e8951aa7c40",
        "0xe853c56864a2ebe4576a807d26fdc4a0ada51919",
        "0x0a869d79a7052c7f1b55a8ebabbea3420f0d1e13",
        "0xe92d1a43df510f82c66382592a047d288f85226f",
        "0x2910543af39aba0cd09dbb2d50200b3e800a63d2",
    ],
    "Gate.io": [
        "0x0d0707963952f2fba59dd06f2b425ace40b492fe",
        "0x1c4b70a3968436b9a0a9cf5205c787eb81bb558c",
        "0xd793281182a0e3e023116004778f45c29fc14f19",
    ],
}

_DEFI: dict[str, str] = {
    "0x7a250d5630b4cf539739df2c5dacb4c659f2488d": "Uniswap V2 Router",
    "0xe592427a0aece92de3edee1f18e0157c05861564": "Uniswap V3 Router",
    "0x68b3465833fb72a70ecdf485e0e4c7bd8665fc45": "Uniswap Universal Router",
    "0xd9e1ce17f2641f24ae83637ab66a2cca9c378b9f": "SushiSwap Router",
    "0x881d40237659c251811cec9c364ef91dc08d300c": "Metamask Swap Router",
    "0x1111111254fb6c44bac0bed2854e76f90643097d": "1inch Router",
    "0x7d2768de32b0b80b7a3454c06bdac94a69ddc7a9": "Aave Lending Pool",
    "0x87870bca3f3fd6335c3f4ce8392d69350b4fa4e2": "Aave V3 Pool",
    "0xa5e0829caced8ffdd4de3c43696c57f7d7a678ff": "Curve Finance",
}

KNOWN_ADDRESSES: dict[str, tuple[str, LabelCategory]] = {
    **{
        address: (exchange, LabelCategory.EXCHANGE)
        for exchange, addresses in _EXCHANGES.items()
        for address in addresses
    },
    **{address: (label, LabelCategory.DEFI) for address, label in _DEFI.items()},
}

EXCHANGE_NAMES = frozenset(_EXCHANGES)


def get_label(address: Optional[str]) -> Optional[str]:
    if not address:
        return None
    known = KNOWN_ADDRESSES.get(address.lower())
    return known[0] if known else None


def get_category(address: Optional[str]) -> Optional[LabelCategory]:
    if not address:
        return None
    known = KNOWN_ADDRESSES.get(address.lower())
    return known[1] if known else None


def is_exchange(address: Optional[str]) -> bool:
    return get_category(address) == LabelCategory.EXCHANGE
