# abi.py
# The slice of the marketplace contract ABI the harness consumes.
# Staking, payment, views and the two events asserted on. Slashing and
# withdrawal entry points are not called by any phase and are omitted.


def _view(name: str, output_type: str, inputs: list[dict] | None = None) -> dict:
    return {
        "type": "function",
        "name": name,
        "stateMutability": "view",
        "inputs": inputs or [],
        "outputs": [{"name": "", "type": output_type}],
    }


API_RESOURCE_COMPONENTS = [
    {"name": "id", "type": "uint256"},
    {"name": "endpoint", "type": "string"},
    {"name": "description", "type": "string"},
    {"name": "pricePerCall", "type": "uint256"},
    {"name": "stake", "type": "uint256"},
    {"name": "provider", "type": "address"},
    {"name": "active", "type": "bool"},
    {"name": "totalCalls", "type": "uint256"},
    {"name": "successfulCalls", "type": "uint256"},
    {"name": "createdAt", "type": "uint256"},
]

CONTRACT_ABI: list[dict] = [
    # Constants and counters
    _view("MIN_STAKE", "uint256"),
    _view("SLASH_PERCENTAGE", "uint256"),
    _view("WITHDRAWAL_DELAY", "uint256"),
    _view("nextApiId", "uint256"),
    _view("oracle", "address"),
    _view("owner", "address"),
    _view("providerStakes", "uint256", [{"name": "", "type": "address"}]),
    # Core
    {
        "type": "function",
        "name": "registerAPI",
        "stateMutability": "payable",
        "inputs": [
            {"name": "endpoint", "type": "string"},
            {"name": "description", "type": "string"},
            {"name": "pricePerCall", "type": "uint256"},
        ],
        "outputs": [],
    },
    {
        "type": "function",
        "name": "payForAPICall",
        "stateMutability": "payable",
        "inputs": [{"name": "apiId", "type": "uint256"}],
        "outputs": [],
    },
    {
        "type": "function",
        "name": "getAPI",
        "stateMutability": "view",
        "inputs": [{"name": "apiId", "type": "uint256"}],
        "outputs": [
            {
                "name": "",
                "type": "tuple",
                "internalType": "struct APIMarketplace.APIResource",
                "components": API_RESOURCE_COMPONENTS,
            }
        ],
    },
    # Events
    {
        "type": "event",
        "name": "APIRegistered",
        "anonymous": False,
        "inputs": [
            {"name": "apiId", "type": "uint256", "indexed": True},
            {"name": "provider", "type": "address", "indexed": True},
            {"name": "endpoint", "type": "string", "indexed": False},
            {"name": "stake", "type": "uint256", "indexed": False},
        ],
    },
    {
        "type": "event",
        "name": "APIPayment",
        "anonymous": False,
        "inputs": [
            {"name": "apiId", "type": "uint256", "indexed": True},
            {"name": "consumer", "type": "address", "indexed": True},
            {"name": "amount", "type": "uint256", "indexed": False},
        ],
    },
]

EVENT_NAMES = tuple(entry["name"] for entry in CONTRACT_ABI if entry["type"] == "event")
