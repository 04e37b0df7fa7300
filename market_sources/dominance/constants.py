"""CoinGecko coin ids used by the dominance computation."""

BITCOIN_ID = "bitcoin"
ETHEREUM_ID = "ethereum"

# Fiat-pegged only; gold-backed tokens track gold, not a currency
STABLECOIN_IDS = (
    "tether",
    "usd-coin",
    "dai",
    "ethena-usde",
    "paypal-usd",
    "first-digital-usd",
    "true-usd",
    "gemini-dollar",
    "euro-coin",
    "usdd",
    "liquity-usd",
    "paxos-standard",
)

STABLECOIN_COUNT = len(STABLECOIN_IDS)

DOMINANCE_SUM_TOLERANCE = 0.01
