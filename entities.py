"""Curated lookup tables for query expansion and the relevance guardrail.

All tables are read-only and built once at import time.
"""

from __future__ import annotations

from types import MappingProxyType
from typing import Mapping

# Two-letter query terms that carry meaning (sector abbreviations, quarters).
# Everything else of length <= 2 is dropped during normalization.
SHORT_TERM_ALLOWLIST: frozenset[str] = frozenset({"ai", "ev", "q1", "q2", "q3", "q4"})

# Query term -> ticker used by the retriever as an extra synonym term.
TICKER_ALIASES: Mapping[str, str] = MappingProxyType({
    # Global tech
    "apple": "AAPL",
    "microsoft": "MSFT",
    "tesla": "TSLA",
    "nvidia": "NVDA",
    "google": "GOOGL",
    "amazon": "AMZN",
    "meta": "META",
    # Indian markets
    "reliance": "RELIANCE",
    "tata": "TATA",
    "tcs": "TCS",
    "infosys": "INFY",
    "hdfc": "HDFC",
    "icici": "ICICI",
    # EV sector
    "byd": "BYD",
    "nio": "NIO",
    "rivian": "RIVN",
    "ola": "OLA",
    "ather": "ATHER",
    # Crypto
    "bitcoin": "BTC",
    "ethereum": "ETH",
    "crypto": "CRYPTO",
    "blockchain": "BLOCKCHAIN",
    # Banking and policy
    "rbi": "RBI",
    "sbi": "SBI",
    "bank": "BANKS",
    "banking": "BANKS",
    "interest": "BANKS",
    "repo": "RBI",
    "inflation": "BANKS",
    "fed": "FED",
    "credit": "BANKS",
    "loan": "BANKS",
    "jpmorgan": "JPM",
    # Commodities
    "oil": "OIL",
    "crude": "CRUDE",
    "gold": "GOLD",
    "silver": "SILVER",
    "copper": "COPPER",
    "commodity": "COMMODITIES",
    "commodities": "COMMODITIES",
    "opec": "OIL",
    "gas": "GAS",
    # Energy and power
    "power": "POWER",
    "solar": "SOLAR",
    "renewable": "RENEWABLE",
    "wind": "WIND",
    "energy": "ENERGY",
    "hydrogen": "HYDROGEN",
    "battery": "BATTERY",
    "grid": "ENERGY",
    "adani": "ADANI",
    # Healthcare and pharma
    "pharma": "PHARMA",
    "healthcare": "HEALTHCARE",
    "drug": "PHARMA",
    "fda": "PHARMA",
    "biocon": "BIOCON",
    "sunpharma": "SUNPHARMA",
    "apollo": "APOLLO",
    "hospital": "HEALTHCARE",
    # Sectors
    "ev": "EV",
    "automobile": "AUTO",
    "semiconductor": "CHIPS",
    # Tickers typed directly
    "msft": "MSFT",
    "aapl": "AAPL",
    "tsla": "TSLA",
    "nvda": "NVDA",
    "googl": "GOOGL",
    "amzn": "AMZN",
    "btc": "BTC",
    "eth": "ETH",
})

# Entities the corpus is known to cover. A query naming one of these is
# always treated as on-topic by the guardrail. Only company-specific and
# core-topic variants belong here; generic finance words would let almost
# any query through.
GUARDRAIL_ENTITIES: Mapping[str, tuple[str, ...]] = MappingProxyType({
    "apple": (
        "apple", "aapl", "iphone", "ipad", "macbook", "tim cook", "cupertino",
    ),
    "microsoft": (
        "microsoft", "msft", "azure", "copilot", "xbox", "satya nadella", "nadella",
    ),
    "tesla": (
        "tesla", "tsla", "musk", "elon musk", "cybertruck", "gigafactory",
    ),
    "nvidia": (
        "nvidia", "nvda", "jensen", "jensen huang", "geforce", "cuda", "h100", "h200",
        "blackwell",
    ),
    "ai": ("ai", "artificial intelligence", "machine learning", "llm"),
})

# Broader topic table used only to score individual documents: a query term
# that maps to one of these entities earns credit on documents whose text
# mentions the canonical name.
TOPIC_ENTITIES: Mapping[str, tuple[str, ...]] = MappingProxyType({
    "apple": ("apple", "aapl", "iphone", "ipad", "mac", "tim cook", "cupertino"),
    "microsoft": (
        "microsoft", "msft", "azure", "windows", "satya nadella", "copilot", "xbox",
    ),
    "tesla": ("tesla", "tsla", "elon musk", "cybertruck", "fsd", "gigafactory", "ev"),
    "nvidia": ("nvidia", "nvda", "jensen huang", "gpu", "cuda", "h100", "h200", "geforce"),
    "ai": (
        "ai", "artificial intelligence", "machine learning", "llm", "chatgpt", "generative",
    ),
    "cloud": ("cloud", "azure", "aws", "saas", "data center"),
    "earnings": (
        "earnings", "revenue", "profit", "q1", "q2", "q3", "q4", "quarterly", "fiscal",
    ),
    "stock": ("stock", "shares", "market cap", "valuation", "price target"),
})

# Topics the corpus does not cover. Consulted only when no guardrail entity
# matched the query.
OFF_TOPIC_INDICATORS: tuple[str, ...] = (
    "india", "indian", "china", "chinese", "europe", "european",
    "silver", "gold", "oil", "crude", "commodity", "commodities",
    "real estate", "property", "housing",
    "crypto", "bitcoin", "ethereum", "blockchain",
    "bank", "banking", "loan", "mortgage",
    "healthcare", "pharma", "biotech",
    "retail", "fashion", "luxury",
    "agriculture", "farming", "food",
)

# Display names for the companies the curated corpus focuses on.
COVERED_COMPANIES: tuple[str, ...] = ("Apple", "Microsoft", "Tesla", "NVIDIA")
