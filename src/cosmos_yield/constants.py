"""Endpoint, denomination and chain constants."""

from typing import TypedDict


class AtomDenoms(TypedDict):
    COSMOS_HUB: str
    OSMOSIS: str
    NEUTRON: str


TRACKED_SYMBOL = "ATOM"

ATOM_DENOMS: AtomDenoms = {
    "COSMOS_HUB": "uatom",
    "OSMOSIS": "ibc/27394FB092D2ECCD56123C74F36E4C1F926001CEADA9CA97EA622B25F41E5EB2",
    "NEUTRON": "ibc/C4CFF46FD6DE35CA4CF4CE031E643C8FDC9BA4B99AE598E9B0ED98FE3A2319F9",
}

# Liquid-staked ATOM derivatives that count as exposure to the tracked asset
ATOM_DERIVATIVE_SYMBOLS = frozenset({"datom", "statom", "stkatom", "amatom", "qatom"})

# --- chain ids ---
COSMOS_HUB_CHAIN_ID = "cosmoshub-4"
OSMOSIS_CHAIN_ID = "osmosis-1"
NEUTRON_CHAIN_ID = "neutron-1"
ARCHWAY_CHAIN_ID = "archway-1"
STRIDE_CHAIN_ID = "stride-1"
QUICKSILVER_CHAIN_ID = "quicksilver-2"

CHAIN_DISPLAY_NAMES: dict[str, str] = {
    COSMOS_HUB_CHAIN_ID: "Cosmos Hub",
    OSMOSIS_CHAIN_ID: "Osmosis",
    NEUTRON_CHAIN_ID: "Neutron",
    ARCHWAY_CHAIN_ID: "Archway",
    STRIDE_CHAIN_ID: "Stride",
    QUICKSILVER_CHAIN_ID: "Quicksilver",
    "phoenix-1": "Terra",
    "terra-2": "Terra",
}

# --- upstream endpoints ---
DEFAULT_COSMOS_HUB_LCD = "https://rest.cosmos.directory/cosmoshub"
DEFAULT_OSMOSIS_LCD = "https://lcd.osmosis.zone"
DEFAULT_NEUTRON_LCD = "https://rest.cosmos.directory/neutron"
DEFAULT_ARCHWAY_LCD = "https://rest.cosmos.directory/archway"
DEFAULT_OSMOSIS_SQS = "https://sqsprod.osmosis.zone"
DEFAULT_ASTROPORT_API = "https://app.astroport.fi/api/pools"
DEFAULT_ASTROVAULT_API = "https://ext.astrovault.io/pool"
DEFAULT_STRIDE_LCD = "https://rest.cosmos.directory/stride"
DEFAULT_QUICKSILVER_LCD = "https://lcd.quicksilver.zone"
DEFAULT_PRICE_API = "https://api.coingecko.com/api/v3/simple/price"
DEFAULT_RELAY_BASE = "https://cors.isomorphic-git.org"

DEFAULT_OSMOSIS_ASSETLIST = (
    "https://raw.githubusercontent.com/osmosis-labs/assetlists/main/"
    "osmosis-1/generated/asset_detail/assetlist.json"
)
DEFAULT_NEUTRON_ASSETLIST = (
    "https://raw.githubusercontent.com/cosmos/chain-registry/master/neutron/assetlist.json"
)
DEFAULT_ARCHWAY_ASSETLIST = (
    "https://raw.githubusercontent.com/cosmos/chain-registry/master/archway/assetlist.json"
)

# Local development proxy prefixes, keyed by the upstream they stand in for
DEV_PROXY_ROUTES: dict[str, str] = {
    DEFAULT_OSMOSIS_SQS + "/": "/osmo-sqs/",
    DEFAULT_ASTROVAULT_API: "/av/pool",
}

# --- action links ---
OSMOSIS_POOL_URL = "https://app.osmosis.zone/pool/{pool_id}"
ASTROPORT_POOL_URL = "https://app.astroport.fi/pools/{pool_address}"
ASTROVAULT_POOL_URL = "https://astrovault.io/pool"
MINTSCAN_VALIDATOR_URL = "https://www.mintscan.io/cosmos/validators/{operator}"
STRIDE_APP_URL = "https://app.stride.zone"
QUICKSILVER_APP_URL = "https://app.quicksilver.zone"

# --- resolver heuristics ---
BASE_DENOM_SYMBOLS: dict[str, str] = {
    "uatom": "ATOM",
    "uosmo": "OSMO",
    "uion": "ION",
    "uarch": "ARCH",
    "aarch": "ARCH",
    "untrn": "NTRN",
    "uluna": "LUNA",
    ATOM_DENOMS["OSMOSIS"]: "ATOM",
    ATOM_DENOMS["NEUTRON"]: "ATOM",
}

# Liquid staking host zone paths and denominations
STRIDE_HOST_ZONE_PATH = "/Stride-Labs/stride/stakeibc/host_zone/{chain_id}"
QUICKSILVER_ZONES_PATH = "/quicksilver/interchainstaking/v1/zones"
STRIDE_ATOM_DENOM = "stuatom"
ATOM_DECIMALS = 6
COINGECKO_ATOM_ID = "cosmos"

IBC_SHORT_HEAD = 7
IBC_SHORT_TAIL = 5
ADDRESS_SHORT_HEAD = 6
ADDRESS_SHORT_TAIL = 6

VALCONS_PREFIX = "cosmosvalcons"
