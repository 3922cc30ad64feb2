import os
from dataclasses import dataclass

from dotenv import load_dotenv

load_dotenv()


def get_env_for_chain(base_key: str, chain_id: str):
    """
    Prefer CHAIN_ID-suffixed env (e.g. EXECUTION_RPC_URL_1) over generic (EXECUTION_RPC_URL).
    Return None if neither is set.
    """
    return os.getenv(f"{base_key}_{chain_id}") or os.getenv(base_key)


def default_snapshot_path() -> str:
    """SNAPSHOT_PATH for the selected chain. Needs no RPC endpoint."""
    chain_id = os.getenv("CHAIN_ID", "1").strip()
    return get_env_for_chain("SNAPSHOT_PATH", chain_id) or Settings.snapshot_path


def _int_env(key: str, chain_id: str, default: int) -> int:
    raw = get_env_for_chain(key, chain_id)
    return int(raw) if raw else default


def _float_env(key: str, chain_id: str, default: float) -> float:
    raw = get_env_for_chain(key, chain_id)
    return float(raw) if raw else default


def _bool_env(key: str, chain_id: str, default: bool) -> bool:
    raw = get_env_for_chain(key, chain_id)
    return raw.strip().lower() == "true" if raw else default


@dataclass(frozen=True)
class Settings:
    rpc_url: str
    chain_id: str = "1"
    start_block: int = 16_249_100
    initial_window: int = 10
    # Go-Ethereum allows up to 10_000 results per query, aim lower
    target_matches: int = 8_000
    snapshot_path: str = "./contracts.json"
    # per-batch budget on processed events, each may cost several eth_calls
    max_events_per_batch: int = 40
    probe_gas: int = 30_000
    token_uri_gas: int = 300_000
    sleep_between_windows: float = 0.0
    halve_on_overflow: bool = True
    rpc_timeout: int = 60


def load_settings() -> Settings:
    # Select network (string, e.g. "1", "11155111", "17000")
    chain_id = os.getenv("CHAIN_ID", "1").strip()

    rpc_url = get_env_for_chain("EXECUTION_RPC_URL", chain_id)
    if not rpc_url:
        infura_key = get_env_for_chain("INFURA_KEY", chain_id)
        if infura_key:
            rpc_url = f"https://mainnet.infura.io/v3/{infura_key.strip()}"
    if not rpc_url:
        raise RuntimeError(
            f"Missing RPC URL. Set EXECUTION_RPC_URL or INFURA_KEY "
            f"or a chain-specific variant with _{chain_id}."
        )

    return Settings(
        rpc_url=rpc_url,
        chain_id=chain_id,
        start_block=_int_env("START_BLOCK", chain_id, Settings.start_block),
        initial_window=_int_env("INITIAL_WINDOW", chain_id, Settings.initial_window),
        target_matches=_int_env("TARGET_MATCHES", chain_id, Settings.target_matches),
        snapshot_path=default_snapshot_path(),
        max_events_per_batch=_int_env("MAX_EVENTS_PER_BATCH", chain_id, Settings.max_events_per_batch),
        probe_gas=_int_env("PROBE_GAS", chain_id, Settings.probe_gas),
        token_uri_gas=_int_env("TOKEN_URI_GAS", chain_id, Settings.token_uri_gas),
        sleep_between_windows=_float_env("SLEEP_BETWEEN_WINDOWS", chain_id, Settings.sleep_between_windows),
        halve_on_overflow=_bool_env("HALVE_ON_OVERFLOW", chain_id, Settings.halve_on_overflow),
        rpc_timeout=_int_env("RPC_TIMEOUT", chain_id, Settings.rpc_timeout),
    )
