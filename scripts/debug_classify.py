# scripts/debug_classify.py
import sys
from pathlib import Path
import logging

# Make repo root importable so "import token_crawler" works
REPO_ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(REPO_ROOT))

from token_crawler.config import load_settings
from token_crawler.classify import contract_type
from token_crawler.erc721 import metadata_token_uri
from token_crawler.rpc import JsonRpcClient

def main():
    logging.basicConfig(level=logging.DEBUG, format="%(asctime)s | %(levelname)s | %(name)s | %(message)s")

    if len(sys.argv) < 2:
        print("usage: debug_classify.py ADDRESS [TOKEN_ID]")
        return 2

    settings = load_settings()
    client = JsonRpcClient(settings.rpc_url, timeout=settings.rpc_timeout)
    address = sys.argv[1]

    ct = contract_type(client, address, gas=settings.probe_gas)
    print("Contract type:", ct)

    if len(sys.argv) > 2 and ct.is_erc721 and ct.metadata:
        token_id = int(sys.argv[2], 0)
        print("tokenURI:", metadata_token_uri(client, address, token_id, gas=settings.token_uri_gas))
    return 0

if __name__ == "__main__":
    sys.exit(main())
