import csv

from .storage import MetadataCache

CSV_HEADER = [
    "address", "type", "metadata", "enumerable",
    "uris", "templates", "unchecked_tokens",
]


def export_index(cache: MetadataCache, path: str) -> int:
    """One row per contract. Returns the number of rows written."""
    rows = 0
    with open(path, "w", newline="") as f:
        writer = csv.writer(f)
        writer.writerow(CSV_HEADER)
        for addr, entry in cache.items():
            ct = entry.contract_type
            writer.writerow([
                addr, ct.kind.value,
                int(ct.metadata), int(ct.enumerable),
                len(entry.uris),
                ";".join(t.template for t in entry.templates),
                len(entry.unchecked_token_ids),
            ])
            rows += 1
    return rows
