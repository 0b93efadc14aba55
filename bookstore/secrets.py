from urllib.parse import quote_plus

import httpx


def fetch_vault_secret(*, addr: str, token: str, mount: str, path: str) -> dict[str, str]:
    """Read a KV v2 secret and return its inner ``data`` mapping."""
    url = f"{addr.rstrip('/')}/v1/{mount}/data/{path.lstrip('/')}"
    with httpx.Client(timeout=5.0) as client:
        resp = client.get(url, headers={"X-Vault-Token": token})
        resp.raise_for_status()
        payload = resp.json()
    return payload.get("data", {}).get("data", {}) or {}


def database_uri_from_secret(secret: dict[str, str]) -> str | None:
    """Pick a MongoDB URI out of a secret.

    A full ``database_uri`` wins. Otherwise ``username``/``password``/``host``
    are assembled into one, with the credentials escaped as pymongo requires.
    """
    if secret.get("database_uri"):
        return secret["database_uri"]
    if secret.get("username") and secret.get("password") and secret.get("host"):
        credentials = f"{quote_plus(secret['username'])}:{quote_plus(secret['password'])}"
        return f"mongodb://{credentials}@{secret['host']}"
    return None
