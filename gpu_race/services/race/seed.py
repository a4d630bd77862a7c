import secrets

DEFAULT_SEED_BYTES = 16


def generate_seed(nbytes: int = DEFAULT_SEED_BYTES) -> str:
    """Return a fresh hex token both clients use to drive an identical workload."""
    return secrets.token_hex(nbytes)
