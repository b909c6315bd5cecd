def to_uppercase(value: str | None) -> str | None:
    """
    Converts a string to uppercase if it's not None.
    """
    if value is None:
        return None
    return value.upper()


def to_lowercase(value: str | None) -> str | None:
    if value is None:
        return None
    return value.lower()


def strip_trailing_slash(value: str | None) -> str | None:
    """
    Remove trailing '/' characters so paths can be appended with f"{base}/path".
    """
    if value is None:
        return None
    return value.rstrip("/")


def ensure_positive(value: int | float | None, name: str) -> int | float | None:
    """
    Raise ValueError when `value` is zero or negative. None passes through (unset option).
    """
    if value is None:
        return None
    if value <= 0:
        raise ValueError(f"{name} must be greater than 0, got {value}")
    return value
