from __future__ import annotations

from fastapi import HTTPException, Response, status

from app.core.errors import StaleVersionError


def parse_if_match(if_match: str | None) -> int | None:
    """
    Supports:
      If-Match: 3
      If-Match: "3"
    A missing header means the caller skips the version check.
    """
    if if_match is None:
        return None

    raw = if_match.strip()
    if raw.startswith('"') and raw.endswith('"') and len(raw) >= 2:
        raw = raw[1:-1]

    try:
        v = int(raw)
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid If-Match header (expected integer version)",
        )

    if v <= 0:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid If-Match header (version must be positive)",
        )
    return v


def assert_version_matches(*, current_version: int, if_match_version: int | None) -> None:
    if if_match_version is None:
        return
    if current_version != if_match_version:
        raise StaleVersionError(
            "Stale version",
            details={"expected": current_version, "got": if_match_version},
        )


def set_etag(response: Response, version: int) -> None:
    # Quote it to behave like a real ETag
    response.headers["ETag"] = f'"{version}"'
