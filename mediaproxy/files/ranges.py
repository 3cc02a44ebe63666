from mediaproxy.errors import RangeNotSatisfiable


def parse_range(header: str | None, size: int) -> tuple[int, int] | None:
    """Parse a single ``bytes=`` range against a body of ``size`` bytes.

    Returns an inclusive (start, end) pair, or None when the header is absent,
    malformed or asks for several ranges (the full body is served then).
    Raises RangeNotSatisfiable when the range lies outside the body.
    """
    if not header:
        return None
    header = header.strip()
    if not header.lower().startswith("bytes="):
        return None
    spec = header[6:].strip()
    if "," in spec or "-" not in spec:
        return None

    start_str, end_str = (s.strip() for s in spec.split("-", 1))
    try:
        if start_str == "":
            # Suffix range, e.g. bytes=-500
            if end_str == "":
                return None
            length = int(end_str)
            if length <= 0 or size == 0:
                raise RangeNotSatisfiable(size)
            return max(0, size - length), size - 1
        start = int(start_str)
        end = int(end_str) if end_str else size - 1
    except ValueError:
        return None

    if start < 0:
        return None
    if start >= size:
        raise RangeNotSatisfiable(size)
    if end < start:
        return None
    return start, min(end, size - 1)


def content_range(start: int, end: int, size: int) -> str:
    return f"bytes {start}-{end}/{size}"
