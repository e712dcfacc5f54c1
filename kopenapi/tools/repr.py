from typing import Any, Optional


def disp_secret_string(input: Optional[str]) -> str:
    return "SET" if input is not None else "UNSET"


def disp_secret_blob(input: Optional[str]) -> Optional[str]:
    return "[%s bytes]" % len(input) if input is not None else None


def disp_fragment(input: Any, limit: int = 200) -> str:
    "Shortened repr of a payload fragment, for error messages"

    if isinstance(input, (bytes, bytearray)):
        text = bytes(input).decode("utf-8", errors="replace")
    elif isinstance(input, str):
        text = input
    else:
        text = repr(input)

    if len(text) > limit:
        text = text[:limit] + "...[%s more]" % (len(text) - limit)

    return text
