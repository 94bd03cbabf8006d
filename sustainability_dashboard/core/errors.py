class ApiError(Exception):
    """Error rendered as `{success: false, error: message}` with the given status."""

    def __init__(self, status_code: int, message: str):
        super().__init__(message)
        self.status_code = status_code
        self.message = message


class NotFoundError(ApiError):
    def __init__(self, resource: str = "Resource"):
        super().__init__(404, f"{resource} not found")


def first_validation_message(errors: list) -> str:
    """Human message of the first pydantic/FastAPI validation error."""
    if not errors:
        return "Invalid request"
    err = errors[0]
    msg = str(err.get("msg") or "Invalid request")
    # pydantic prefixes messages raised from custom validators
    if msg.startswith("Value error, "):
        msg = msg[len("Value error, "):]
    loc = [str(p) for p in err.get("loc", ()) if p not in ("body", "query", "path")]
    if loc and err.get("type") in ("missing", "string_pattern_mismatch", "enum", "literal_error"):
        return f"{loc[-1]}: {msg}"
    return msg
