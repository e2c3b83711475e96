def sanitize_error_message(error: object, max_length: int = 1000) -> str:
    """
    Turn a render exception into a message safe for storage and display.
    Null bytes are removed and the result is truncated to max_length.
    """
    if error is None:
        return "Unknown error"

    if isinstance(error, BaseException):
        text = str(error) or type(error).__name__
    else:
        text = str(error)

    cleaned = text.replace("\x00", "").strip()
    if not cleaned:
        return "Unknown error"
    return cleaned[:max_length]
