"""Shared utilities."""


def truncate_output(text: str, max_length: int = 30000) -> str:
    """Clip ``text`` to roughly ``max_length`` characters.

    Keeps the head and the tail, since command failures usually report at the
    end of their output. The omitted span is replaced by a marker line.
    """
    if len(text) <= max_length:
        return text

    head = max_length * 2 // 3
    tail = max_length - head
    omitted = len(text) - head - tail
    return f"{text[:head]}\n[... {omitted} characters omitted ...]\n{text[len(text) - tail:]}"
