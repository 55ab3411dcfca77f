from rich.console import Console

def get_rich_console() -> Console: return Console(stderr=True)


def mask_secret(value: str | None, visible: int = 4) -> str:
    """
    Маскирует секрет для вывода в консоль: 'abcd1234...' -> 'abcd****'.
    """
    if not value:
        return "<unset>"
    return value[:visible] + "*" * max(len(value) - visible, 0)
