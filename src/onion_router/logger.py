import itertools
import threading


class LogColors:
    RED = "\033[31m"
    GREEN = "\033[32m"
    YELLOW = "\033[33m"
    BLUE = "\033[34m"
    MAGENTA = "\033[35m"
    CYAN = "\033[36m"
    BRIGHT_BLUE = "\033[94m"
    BRIGHT_GREEN = "\033[92m"
    BRIGHT_MAGENTA = "\033[95m"
    RESET = "\033[0m"
    ORANGE = "\033[38;5;208m"
    PINK = "\033[38;5;213m"
    VIOLET = "\033[38;5;135m"
    TURQUOISE = "\033[38;5;45m"
    GOLD = "\033[38;5;220m"


# Red is kept out of the rotation, it marks errors
COLOR_LIST = [
    LogColors.BLUE,
    LogColors.GREEN,
    LogColors.YELLOW,
    LogColors.MAGENTA,
    LogColors.CYAN,
    LogColors.BRIGHT_BLUE,
    LogColors.BRIGHT_GREEN,
    LogColors.BRIGHT_MAGENTA,
    LogColors.ORANGE,
    LogColors.PINK,
    LogColors.VIOLET,
    LogColors.TURQUOISE,
    LogColors.GOLD,
]

_colors = itertools.cycle(COLOR_LIST)
_colors_lock = threading.Lock()
_print_lock = threading.Lock()


def next_color() -> str:
    """Returns the next colour of the rotation, one per node."""
    with _colors_lock:
        return next(_colors)


def colored_log(tag: str, message: str, color: str = LogColors.CYAN):
    """Prints a colored log message."""
    with _print_lock:
        print(f"{color}{tag} {message}{LogColors.RESET}", flush=True)


def make_logger(tag: str, color: str = None):
    """Returns a ``logger(action, msg)`` callable that prefixes lines with ``[tag][action]``."""
    color = color or next_color()

    def log(action, msg):
        colored_log(f"[{tag}][{action}]", msg, LogColors.RED if action.endswith("_ERROR") else color)
    return log
