from typing import Callable, Iterator, Sequence, TypeVar, Union
import sys

T = TypeVar("T")

MAX_BAR_LENGTH = 30


def progressify(
    seq: Sequence[T],
    message: Union[str, Callable[[int, T], str]] = "",
    enabled: bool = True,
) -> Iterator[T]:
    """
    Display a progress bar on stderr while iterating over a sequence.

    The values of the sequence are passed through unchanged; after each one is yielded the bar is redrawn
    in place (with a carriage return). The bar is as long as the sequence, but never longer than 30
    characters, which leaves room for a message on an 80-column terminal.

    Args:
        seq: The sequence of elements to iterate over (often a list).
        message: An optional message printed after the bar. If it is a string, the special sequences
            "%i" (index, starting from 1) and "%n" (length of the sequence) and "%e" (current element) are
            replaced. If it is a callable, it is called with (index, element) and its return value printed.
        enabled: If False, the elements are passed through and nothing is printed.

    Yields:
        The elements from seq.

    Example:
        for params in progressify(grid, "combination %i/%n"):
            fit_and_score(params)  # e.g. "[▓▓▓░░░] combination 3/6"
    """
    if not enabled:
        yield from seq
        return

    render: Callable[[int, T], str]
    length = len(seq)
    if isinstance(message, str):
        format_str = message

        def render(i: int, element: T) -> str:
            s = format_str
            for key, value in (("%i", i + 1), ("%n", length), ("%e", element)):
                s = s.replace(key, str(value))
            return s
    else:
        render = message

    width = min(length, MAX_BAR_LENGTH)
    try:
        print("\033[?25l", end="", file=sys.stderr)  # hide the cursor
        for i, element in enumerate(seq):
            filled = int(i * MAX_BAR_LENGTH / length) if length > MAX_BAR_LENGTH else i
            print(
                "\r[{}{}] {}".format("▓" * (filled + 1), "░" * (width - filled - 1), render(i, element)),
                file=sys.stderr,
                flush=True,
                end="",
            )
            yield element
    finally:
        print("\033[?25h", file=sys.stderr)  # show the cursor again
