from datetime import datetime
from typing import Iterator, Sequence, TypeVar

T = TypeVar("T")


def _progressbar(it: Sequence[T], suffix="", show_every: int = 1) -> Iterator[T]:
    """A simple terminal progressbar."""
    size = 30
    count = len(it)

    start = datetime.now()

    def show(j):
        x = int(size * j / max(count, 1))
        print(
            "[{}{}] {}/{} {}, Elapsed: {:.3f} [s]".format(
                "#" * x,
                "." * (size - x),
                j,
                count,
                suffix,
                (datetime.now() - start).total_seconds(),
            ),
            end="\r",
            flush=True,
        )

    show(0)
    for i, item in enumerate(it):
        yield item
        if (i % show_every == 0) or (i == count - 1):
            show(i + 1)
    print("\n", flush=True)
