from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Callable

from remote.config import FetchSettings


@dataclass(frozen=True)
class FixedBackoff:
    """
    Fixed delays between pagination batches and between retry attempts.

    `sleep` blocks the calling thread only; concurrent passes and resolutions keep going.
    """

    page_delay_s: float = 0.1
    retry_delay_s: float = 0.2
    sleep: Callable[[float], None] = field(default=time.sleep, repr=False, compare=False)

    @classmethod
    def from_settings(cls, settings: FetchSettings) -> "FixedBackoff":
        return cls(page_delay_s=settings.page_delay_s, retry_delay_s=settings.retry_delay_s)

    def between_batches(self, batch_no: int) -> None:
        if self.page_delay_s > 0:
            self.sleep(self.page_delay_s)

    def before_retry(self, attempt: int) -> None:
        if self.retry_delay_s > 0:
            self.sleep(self.retry_delay_s)
