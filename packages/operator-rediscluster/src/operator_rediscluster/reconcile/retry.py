"""
Backoff for failed reconcile ticks.

A cluster whose tick failed is requeued after an exponentially growing
delay with jitter, so that many clusters failing at once (API server
restart, network blip) don't retry in lockstep. The failure count of a
cluster is reset by its next successful tick.
"""

import random
from dataclasses import dataclass


@dataclass
class RetryConfig:
    """
    Requeue delay policy.

    Attributes:
        min_wait_seconds: Delay after the first failure (default 1.0)
        max_wait_seconds: Upper bound of the base delay (default 60.0)
        exponential_base: Growth factor per failure (default 2.0)
        jitter_fraction: Fraction of the delay added as random jitter
            (default 0.5)

    Example:
        # second consecutive failure: 4s, plus up to 2s of jitter
        RetryConfig(min_wait_seconds=2.0).calculate_delay(attempt=1)
    """

    min_wait_seconds: float = 1.0
    max_wait_seconds: float = 60.0
    exponential_base: float = 2.0
    jitter_fraction: float = 0.5

    def calculate_delay(self, attempt: int) -> float:
        """
        Seconds to wait before requeueing a cluster whose tick failed.

        The first failure waits min_wait_seconds, each further consecutive
        failure multiplies that by exponential_base until max_wait_seconds
        is reached. Up to jitter_fraction of the delay is added on top.

        Args:
            attempt: Consecutive failures of the cluster before this one
        """
        delay = self.min_wait_seconds * self.exponential_base**attempt
        if delay > self.max_wait_seconds:
            delay = self.max_wait_seconds
        return delay * (1 + random.uniform(0, self.jitter_fraction))
