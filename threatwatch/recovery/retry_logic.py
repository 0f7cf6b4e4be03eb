"""
ThreatWatch Retry Logic
=======================

Retry mechanism with exponential backoff used by the threat level fetcher.
Delays are deterministic (no jitter) so a refresh with three attempts waits
0.5s and then 1.0s between tries under the default configuration.
"""

import asyncio
import inspect
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Optional, TypeVar

from ..utils.logging import get_logger_for_component


T = TypeVar('T')


class RetryStrategy(Enum):
    """Different retry strategy types."""
    FIXED_DELAY = "fixed_delay"              # Fixed interval between retries
    EXPONENTIAL_BACKOFF = "exponential"     # Exponentially increasing delays
    LINEAR_BACKOFF = "linear"               # Linearly increasing delays


@dataclass
class RetryConfig:
    """Configuration for retry behavior."""
    max_attempts: int = 3                   # Total attempts, including the first
    strategy: RetryStrategy = RetryStrategy.EXPONENTIAL_BACKOFF
    base_delay: float = 0.5                # Delay after the first failure
    max_delay: float = 30.0                # Maximum delay in seconds
    exponential_base: float = 2.0          # Exponential backoff multiplier

    # Exception types that trigger another attempt
    retry_on_exceptions: tuple = (Exception,)
    # Exception types that are raised immediately even if they match above
    never_retry_exceptions: tuple = ()


@dataclass
class RetryAttempt:
    """Information about a retry attempt."""
    attempt_number: int
    delay: float
    exception: Optional[Exception]
    timestamp: datetime
    success: bool


@dataclass
class RetryStatistics:
    """Counters for retry operations."""
    total_attempts: int = 0
    total_successes: int = 0
    total_failures: int = 0
    recent: List[RetryAttempt] = field(default_factory=list)

    def record_attempt(self, attempt: RetryAttempt) -> None:
        self.recent.append(attempt)
        self.total_attempts += 1

        if attempt.success:
            self.total_successes += 1
        else:
            self.total_failures += 1

        # Keep only recent attempts
        if len(self.recent) > 100:
            self.recent = self.recent[-100:]

    @property
    def success_rate(self) -> float:
        if self.total_attempts == 0:
            return 0.0
        return (self.total_successes / self.total_attempts) * 100


class RetryManager:
    """Retry manager with configurable backoff strategy."""

    def __init__(self,
                 config: Optional[RetryConfig] = None,
                 sleep: Optional[Callable[[float], Awaitable[Any]]] = None):
        """Initialize retry manager.

        Args:
            config: Default retry configuration
            sleep: Awaitable sleep function; tests inject a recorder here
        """
        self.config = config or RetryConfig()
        self._sleep = sleep or asyncio.sleep
        self.logger = get_logger_for_component('retry_manager')
        self.statistics = RetryStatistics()

        self._delay_calculators = {
            RetryStrategy.FIXED_DELAY: self._calculate_fixed_delay,
            RetryStrategy.EXPONENTIAL_BACKOFF: self._calculate_exponential_delay,
            RetryStrategy.LINEAR_BACKOFF: self._calculate_linear_delay,
        }

    async def retry_async(self,
                          func: Callable[..., Any],
                          *args,
                          config: Optional[RetryConfig] = None,
                          operation: Optional[str] = None,
                          **kwargs) -> Any:
        """
        Retry an async function with configured strategy.

        Args:
            func: Async (or plain) callable to retry
            *args: Function arguments
            config: Override default retry configuration
            operation: Name used in log messages (defaults to function name)
            **kwargs: Function keyword arguments

        Returns:
            Function result if successful

        Raises:
            The last exception if all attempts fail, or the first
            non-retryable exception immediately
        """
        retry_config = config or self.config
        name = operation or getattr(func, '__name__', 'operation')

        for attempt in range(1, retry_config.max_attempts + 1):
            try:
                result = func(*args, **kwargs)
                if inspect.isawaitable(result):
                    result = await result

                self.statistics.record_attempt(RetryAttempt(
                    attempt_number=attempt,
                    delay=0.0,
                    exception=None,
                    timestamp=datetime.now(timezone.utc),
                    success=True
                ))

                if attempt > 1:
                    self.logger.info(f"Retry successful for {name} on attempt {attempt}")

                return result

            except Exception as e:
                if not self._should_retry_exception(e, retry_config):
                    self.logger.info(f"Not retrying {name} due to non-retryable exception: {e}")
                    raise

                if attempt >= retry_config.max_attempts:
                    self.statistics.record_attempt(RetryAttempt(
                        attempt_number=attempt,
                        delay=0.0,
                        exception=e,
                        timestamp=datetime.now(timezone.utc),
                        success=False
                    ))
                    self.logger.error(f"All {retry_config.max_attempts} attempts failed for {name}")
                    raise

                delay = self._calculate_delay(attempt, retry_config)
                self.logger.warning(
                    f"Attempt {attempt} failed for {name}: {e}. "
                    f"Retrying in {delay:.2f}s (attempt {attempt + 1}/{retry_config.max_attempts})"
                )
                self.statistics.record_attempt(RetryAttempt(
                    attempt_number=attempt,
                    delay=delay,
                    exception=e,
                    timestamp=datetime.now(timezone.utc),
                    success=False
                ))

                await self._sleep(delay)

        raise RuntimeError(f"Retry loop for {name} ran with max_attempts={retry_config.max_attempts}")

    def _should_retry_exception(self, exception: Exception, config: RetryConfig) -> bool:
        """Determine if an exception should trigger a retry."""
        if config.never_retry_exceptions and isinstance(exception, config.never_retry_exceptions):
            return False
        return isinstance(exception, config.retry_on_exceptions)

    def _calculate_delay(self, attempt: int, config: RetryConfig) -> float:
        """Calculate delay after a failed attempt based on strategy."""
        calculator = self._delay_calculators.get(config.strategy, self._calculate_exponential_delay)
        return min(calculator(attempt, config), config.max_delay)

    def _calculate_fixed_delay(self, attempt: int, config: RetryConfig) -> float:
        return config.base_delay

    def _calculate_exponential_delay(self, attempt: int, config: RetryConfig) -> float:
        return config.base_delay * (config.exponential_base ** (attempt - 1))

    def _calculate_linear_delay(self, attempt: int, config: RetryConfig) -> float:
        return config.base_delay * attempt

    def get_retry_statistics(self) -> Dict[str, Any]:
        return {
            'total_attempts': self.statistics.total_attempts,
            'total_successes': self.statistics.total_successes,
            'total_failures': self.statistics.total_failures,
            'success_rate': round(self.statistics.success_rate, 1),
        }
