"""FastAPI dependency injection functions."""
from datetime import date
from functools import lru_cache
from typing import Callable

from fastapi import Depends, HTTPException, Request, status

from clinic_booking import config
from clinic_booking.availability import AvailabilityCalculator
from clinic_booking.booking import BookingTransactionManager
from clinic_booking.cache import AvailabilityCache
from clinic_booking.calendar_view import CalendarAggregator
from clinic_booking.ledger import BookingLedger
from clinic_booking.rate_limiter import RateLimiter, RateLimitExceeded
from clinic_booking.schedule_catalog import ScheduleCatalog


@lru_cache(maxsize=1)
def get_catalog() -> ScheduleCatalog:
    """
    Get schedule catalog (cached singleton).

    Pattern: Load the JSON schedules once, reuse across requests.
    """
    return ScheduleCatalog.from_directory(config.HOSPITAL_CONFIG_DIR)


@lru_cache(maxsize=1)
def get_ledger() -> BookingLedger:
    """Get booking ledger singleton (owns the connection pool)."""
    return BookingLedger(
        database_url=config.DATABASE_URL,
        timeout_seconds=config.BOOKING_TIMEOUT_SECONDS
    )


@lru_cache(maxsize=1)
def get_availability_cache() -> AvailabilityCache:
    return AvailabilityCache(ttl=config.AVAILABILITY_CACHE_TTL)


@lru_cache(maxsize=1)
def get_rate_limiter() -> RateLimiter:
    """Get rate limiter singleton."""
    return RateLimiter(
        max_requests=config.RATE_LIMIT_REQUESTS,
        window_seconds=config.RATE_LIMIT_WINDOW_SECONDS
    )


def get_today_provider() -> Callable[[], date]:
    """Source of the current local calendar date (overridden in tests)."""
    return date.today


def get_availability_calculator(
    catalog: ScheduleCatalog = Depends(get_catalog),
    ledger: BookingLedger = Depends(get_ledger),
    cache: AvailabilityCache = Depends(get_availability_cache)
) -> AvailabilityCalculator:
    return AvailabilityCalculator(catalog, ledger, cache)


def get_booking_manager(
    catalog: ScheduleCatalog = Depends(get_catalog),
    ledger: BookingLedger = Depends(get_ledger),
    cache: AvailabilityCache = Depends(get_availability_cache),
    today: Callable[[], date] = Depends(get_today_provider)
) -> BookingTransactionManager:
    return BookingTransactionManager(catalog, ledger, cache=cache, today=today)


def get_calendar_aggregator(
    calculator: AvailabilityCalculator = Depends(get_availability_calculator),
    today: Callable[[], date] = Depends(get_today_provider)
) -> CalendarAggregator:
    return CalendarAggregator(calculator, today=today)


async def check_rate_limit(
    request: Request,
    limiter: RateLimiter = Depends(get_rate_limiter)
) -> None:
    """
    FastAPI dependency for rate limit checking, keyed by client address.

    Raises:
        HTTPException 429: If rate limit exceeded
    """
    client_id = request.client.host if request.client else "unknown"
    try:
        limiter.check_rate_limit(client_id)
    except RateLimitExceeded as e:
        raise HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail=str(e),
            headers={"Retry-After": str(e.retry_after)}
        )
