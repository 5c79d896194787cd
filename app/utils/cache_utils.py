"""
Cache utilities for the Porra application
Standings are derived data: they are cached per scope and invalidated
whenever predictions are rescored or a season changes.
"""

import functools

from flask import current_app

from app import cache


def _generation_key(model_name):
    return f"generation_{model_name}"


def _cache_generation(model_name):
    return cache.get(_generation_key(model_name)) or 0


def cached_query(model_name, timeout=None):
    """
    Decorator for caching query results

    Args:
        model_name: Name of the cached model, used for keys and invalidation
        timeout: Cache timeout in seconds (defaults to STANDINGS_CACHE_TIMEOUT)
    """

    def decorator(f):
        @functools.wraps(f)
        def wrapped(*args, **kwargs):
            args_str = "_".join(str(arg) for arg in args)
            kwargs_str = "_".join(f"{k}_{v}" for k, v in sorted(kwargs.items()))
            generation = _cache_generation(model_name)
            cache_key = (
                f"query_{model_name}_{generation}_{f.__name__}_{args_str}_{kwargs_str}"
            )

            result = cache.get(cache_key)
            if result is not None:
                current_app.logger.debug(f"Query cache hit: {cache_key}")
                return result

            result = f(*args, **kwargs)
            cache.set(
                cache_key,
                result,
                timeout=timeout or current_app.config.get("STANDINGS_CACHE_TIMEOUT", 600),
            )
            current_app.logger.debug(f"Query cache set: {cache_key}")

            return result

        return wrapped

    return decorator


def invalidate_model_cache(model_name):
    """
    Invalidate all cache entries for a specific model

    Bumping the generation orphans every key built from the previous one;
    orphaned entries expire on their own timeout.
    """
    try:
        generation = _cache_generation(model_name) + 1
        cache.set(_generation_key(model_name), generation, timeout=0)
        current_app.logger.debug(f"Cache generation for {model_name} -> {generation}")
    except Exception as e:
        # Stale reads are bounded by STANDINGS_CACHE_TIMEOUT
        current_app.logger.error(f"Failed to invalidate {model_name} cache: {e}")


def invalidate_standings():
    invalidate_model_cache("standings")
