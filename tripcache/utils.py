import functools
import inspect
import time

from loguru import logger


def logged_job(func):
    """
    Decorator for async maintenance jobs.

    Features:
    - Logs the job name and parameters before execution
    - Logs duration after successful execution
    - Logs the exception with traceback and re-raises it unchanged
    """

    @functools.wraps(func)
    async def wrapper(*args, **kwargs):
        func_name = func.__name__

        sig = inspect.signature(func)
        bound_args = sig.bind(*args, **kwargs)
        bound_args.apply_defaults()
        params = {k: v for k, v in bound_args.arguments.items() if k != "self"}

        logger.debug(f"Entering {func_name} with params: {params}")
        started = time.perf_counter()
        try:
            result = await func(*args, **kwargs)
        except Exception as e:
            logger.exception(f"{func_name} failed: {type(e).__name__}: {e}")
            raise
        logger.debug(f"{func_name} finished in {time.perf_counter() - started:.3f}s")
        return result

    return wrapper
