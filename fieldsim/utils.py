"""General utility functions for the simulation backend."""

import math
import importlib
import numpy as np


def dynamic_import(module_name, class_name):
    """Dynamically imports a class (or function) from a specified module."""
    try:
        module = importlib.import_module(module_name)
        return getattr(module, class_name)
    except ImportError:
        print(f"ERROR: Module '{module_name}' not found.")
        raise # Re-raise the error for calling code to handle
    except AttributeError:
        print(f"ERROR: '{class_name}' not found in module '{module_name}'.")
        raise

def clamp_value(value: float, lo: float, hi: float) -> float:
    """Clamps a finite or infinite float into [lo, hi]. NaN is the caller's problem."""
    return max(lo, min(hi, value))

def is_power_of_two(n: int) -> bool:
    return n > 0 and (n & (n - 1)) == 0

def format_value_scientific(value, precision=2):
    """Formats a number into scientific notation string, handling non-finite values."""
    if not isinstance(value, (int, float, np.number)) or not math.isfinite(value):
        return "-" # Return dash for NaN, Inf, None or non-numeric types
    if abs(value) < 1e-15: # Handle zero or very small numbers cleanly
        return "0.0e+00"
    return f"{value:.{precision}e}"
