"""
parasketch - Configuration Module
=================================

Zentrale Konfiguration für Toleranzen und Debug-Flags.
"""

from .tolerances import Tolerances, merge_tolerance, solver_tolerance
from .feature_flags import is_enabled, set_flag, get_all_flags, FEATURE_FLAGS
