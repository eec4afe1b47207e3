"""
Stage debug logging for the pyflacenc encoding pipeline.
Each entry records source location, channel/frame tags, statistics of the
logged values and free-form context so an encode can be traced block by block.
"""

import time
import inspect
import numpy as np
from typing import List, Union, Any
import os


class FlacDebugLogger:
    """
    Debug logger for FLAC encoding stages.
    Logs with metadata including source location, data statistics, and context.
    """

    def __init__(self, log_file: str = "pyflacenc_debug.log", enabled: bool = True):
        self.log_file = log_file
        self.enabled = enabled
        if enabled:
            with open(log_file, 'w') as f:
                f.write(f"# pyflacenc Debug Log - {time.strftime('%Y-%m-%d %H:%M:%S')}\n")
                f.write("# Format: [TIMESTAMP][FILE:LINE][FUNC][CH{n}][FR{nnn}] STAGE: data_type=values |META: ... |SRC: ...\n")
                f.write("#\n")

    @staticmethod
    def _caller_location(depth: int = 2):
        frame_info = inspect.currentframe()
        for _ in range(depth):
            frame_info = frame_info.f_back
        return (
            os.path.basename(frame_info.f_code.co_filename),
            frame_info.f_lineno,
            frame_info.f_code.co_name,
        )

    @staticmethod
    def _timestamp() -> str:
        return time.strftime('%Y-%m-%dT%H:%M:%S.') + f"{int(time.time() * 1000000) % 1000000:06d}"

    @staticmethod
    def _context_string(context: dict) -> str:
        return " ".join(f"{key}={value}" for key, value in context.items())

    def _append(self, log_entry: str) -> None:
        with open(self.log_file, 'a') as f:
            f.write(log_entry)

    def log_stage(self, stage: str, data_type: str, values: Union[List, np.ndarray, float, int],
                  channel: int = 0, frame: int = 0, depth: int = 2, **context) -> None:
        """
        Log a processing stage with metadata.

        Args:
            stage: Processing stage name (e.g., 'BLOCK_INPUT', 'SUBFRAME_CHOICE')
            data_type: Type of data being logged (e.g., 'samples', 'residual', 'bits')
            values: The actual data values
            channel: Channel index
            frame: Frame index
            depth: Stack depth of the caller to attribute the entry to
            **context: Additional context (subframe type, order, rice parameters, etc.)
        """
        if not self.enabled:
            return

        filename, line_no, func_name = self._caller_location(depth)

        is_scalar = isinstance(values, (int, float, np.integer, np.floating))
        if is_scalar:
            values_array = np.array([values], dtype=np.float64)
        else:
            values_array = np.asarray(values, dtype=np.float64).reshape(-1)

        size = values_array.size
        if size > 0:
            min_val = float(np.min(values_array))
            max_val = float(np.max(values_array))
            sum_val = float(np.sum(values_array))
            mean_val = float(np.mean(values_array))
            nonzero_count = int(np.count_nonzero(values_array))
        else:
            min_val = max_val = sum_val = mean_val = 0.0
            nonzero_count = 0

        # Integer PCM data reads best without decimals
        if is_scalar:
            values_str = f"{values}"
        elif size <= 10:
            values_str = f"[{','.join(f'{v:g}' for v in values_array)}]"
        else:
            first_5 = ','.join(f'{v:g}' for v in values_array[:5])
            last_5 = ','.join(f'{v:g}' for v in values_array[-5:])
            values_str = f"[{first_5}...{last_5}]"

        log_entry = (
            f"[{self._timestamp()}][{filename}:{line_no}][{func_name}]"
            f"[CH{channel}][FR{frame:03d}] {stage}: "
            f"{data_type}={values_str} "
            f"|META: size={size} range=[{min_val:g},{max_val:g}] "
            f"sum={sum_val:g} mean={mean_val:.6f} nonzero={nonzero_count} "
            f"|SRC: {self._context_string(context)}\n"
        )
        self._append(log_entry)

    def log_bitstream(self, stage: str, bitstream_bytes: bytes,
                      channel: int = 0, frame: int = 0, depth: int = 2, **context) -> None:
        """
        Special logging for bitstream data in hex format.
        Long payloads are truncated to their first and last 32 bytes.
        """
        if not self.enabled:
            return

        filename, line_no, func_name = self._caller_location(depth)
        size = len(bitstream_bytes)
        if size <= 64:
            hex_str = bitstream_bytes.hex()
        else:
            hex_str = f"{bitstream_bytes[:32].hex()}...{bitstream_bytes[-32:].hex()}"

        log_entry = (
            f"[{self._timestamp()}][{filename}:{line_no}][{func_name}]"
            f"[CH{channel}][FR{frame:03d}] {stage}: "
            f"hex={hex_str} "
            f"|META: size={size} bytes "
            f"|SRC: {self._context_string(context)}\n"
        )
        self._append(log_entry)

    def enable(self):
        """Enable logging."""
        self.enabled = True

    def disable(self):
        """Disable logging."""
        self.enabled = False


# Global logger instance, silent until enable_debug_logging() is called
debug_logger = FlacDebugLogger(enabled=False)


def log_debug(stage: str, data_type: str, values: Any, **kwargs) -> None:
    """
    Convenience function for logging with global logger instance.

    Usage:
        log_debug("SUBFRAME_CHOICE", "bits", candidate_costs,
                  channel=0, frame=1, chosen="fixed", order=2)
    """
    debug_logger.log_stage(stage, data_type, values, depth=3, **kwargs)


def log_bitstream(stage: str, bitstream_bytes: bytes, **kwargs) -> None:
    """
    Convenience function for bitstream logging.
    """
    debug_logger.log_bitstream(stage, bitstream_bytes, depth=3, **kwargs)


def is_debug_logging_enabled() -> bool:
    return debug_logger.enabled


def enable_debug_logging(log_file: str = "pyflacenc_debug.log") -> None:
    """
    Enable debug logging with specified log file.
    """
    global debug_logger
    debug_logger = FlacDebugLogger(log_file, enabled=True)


def disable_debug_logging() -> None:
    """
    Disable debug logging.
    """
    debug_logger.disable()
