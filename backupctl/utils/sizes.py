"""
Human-readable byte sizes for log messages and error reports.
"""

SIZE_UNITS = ('B', 'KB', 'MB', 'GB', 'TB', 'PB')


def format_size(num_bytes: int) -> str:
    """
    Format a byte count using binary (1024) multiples.

    Args:
        num_bytes: Size in bytes

    Returns:
        String such as '512 B' or '10.00 MB'
    """
    size = float(num_bytes)
    for unit in SIZE_UNITS:
        if abs(size) < 1024 or unit == SIZE_UNITS[-1]:
            if unit == 'B':
                return f"{int(size)} B"
            return f"{size:.2f} {unit}"
        size /= 1024
