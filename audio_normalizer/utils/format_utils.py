"""
Helper functions for formatting values into human-readable strings for the log.
"""

from datetime import timedelta


def format_timedelta(td_object: timedelta) -> str:
    """
    Formats a timedelta object into a "HH:MM:SS" string.

    Hours are not wrapped at 24, so a run of a day and a half prints as "36:00:00".

    Args:
        td_object: The timedelta object to format.

    Returns:
        A string representing the timedelta in HH:MM:SS format.
        For example, a timedelta of 7261 seconds becomes "02:01:01".
        Returns "00:00:00" if the input is not a valid timedelta object.
    """
    if not isinstance(td_object, timedelta):
        return "00:00:00"

    total_seconds = max(int(td_object.total_seconds()), 0)
    hours, remainder = divmod(total_seconds, 3600)
    minutes, seconds = divmod(remainder, 60)
    return f"{hours:02}:{minutes:02}:{seconds:02}"


def format_process_output(context: str, stdout, stderr) -> str:
    """
    Builds the diagnostic text of a failed stage.

    The context line is followed by the captured stdout lines and then the
    stderr lines, each in the order the tool printed them.

    Example:
        "Loudness analysis of 'a.mp3' failed. PROCESS OUTPUT:\\n<stdout>\\n<stderr>"
    """
    return f"{context} PROCESS OUTPUT:\n" + "\n".join(stdout) + "\n" + "\n".join(stderr)
