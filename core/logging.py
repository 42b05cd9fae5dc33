"""
Logging configuration for the playhead engine using eliot.

This module provides structured logging throughout the engine using eliot,
which gives context-aware logging (actions nest across navigator, store and
bridge calls) with structured data attached to every message.
"""

import eliot
import logging
import sys
from eliot import log_message, start_action, write_traceback
from eliot.stdlib import EliotHandler
from pathlib import Path


class HumanReadableDestination:
    """Destination that formats eliot messages in a human-readable format."""

    # Poll-rate messages would flood stdout
    skip_messages = {
        "queue_operation",
        "database_operation",
        "bridge_poll",
    }

    def __init__(self, file):
        self.file = file

    def __call__(self, message):
        # Skip internal eliot action start/finish messages
        if message.get("action_type") and not message.get("message_type"):
            return

        msg_type = message.get("message_type", "")
        if msg_type in self.skip_messages:
            return

        action = message.get("action", msg_type)
        description = message.get("description", "")
        trigger = message.get("trigger_source", "")

        if msg_type == "player_action":
            if not trigger:
                return
            track = message.get("track", "")
            old_state = message.get("old_state", "")
            new_state = message.get("new_state", "")
            if track and old_state != "" and new_state != "":
                output = f"[{trigger.upper()}] {action}: {track} ({old_state} → {new_state})"
            elif description:
                output = f"[{trigger.upper()}] {description}"
            elif track:
                output = f"[{trigger.upper()}] {action}: {track}"
            else:
                output = f"[{trigger.upper()}] {action}"
        elif msg_type == "error_occurred":
            output = f"[ERROR] {message.get('error_type', '')}: {message.get('error_message', '')}"
        elif description:
            output = description
        elif "message" in message:
            output = message["message"]
        else:
            return

        if output and output.strip():
            self.file.write(output + "\n")
            self.file.flush()


def setup_logging(log_level: str = "INFO", log_file: str = None) -> None:
    """
    Set up eliot logging for the application.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_file: Optional file path to write logs to (always logs to stdout as well)
    """
    eliot.add_destinations(HumanReadableDestination(sys.stdout))

    # Raw JSON lines for machine parsing
    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        eliot.to_file(open(log_file, "a"))

    # Route stdlib logging (python-vlc, sqlite adapters) through eliot
    logger = logging.getLogger()
    logger.setLevel(getattr(logging, log_level.upper(), logging.INFO))
    logger.addHandler(EliotHandler())

    log_message(
        message_type="logging_setup", log_level=log_level, log_file=log_file or "stdout", message="Eliot logging configured"
    )


def get_logger(name: str):
    """
    Get an eliot logger instance for a specific component.

    The returned Logger is meant for start_action() contexts; use
    eliot.log_message() for individual messages.

    Args:
        name: Module or component name

    Returns:
        Eliot Logger instance for use with start_action()
    """
    from eliot import Logger

    return Logger()


# Global logger instances for different components
app_logger = get_logger("playhead_app")
db_logger = get_logger("playhead_database")
queue_logger = get_logger("playhead_queue")
navigator_logger = get_logger("playhead_navigator")
bridge_logger = get_logger("playhead_bridge")
player_logger = get_logger("playhead_player")


def log_function_call(logger: eliot.Logger, action_type: str):
    """
    Decorator wrapping a function call in an eliot action.

    Args:
        logger: Eliot logger instance
        action_type: Type of action being performed

    Returns:
        Decorated function
    """

    def decorator(func):
        def wrapper(*args, **kwargs):
            with start_action(logger, action_type, function=func.__name__):
                return func(*args, **kwargs)

        wrapper.__name__ = func.__name__
        wrapper.__doc__ = func.__doc__
        return wrapper

    return decorator


def log_database_operation(operation: str, table: str = None, **context):
    """
    Log database operations with context.

    Args:
        operation: Type of database operation (SELECT, INSERT, UPDATE, DELETE)
        table: Database table name
        **context: Additional context data
    """
    log_message(message_type="database_operation", operation=operation, table=table, **context)


def log_player_action(action: str, **context):
    """
    Log player actions with context.

    Args:
        action: Player action (play, next, previous, toggle_shuffle, etc.)
        **context: Additional context data
    """
    log_message(message_type="player_action", action=action, **context)


def log_queue_operation(operation: str, **context):
    """
    Log queue operations with context.

    Args:
        operation: Queue operation (append, insert, remove, reorder, etc.)
        **context: Additional context data
    """
    log_message(message_type="queue_operation", operation=operation, **context)


def log_error(logger: eliot.Logger, error: Exception, **context):
    """
    Log errors with full context and traceback.

    Args:
        logger: Eliot logger instance
        error: Exception that occurred
        **context: Additional context data
    """
    write_traceback(logger, exc_info=(type(error), error, error.__traceback__))
    log_message(message_type="error_occurred", error_message=str(error), error_type=type(error).__name__, **context)
