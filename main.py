#!/usr/bin/env python

import argparse
import sys
from config import APP_NAME, DB_NAME, LOG_FILE, LOG_LEVEL, __version__
from core.artwork import ArtworkCache
from core.bridge import PlaybackBridge
from core.db import DB_TABLES, MusicDatabase
from core.errors import PlayheadError
from core.logging import app_logger, log_error, log_function_call, setup_logging
from core.navigator import PositionNavigator
from core.player import VLCPlaybackDevice
from eliot import log_message, start_action
from utils.files import collect_audio_files, read_track_metadata

HELP = "commands: n(ext) p(revious) s(huffle) r(epeat) j N (jump) q(uit)"


def parse_args(argv=None):
    parser = argparse.ArgumentParser(prog=APP_NAME, description="Headless queue player")
    parser.add_argument("--db", default=DB_NAME, help="sqlite database path")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("files", nargs="*", help="audio files or folders to queue")
    return parser.parse_args(argv)


@log_function_call(app_logger, "import_files")
def import_files(db: MusicDatabase, paths) -> list[int]:
    """Add files to the library, returning their track ids in order."""
    return [db.add_track(filepath, read_track_metadata(filepath)) for filepath in collect_audio_files(paths)]


def print_track(snapshot):
    if snapshot.track is None:
        print("(idle)")
        return
    shuffle = " [shuffle]" if snapshot.is_shuffled else ""
    print(f"{snapshot.display_index + 1}. {snapshot.track.display_name}{shuffle} [repeat {snapshot.repeat_mode.value}]")


@log_function_call(app_logger, "console_command")
def handle_command(navigator: PositionNavigator, line: str) -> bool:
    """Run one console command. Returns False when the player should exit."""
    command, _, argument = line.strip().partition(" ")
    if command == "q":
        return False
    if command == "n":
        navigator.next()
    elif command == "p":
        navigator.previous()
    elif command == "s":
        navigator.toggle_shuffle()
        print_track(navigator.get_state())
    elif command == "r":
        print(f"repeat {navigator.cycle_repeat_mode().value}")
    elif command == "j" and argument.strip().isdigit():
        navigator.jump_to(int(argument) - 1)
    elif command:
        print(HELP)
    return True


def main(argv=None):
    args = parse_args(argv)
    setup_logging(LOG_LEVEL, LOG_FILE or None)

    with start_action(app_logger, "application_startup"):
        log_message(message_type="application_init", message=f"Starting {APP_NAME} {__version__}")
        db = MusicDatabase(args.db, DB_TABLES)
        device = VLCPlaybackDevice(volume=db.get_volume())
        navigator = PositionNavigator(db, device, ArtworkCache())
        bridge = PlaybackBridge(device, navigator)
        navigator.subscribe_track_changed(print_track)

        try:
            track_ids = import_files(db, args.files)
            if track_ids:
                navigator.create_or_reuse_queue_from_selection("Command line", track_ids, 0)
            elif navigator.restore_active_queue(play=True) is None:
                print("Nothing to play; pass audio files or folders.")
                device.release()
                db.close()
                return 1
        except PlayheadError as e:
            log_error(app_logger, e, context="application_startup")
            print(f"Error: {e}")
            device.release()
            db.close()
            return 1

    bridge.start()
    print(HELP)
    try:
        for line in sys.stdin:
            try:
                if not handle_command(navigator, line):
                    break
            except PlayheadError as e:
                log_error(app_logger, e, context="console_command", command=line.strip())
                print(f"Error: {e}")
    except KeyboardInterrupt:
        pass
    finally:
        bridge.stop(timeout=1.0)
        device.release()
        db.close()
    return 0


if __name__ == "__main__":
    sys.exit(main())
