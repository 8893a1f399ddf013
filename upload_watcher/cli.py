"""
Command-line interface for the upload watcher.
"""
import argparse
import logging
import signal
import sys
import time
from pathlib import Path
from typing import List, Optional, TextIO

from .config import ConfigStore
from .controller import UploadController
from .events import EventType, MonitorEvent
from .exceptions import StorageWriteError
from .tracker import UploadTracker

logger = logging.getLogger(__name__)

COMMANDS_HELP = "Available: start, stop, status, folder <path>, url <url>, quit"

EVENT_LABELS = {
    EventType.MONITORING_STARTED: "Monitoring Started",
    EventType.MONITORING_STOPPED: "Monitoring Stopped",
    EventType.NEW_FILES_DETECTED: "New Files Detected",
    EventType.UPLOAD_STARTED: "Upload Start",
    EventType.UPLOAD_SUCCEEDED: "Upload Success",
    EventType.UPLOAD_FAILED: "Upload Error",
    EventType.FOLDER_ERROR: "Folder Error",
}


def setup_logging(verbose: bool = False) -> None:
    """Configure logging for the application.

    Args:
        verbose: Whether to enable debug logging
    """
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )


def format_event(event: MonitorEvent) -> str:
    """Render an event as a single console line."""
    data = event.data
    if event.type is EventType.MONITORING_STARTED:
        detail = f"Watching folder: {data.get('folder')} -> {data.get('url')}"
    elif event.type is EventType.NEW_FILES_DETECTED:
        detail = f"{data.get('count')} new file(s)"
    elif event.type is EventType.UPLOAD_STARTED:
        detail = f"Uploading: {data.get('name')}"
    elif event.type is EventType.UPLOAD_SUCCEEDED:
        detail = f"{data.get('name')} Response: {data.get('response_body')}"
    elif event.type is EventType.UPLOAD_FAILED:
        detail = f"{data.get('name')}: {data.get('reason')}"
    elif event.type is EventType.FOLDER_ERROR:
        detail = f"{data.get('reason')}: {data.get('folder')}"
    else:
        detail = ""

    line = f"[{event.timestamp.strftime('%H:%M:%S')}] {EVENT_LABELS[event.type]}"
    return f"{line}: {detail}" if detail else line


def print_status(controller: UploadController, out: TextIO = sys.stdout) -> None:
    status = controller.get_status()
    print(f"Status: {'Monitoring' if status['isMonitoring'] else 'Stopped'}", file=out)
    print(f"Folder: {status['folderPath']}", file=out)
    print(f"Upload URL: {status['uploadUrl']}", file=out)


def handle_command(controller: UploadController, line: str,
                   out: TextIO = sys.stdout) -> bool:
    """Run one interactive command.

    Args:
        controller: Controller to act on
        line: Raw input line
        out: Stream for command output

    Returns:
        False when the user asked to quit, True otherwise
    """
    command, _, argument = line.strip().partition(' ')
    command = command.lower()
    argument = argument.strip()

    if not command:
        return True

    try:
        if command == 'start':
            controller.start()
        elif command == 'stop':
            controller.stop()
        elif command == 'status':
            print_status(controller, out)
        elif command == 'folder':
            if controller.change_folder(argument) is None:
                print("Usage: folder <path>", file=out)
        elif command == 'url':
            if controller.set_server_url(argument) is None:
                print("Invalid URL: must start with http:// or https://", file=out)
        elif command in ('quit', 'exit'):
            return False
        else:
            print(f"Unknown command. {COMMANDS_HELP}", file=out)
    except StorageWriteError as e:
        print(f"Configuration applied but not saved: {e}", file=out)

    return True


def create_controller(args: argparse.Namespace) -> UploadController:
    """Create the controller from command line arguments.

    Args:
        args: Command line arguments

    Returns:
        Configured UploadController instance
    """
    return UploadController(
        config_store=ConfigStore(args.config),
        tracker=UploadTracker(args.record_file),
    )


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Watch a folder and upload new files to an HTTP endpoint"
    )
    parser.add_argument('-v', '--verbose', action='store_true',
                        help="Enable verbose logging")
    parser.add_argument('-c', '--config', type=Path,
                        default=Path('upload_watcher_config.json'),
                        help="Path to config file")
    parser.add_argument('-r', '--record-file', type=Path,
                        default=Path('uploaded_files.json'),
                        help="Path to the uploaded file record")
    parser.add_argument('--no-autostart', action='store_true',
                        help="Do not start monitoring until 'start' is entered")
    return parser.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> None:
    """Main entry point for the CLI."""
    args = parse_args(argv)
    setup_logging(args.verbose)

    controller = create_controller(args)
    controller.add_listener(lambda event: print(format_event(event), flush=True))
    signal.signal(signal.SIGTERM, lambda s, f: sys.exit(0))

    print("Upload Watcher")
    print("==============")
    print(COMMANDS_HELP)
    print()

    try:
        if not args.no_autostart:
            controller.start()

        for line in sys.stdin:
            if not handle_command(controller, line):
                return

        # stdin closed: keep monitoring until interrupted
        while True:
            time.sleep(1)

    except KeyboardInterrupt:
        print("\nShutting down...")

    finally:
        controller.close()


if __name__ == '__main__':
    main()
