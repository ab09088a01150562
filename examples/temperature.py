#!/usr/bin/env python3
"""
Temperature Monitoring Example.

Opens one temperature sensor channel, prints the current reading, then
prints every temperature change until Ctrl+C closes the channel.
"""

import argparse
import logging
import os
import signal
import sys
import threading
from pathlib import Path

# Add package to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from phidget import PhidgetError, TemperatureSensor, __version__

# Open/connect timeout
TIMEOUT = 5.0  # seconds

logging.basicConfig(
    level=os.environ.get("PHIDGET_LOG_LEVEL", "WARNING").upper(),
    format='%(asctime)s - %(levelname)s - %(message)s'
)


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="Phidget Temperature Monitoring Example")
    parser.add_argument("--version", action="version", version=__version__)
    parser.add_argument("-s", "--serial", type=int,
                        help="Specify the serial number of the device to open")
    parser.add_argument("-c", "--channel", type=int,
                        help="Specify the channel number of the device to open")
    parser.add_argument("-p", "--port", type=int,
                        help="Use a specific port on a VINT hub directly")
    parser.add_argument("--hub", action="store_true",
                        help="Use a hub VINT input port directly")
    return parser.parse_args(argv)


def main(argv=None) -> int:
    args = parse_args(argv)

    print("Opening Phidget temperature sensor...")
    sensor = TemperatureSensor(
        serial_number=args.serial,
        hub_port=args.port,
        channel=args.channel,
        is_hub_port_device=args.hub,
    )
    done = threading.Event()

    # ^C wakes up the main thread, which closes the channel
    def on_interrupt(signum, frame):
        print("\nExiting...")
        done.set()

    signal.signal(signal.SIGINT, on_interrupt)

    try:
        sensor.open_wait(TIMEOUT)

        if args.hub:
            print(f"Opened on hub port: {sensor.hub_port}")

        print(f"Temperature: {sensor.temperature()}")
        sensor.on_change(lambda event: print(f"Temperature: {event.value}"))

        # Block until a ^C wakes us up to exit.
        while not done.wait(0.5):
            pass
    except PhidgetError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    finally:
        sensor.close()
    return 0


if __name__ == "__main__":
    sys.exit(main())
