"""Show what the sensor board sends, and optionally poke it with a command."""

import sys
import time

import serial

from sensor_bridge import protocol


def classify(line: str) -> str:
    if line.startswith(protocol.TRIP_TOKEN):
        return "TRIP"
    try:
        value = float(line)
    except ValueError:
        return "UNPARSEABLE"
    if not (protocol.PLAUSIBLE_MIN <= value <= protocol.PLAUSIBLE_MAX):
        return "IMPLAUSIBLE"
    return "READING"


def diagnose_connection(port="/dev/ttyACM0", command=None, duration_s=10.0):
    """Print every line the board sends for duration_s seconds."""

    print(f"\n=== Opening {port} ===")
    ser = serial.Serial(
        port=port,
        baudrate=protocol.DEFAULT_BAUD,
        bytesize=serial.EIGHTBITS,
        parity=serial.PARITY_NONE,
        stopbits=serial.STOPBITS_ONE,
        timeout=0.2,
        rtscts=False,
        dsrdtr=False,
        xonxoff=False
    )
    print(f"Port opened: {ser.is_open}")

    if command:
        sent = ser.write(command.encode("ascii"))
        ser.flush()
        print(f"Sent {sent} byte(s): {command!r}")

    print(f"\n=== Listening for {duration_s:.0f} seconds ===")
    counts = {}
    start = time.time()

    while time.time() - start < duration_s:
        line = ser.readline()
        if not line:
            continue

        decoded = line.decode("ascii", errors="replace").strip()
        if not decoded:
            continue
        kind = classify(decoded)
        counts[kind] = counts.get(kind, 0) + 1
        print(f"RX [{kind:11s}] {decoded!r}")

    if not counts:
        print("\n*** NO DATA RECEIVED ***")
        print("\nPossible reasons:")
        print("1. Wrong device path or baud rate")
        print("2. Board is in standby (send 's' to toggle)")
        print("3. Board sketch is not running")
    else:
        print("\nSummary:")
        for kind, count in sorted(counts.items()):
            print(f"  {kind}: {count}")

    ser.close()
    print("\nPort closed")

if __name__ == "__main__":
    port = sys.argv[1] if len(sys.argv) > 1 else "/dev/ttyACM0"
    command = sys.argv[2] if len(sys.argv) > 2 else None
    diagnose_connection(port, command)
