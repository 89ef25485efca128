# file: scaleCLI.py
import sys, os, queue, threading, argparse
from dataclasses import dataclass
from typing import Optional
from datetime import datetime

import serial
import serial.tools.list_ports

from scaleLogger import CsvSink, LineFramer, parse_record, split_fields

DEFAULT_BAUD = 115200
DEFAULT_DATA_DIR = "data"
READ_TIMEOUT = 0.1

# terminator appended to every command sent to the device
EOL_CHOICES = {"none": "", "lf": "\n", "crlf": "\r\n"}


# ---------- port source ----------
@dataclass
class PortInfo:
    path: str
    manufacturer: Optional[str] = None

    @property
    def label(self):
        return f"{self.path} - {self.manufacturer or 'Unknown Manufacturer'}"


def list_ports():
    return [PortInfo(p.device, p.manufacturer)
            for p in serial.tools.list_ports.comports()]


def open_port(path: str, baud: int):
    return serial.Serial(path, baud, timeout=READ_TIMEOUT)


# ---------- prompts ----------
def select_port(ports, ask=None):
    """Numbered menu over the detected ports. Exits with status 1 if there are none."""
    if not ports:
        print("No serial ports found")
        sys.exit(1)
    print("Select a serial port:")
    for i, p in enumerate(ports, 1):
        print(f"  {i}) {p.label}")
    while True:
        choice = (ask or input)("> ").strip()
        try:
            idx = int(choice)
        except ValueError:
            idx = 0
        if 1 <= idx <= len(ports):
            return ports[idx - 1].path
        print(f"pick a number from 1 to {len(ports)}")


def default_filename(now=None):
    now = now or datetime.now()
    return f"{now.strftime('%Y%m%d_%I%M%S')}_data"


def define_filename(default: str, ask=None):
    answer = (ask or input)(f"Enter the filename ({default}): ").strip()
    return answer or default


def csv_path(data_dir: str, filename: str):
    return os.path.join(data_dir, f"{filename}.csv")


# ---------- session ----------
class LoggingSession:
    """
    Idle until a start command shows up, then recording until exit.

    With no start_command any command containing the letter 's' counts
    (so 'stop' starts logging too). Pass start_command to require an exact
    match instead.
    """
    def __init__(self, start_command=None):
        self.start_command = start_command
        self.is_logging = False

    def is_trigger(self, cmd: str) -> bool:
        if self.start_command:
            return cmd == self.start_command
        return "s" in cmd

    def consider(self, cmd: str) -> bool:
        matched = self.is_trigger(cmd)
        if matched:
            self.is_logging = True
        return matched


# ---------- cli ----------
class SerialCLI:
    """
    Two producer threads (serial reader, terminal reader) feed one queue;
    loop() drains it on the calling thread until stop_event is set or
    Ctrl-C arrives. Session state, CSV rows and port writes are only touched
    from there.

    close() joins the reader thread only. The terminal thread is a daemon
    blocked in readline() and is left to die with the process.
    """
    def __init__(self, ser, sink, session, eol=""):
        self.ser = ser
        self.sink = sink
        self.session = session
        self.eol = eol
        self.events = queue.Queue()
        self.stop_event = threading.Event()
        self.framer = LineFramer()
        self.reader_thread = None
        self.input_thread = None

    # ---------- producers ----------
    def start(self, stdin=None):
        self.reader_thread = threading.Thread(target=self._reader, daemon=True)
        self.input_thread = threading.Thread(
            target=self._terminal, args=(stdin or sys.stdin,), daemon=True)
        self.reader_thread.start()
        self.input_thread.start()

    def _reader(self):
        while not self.stop_event.is_set():
            try:
                chunk = self.ser.read(self.ser.in_waiting or 1)
            except (serial.SerialException, OSError) as e:
                self.events.put(("error", e))
                break
            for line in self.framer.feed(chunk):
                self.events.put(("line", line))

    def _terminal(self, stream):
        # EOF only ends this producer; device lines keep coming until Ctrl-C
        for raw in iter(stream.readline, ""):
            self.events.put(("command", raw.rstrip("\r\n")))

    # ---------- dispatcher ----------
    def loop(self):
        while not self.stop_event.is_set():
            try:
                kind, payload = self.events.get(timeout=0.2)
            except queue.Empty:
                continue
            self.dispatch(kind, payload)

    def dispatch(self, kind, payload):
        if kind == "line":
            self.handle_line(payload)
        elif kind == "command":
            self.handle_command(payload)
        elif kind == "error":
            self.report_error(payload)

    def handle_line(self, line: str):
        entries = split_fields(line)
        if self.session.is_logging:
            print("Logged: ", entries)
            self.sink.write(parse_record(line))
        else:
            print("Not logging..", entries)

    def handle_command(self, text: str):
        print(f"Received: {text}")
        cmd = text.strip()
        if self.session.consider(cmd):
            print("Started logging!")
        self.send(cmd)
        print(cmd)

    def send(self, cmd: str):
        try:
            self.ser.write((cmd + self.eol).encode())
        except (serial.SerialException, OSError) as e:
            self.report_error(e)

    def report_error(self, err):
        print(f"Error: {err}", file=sys.stderr)

    def close(self):
        self.stop_event.set()
        if self.reader_thread:
            self.reader_thread.join(timeout=1.0)
        try:
            self.ser.close()
        except (serial.SerialException, OSError) as e:
            self.report_error(e)
        self.sink.close()
        if self.sink.rows:
            print(f"{self.sink.rows} rows -> {self.sink.path}")


def parse_args(argv=None):
    ap = argparse.ArgumentParser(
        description="Stream scale readings from a serial port and log them to CSV.")
    ap.add_argument("--port", help="serial port; skips the selection menu")
    ap.add_argument("--baud", type=int, default=DEFAULT_BAUD,
                    help=f"baud rate (default {DEFAULT_BAUD})")
    ap.add_argument("--data-dir", default=DEFAULT_DATA_DIR,
                    help=f"folder for CSV files (default {DEFAULT_DATA_DIR})")
    ap.add_argument("--filename", help="CSV name without extension; skips the prompt")
    ap.add_argument("--start-command",
                    help="exact command that starts logging "
                         "(default: any command containing 's')")
    ap.add_argument("--eol", choices=sorted(EOL_CHOICES), default="none",
                    help="terminator appended to commands (default none)")
    return ap.parse_args(argv)


def main(argv=None):
    args = parse_args(argv)
    cli = None
    try:
        filename = args.filename or define_filename(default_filename())
        path = csv_path(args.data_dir, filename)
        port = args.port or select_port(list_ports())
        ser = open_port(port, args.baud)
        print(f"Serial port {port} open")
        cli = SerialCLI(ser, CsvSink(path), LoggingSession(args.start_command),
                        eol=EOL_CHOICES[args.eol])
        cli.start()
        cli.loop()
    except KeyboardInterrupt:
        print()
    except Exception as e:
        print(f"Error: {e}", file=sys.stderr)
    finally:
        if cli:
            cli.close()


if __name__ == "__main__":
    main()
