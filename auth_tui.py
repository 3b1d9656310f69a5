#!/usr/bin/env python3
"""
auth-tui - A terminal TOTP/HOTP authenticator
Usage:
    auth-tui [-f <file>]              show live codes (q to quit)
    auth-tui import <file> [--dry-run]
    auth-tui export <file>
    auth-tui add <label> <secret> [--issuer <name>]
    auth-tui get <label>
    auth-tui list
    auth-tui remove <label>

Secrets are stored one otpauth:// URI per line in ~/.auth-tui
(override with -f or AUTH_TUI_FILE).
"""

import argparse
import base64
import dataclasses
import enum
import hashlib
import hmac
import os
import select
import signal
import struct
import sys
import threading
import time
from dataclasses import dataclass
from pathlib import Path
from urllib.parse import parse_qs, quote, unquote, urlsplit

import colorama
from colorama import Fore, Style

# Optional: for clipboard support
try:
    import pyperclip
    CLIPBOARD_AVAILABLE = True
except ImportError:
    CLIPBOARD_AVAILABLE = False

# Optional: for single-key input in the live view (POSIX only)
try:
    import termios
    import tty
    RAW_MODE_AVAILABLE = True
except ImportError:
    RAW_MODE_AVAILABLE = False


# ==================== Debug Logging ====================

_DEBUG = os.environ.get("AUTH_TUI_DEBUG", "") == "1"
_START_TIME = time.perf_counter()


def set_debug(enabled: bool):
    """Turn debug logging on or off"""
    global _DEBUG
    _DEBUG = enabled


def debug_log(message: str):
    """Print a debug message with elapsed time to stderr"""
    if not _DEBUG:
        return
    elapsed = (time.perf_counter() - _START_TIME) * 1000
    print(f"[{elapsed:8.1f}ms] {message}", file=sys.stderr)


# ==================== Errors ====================

class DecodeError(ValueError):
    """A line could not be decoded into a secret record"""


class InvalidScheme(DecodeError):
    """Not an otpauth://totp or otpauth://hotp URI"""


class MissingSecret(DecodeError):
    """The secret parameter is absent or empty"""


class InvalidBase32(DecodeError):
    """The secret is not valid base32"""


class UnknownAlgorithm(DecodeError):
    """The algorithm is not SHA1, SHA256 or SHA512"""


class InvalidDigits(DecodeError):
    """The digit count is not an integer in the supported range"""


class InvalidPeriod(DecodeError):
    """The period is not a positive integer"""


class InvalidCounter(DecodeError):
    """The HOTP counter is not an integer in the unsigned 64-bit range"""


class InvalidLabel(DecodeError):
    """The label is empty"""


class InvalidMigration(DecodeError):
    """An otpauth-migration:// payload could not be parsed"""


class StorageError(Exception):
    """The secrets file could not be read or written"""

    def __init__(self, path, cause: Exception):
        self.path = Path(path)
        self.cause = cause
        reason = getattr(cause, "strerror", None) or str(cause)
        super().__init__(f"{path}: {reason}")


class GenerationError(RuntimeError):
    """Invalid parameters reached the OTP generator"""


# ==================== Secret Records ====================

class Algorithm(enum.Enum):
    SHA1 = "SHA1"
    SHA256 = "SHA256"
    SHA512 = "SHA512"


HASH_FUNCTIONS = {
    Algorithm.SHA1: hashlib.sha1,
    Algorithm.SHA256: hashlib.sha256,
    Algorithm.SHA512: hashlib.sha512,
}


class Kind(enum.Enum):
    TOTP = "totp"
    HOTP = "hotp"


DEFAULT_DIGITS = 6
MIN_DIGITS = 6
MAX_DIGITS = 10  # the truncated value is below 2**31, ten decimal digits
DEFAULT_PERIOD = 30
MAX_COUNTER = 2 ** 64


@dataclass(frozen=True)
class SecretRecord:
    """A shared secret together with the parameters used to derive codes"""

    label: str
    secret: bytes
    issuer: str | None = None
    algorithm: Algorithm = Algorithm.SHA1
    digits: int = DEFAULT_DIGITS
    period: int = DEFAULT_PERIOD
    counter: int = 0
    kind: Kind = Kind.TOTP

    def __post_init__(self):
        label = (self.label or "").strip()
        if not label:
            raise InvalidLabel("label must not be empty")
        object.__setattr__(self, "label", label)
        object.__setattr__(self, "issuer", (self.issuer or "").strip() or None)

        if not self.secret:
            raise InvalidBase32("secret must not be empty")
        if not isinstance(self.algorithm, Algorithm):
            raise UnknownAlgorithm(f"unknown algorithm: {self.algorithm}")
        if not MIN_DIGITS <= self.digits <= MAX_DIGITS:
            raise InvalidDigits(
                f"digits must be between {MIN_DIGITS} and {MAX_DIGITS}, got {self.digits}"
            )
        if self.period <= 0:
            raise InvalidPeriod(f"period must be positive, got {self.period}")
        if not 0 <= self.counter < MAX_COUNTER:
            raise InvalidCounter(
                f"counter must be between 0 and 2**64 - 1, got {self.counter}"
            )

    @property
    def display_name(self) -> str:
        if self.issuer:
            return f"{self.issuer}:{self.label}"
        return self.label


# ==================== TOTP Implementation ====================

def hotp(key: bytes, counter: int, digits: int = DEFAULT_DIGITS,
         algorithm: Algorithm = Algorithm.SHA1) -> str:
    """Generate HOTP code (RFC 4226)"""
    if algorithm not in HASH_FUNCTIONS:
        raise GenerationError(f"Unsupported algorithm: {algorithm!r}")
    if not MIN_DIGITS <= digits <= MAX_DIGITS:
        raise GenerationError(f"Unsupported digit count: {digits}")
    if not 0 <= counter < MAX_COUNTER:
        raise GenerationError(f"Counter out of range: {counter}")

    # Counter as 8-byte big-endian
    counter_bytes = struct.pack(">Q", counter)

    hmac_hash = hmac.new(key, counter_bytes, HASH_FUNCTIONS[algorithm]).digest()

    # Dynamic truncation
    offset = hmac_hash[-1] & 0x0F
    truncated = struct.unpack(">I", hmac_hash[offset:offset + 4])[0] & 0x7FFFFFFF

    otp = truncated % (10 ** digits)
    return str(otp).zfill(digits)


def totp(key: bytes, timestamp: int, period: int = DEFAULT_PERIOD,
         digits: int = DEFAULT_DIGITS, algorithm: Algorithm = Algorithm.SHA1,
         epoch: int = 0) -> str:
    """Generate TOTP code (RFC 6238) for the given Unix time"""
    if period <= 0:
        raise GenerationError(f"Period must be positive, got {period}")
    counter = (int(timestamp) - epoch) // period
    return hotp(key, counter, digits, algorithm)


def time_remaining(timestamp: int, period: int = DEFAULT_PERIOD, epoch: int = 0) -> int:
    """Get seconds remaining until next TOTP rotation"""
    return period - ((int(timestamp) - epoch) % period)


def record_code(record: SecretRecord, timestamp: int) -> str:
    """Current code for a record; HOTP records use their stored counter"""
    if record.kind is Kind.HOTP:
        return hotp(record.secret, record.counter, record.digits, record.algorithm)
    return totp(record.secret, timestamp, record.period, record.digits, record.algorithm)


# ==================== otpauth URIs ====================

OTPAUTH_SCHEME = "otpauth"
MIGRATION_SCHEME = "otpauth-migration"


def decode_secret(secret: str) -> bytes:
    """Decode a base32 secret, tolerating spaces, lowercase and missing padding"""
    secret_clean = secret.replace(" ", "").upper().rstrip("=")
    # Add padding if needed
    secret_clean += "=" * (-len(secret_clean) % 8)

    try:
        key = base64.b32decode(secret_clean)
    except ValueError as e:  # binascii.Error, or non-ASCII input
        raise InvalidBase32(f"Invalid secret key format: {e}") from e
    if not key:
        raise InvalidBase32("secret decodes to an empty key")
    return key


def encode_secret(key: bytes) -> str:
    return base64.b32encode(key).decode("ascii").rstrip("=")


def _int_param(params: dict, name: str, default: int, error: type) -> int:
    value = params.get(name, [None])[0]
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        raise error(f"{name} must be an integer, got {value!r}") from None


def decode_uri(line: str) -> SecretRecord:
    """Parse an otpauth://totp/ or otpauth://hotp/ URI"""
    try:
        parsed = urlsplit(line.strip())
    except ValueError as e:
        raise InvalidScheme(f"malformed URI: {e}") from e
    if parsed.scheme != OTPAUTH_SCHEME:
        raise InvalidScheme(f"expected an otpauth:// URI, got {line.strip()[:30]!r}")
    try:
        kind = Kind(parsed.netloc.lower())
    except ValueError:
        raise InvalidScheme(f"unsupported OTP type {parsed.netloc!r}") from None

    params = parse_qs(parsed.query)

    # Label format: "issuer:account" or just "account"; a literal colon
    # separates the two, an escaped one belongs to the account name
    label = parsed.path[1:] if parsed.path.startswith("/") else parsed.path
    issuer = None
    if ":" in label:
        issuer, label = (unquote(part) for part in label.split(":", 1))
    else:
        label = unquote(label)
        prefix = params.get("issuer", [""])[0]
        if prefix and label.startswith(prefix + ":"):
            label = label[len(prefix) + 1:]

    # Issuer can be in params or label
    if "issuer" in params:
        issuer = params["issuer"][0]

    secret = params.get("secret", [""])[0]
    if not secret.strip():
        raise MissingSecret("missing secret parameter")

    algorithm_name = params.get("algorithm", ["SHA1"])[0].upper().replace("-", "")
    try:
        algorithm = Algorithm(algorithm_name)
    except ValueError:
        raise UnknownAlgorithm(f"unknown algorithm {algorithm_name!r}") from None

    counter = 0
    if kind is Kind.HOTP:
        counter = _int_param(params, "counter", 0, InvalidCounter)

    return SecretRecord(
        label=label,
        secret=decode_secret(secret),
        issuer=issuer,
        algorithm=algorithm,
        digits=_int_param(params, "digits", DEFAULT_DIGITS, InvalidDigits),
        period=_int_param(params, "period", DEFAULT_PERIOD, InvalidPeriod),
        counter=counter,
        kind=kind,
    )


def encode_uri(record: SecretRecord) -> str:
    """Serialize a record to its canonical otpauth:// URI"""
    label = quote(record.label, safe="@")
    query = [f"secret={encode_secret(record.secret)}"]
    if record.issuer:
        label = f"{quote(record.issuer, safe='@')}:{label}"
        query.append(f"issuer={quote(record.issuer, safe='@')}")
    query.append(f"algorithm={record.algorithm.value}")
    query.append(f"digits={record.digits}")
    query.append(f"period={record.period}")
    if record.kind is Kind.HOTP:
        query.append(f"counter={record.counter}")

    return f"{OTPAUTH_SCHEME}://{record.kind.value}/{label}?{'&'.join(query)}"


# ==================== Google Authenticator Migration ====================

MIGRATION_ALGORITHMS = {0: Algorithm.SHA1, 1: Algorithm.SHA1, 2: Algorithm.SHA256, 3: Algorithm.SHA512}
MIGRATION_DIGITS = {0: 6, 1: 6, 2: 8}
MIGRATION_KINDS = {0: Kind.TOTP, 1: Kind.HOTP, 2: Kind.TOTP}


def parse_protobuf_varint(data: bytes, offset: int) -> tuple:
    """Parse a protobuf varint and return (value, new_offset)"""
    result = 0
    shift = 0
    while True:
        if offset >= len(data):
            raise InvalidMigration("truncated varint in migration payload")
        byte = data[offset]
        result |= (byte & 0x7F) << shift
        offset += 1
        if not (byte & 0x80):
            break
        shift += 7
    return result, offset


def _iter_fields(data: bytes):
    """Yield (field_number, wire_type, value) for each protobuf field"""
    offset = 0
    while offset < len(data):
        tag, offset = parse_protobuf_varint(data, offset)
        field_number = tag >> 3
        wire_type = tag & 0x07

        if wire_type == 0:  # Varint
            value, offset = parse_protobuf_varint(data, offset)
        elif wire_type == 2:  # Length-delimited
            length, offset = parse_protobuf_varint(data, offset)
            if offset + length > len(data):
                raise InvalidMigration("truncated field in migration payload")
            value = data[offset:offset + length]
            offset += length
        elif wire_type in (1, 5):  # Fixed 64/32 bit
            size = 8 if wire_type == 1 else 4
            value = data[offset:offset + size]
            offset += size
        else:
            raise InvalidMigration(f"unsupported protobuf wire type {wire_type}")
        yield field_number, wire_type, value


def parse_otp_entry(data: bytes) -> SecretRecord:
    """Parse a single OtpParameters message"""
    entry = {"secret": b"", "name": b"", "issuer": b"", "algorithm": 0,
             "digits": 0, "type": 0, "counter": 0}
    names = {1: "secret", 2: "name", 3: "issuer", 4: "algorithm",
             5: "digits", 6: "type", 7: "counter"}
    for field_number, wire_type, value in _iter_fields(data):
        if field_number in names:
            # Strings are length-delimited, enums and the counter are varints
            expected = 2 if field_number <= 3 else 0
            if wire_type != expected:
                raise InvalidMigration(
                    f"{names[field_number]} field has wire type {wire_type}, expected {expected}"
                )
            entry[names[field_number]] = value

    if entry["algorithm"] not in MIGRATION_ALGORITHMS:
        raise InvalidMigration(f"unsupported algorithm code {entry['algorithm']}")
    if entry["type"] not in MIGRATION_KINDS:
        raise InvalidMigration(f"unsupported OTP type code {entry['type']}")

    name = bytes(entry["name"]).decode("utf-8", errors="replace")
    issuer = bytes(entry["issuer"]).decode("utf-8", errors="replace")
    if ":" in name:
        prefix, name = name.split(":", 1)
        issuer = issuer or prefix

    kind = MIGRATION_KINDS[entry["type"]]
    return SecretRecord(
        label=name or issuer,
        secret=bytes(entry["secret"]),
        issuer=issuer,
        algorithm=MIGRATION_ALGORITHMS[entry["algorithm"]],
        digits=MIGRATION_DIGITS.get(entry["digits"], DEFAULT_DIGITS),
        counter=entry["counter"] if kind is Kind.HOTP else 0,
        kind=kind,
    )


def decode_migration(uri: str) -> list:
    """Decode a Google Authenticator otpauth-migration:// export"""
    try:
        parsed = urlsplit(uri.strip())
    except ValueError as e:
        raise InvalidScheme(f"malformed URI: {e}") from e
    if parsed.scheme != MIGRATION_SCHEME:
        raise InvalidScheme("expected an otpauth-migration:// URI")

    data_b64 = parse_qs(parsed.query).get("data", [""])[0]
    if not data_b64:
        raise InvalidMigration("no data parameter in migration URI")
    # parse_qs turns an unescaped '+' into a space
    data_b64 = data_b64.replace(" ", "+")
    data_b64 += "=" * (-len(data_b64) % 4)
    try:
        payload = base64.b64decode(data_b64, validate=True)
    except ValueError as e:
        raise InvalidMigration(f"invalid migration data: {e}") from e

    records = []
    for field_number, wire_type, value in _iter_fields(payload):
        if field_number == 1 and wire_type == 2:  # OTP parameters
            records.append(parse_otp_entry(value))
    debug_log(f"Migration payload contained {len(records)} entries")
    return records


# ==================== Secret Store ====================

COMMENT_MARKER = "#"


def load_store(lines) -> tuple:
    """Decode lines into (records, [(line_number, error), ...])

    Blank lines and comments are skipped. A bad line is reported and
    never stops the remaining lines from loading.
    """
    store = []
    errors = []
    for line_number, line in enumerate(lines, 1):
        text = line.strip()
        if not text or text.startswith(COMMENT_MARKER):
            continue
        try:
            if text.lower().startswith(MIGRATION_SCHEME + "://"):
                store.extend(decode_migration(text))
            else:
                store.append(decode_uri(text))
        except DecodeError as e:
            debug_log(f"line {line_number}: {type(e).__name__}: {e}")
            errors.append((line_number, e))
    return store, errors


def dedupe_key(record: SecretRecord) -> tuple:
    return (record.issuer, record.label, record.secret)


def merge_store(existing: list, incoming: list) -> list:
    """Append incoming records that are not already present"""
    merged = list(existing)
    seen = {dedupe_key(record) for record in merged}
    for record in incoming:
        key = dedupe_key(record)
        if key in seen:
            continue
        seen.add(key)
        merged.append(record)
    return merged


def serialize_store(store: list) -> list:
    return [encode_uri(record) for record in store]


def find_records(store: list, query: str) -> list:
    """Records whose label or issuer:label matches query (case-insensitive)"""
    wanted = query.strip().lower()
    return [
        record for record in store
        if record.label.lower() == wanted or record.display_name.lower() == wanted
    ]


# ==================== Storage ====================

DEFAULT_FILENAME = ".auth-tui"


def get_storage_path(override: str | None = None) -> Path:
    """Get the path to the secrets file"""
    if override:
        return Path(override).expanduser()
    env_path = os.environ.get("AUTH_TUI_FILE")
    if env_path:
        return Path(env_path).expanduser()
    try:
        return Path.home() / DEFAULT_FILENAME
    except (RuntimeError, KeyError) as e:
        raise StorageError(DEFAULT_FILENAME, e) from e


def read_store_file(path, missing_ok: bool = True) -> tuple:
    """Load (records, errors) from a file of otpauth:// lines"""
    path = Path(path)
    if missing_ok and not path.exists():
        debug_log(f"{path} does not exist, starting with an empty store")
        return [], []

    try:
        with open(path, "r", encoding="utf-8") as f:
            lines = f.read().splitlines()
    except (OSError, UnicodeDecodeError) as e:
        raise StorageError(path, e) from e

    debug_log(f"Read {len(lines)} lines from {path}")
    return load_store(lines)


def write_store_file(path, store: list):
    """Write one canonical URI per line"""
    path = Path(path)
    lines = serialize_store(store)
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w", encoding="utf-8") as f:
            f.write("".join(line + "\n" for line in lines))
        # Set restrictive permissions
        os.chmod(path, 0o600)
    except OSError as e:
        raise StorageError(path, e) from e
    debug_log(f"Wrote {len(lines)} records to {path}")


# ==================== Live View ====================

TICK_INTERVAL = 1
WARN_SECONDS = 5
HEADER = ("LABEL", "ISSUER", "CODE", "TTL")
QUIT_KEYS = {"q", "Q", "\x03"}
HIDE_CURSOR = colorama.ansi.CSI + "?25l"
SHOW_CURSOR = colorama.ansi.CSI + "?25h"


def render_view(store: list, timestamp: int, color: bool = False) -> list:
    """Build the lines of one frame of the live view"""
    rows = []
    for record in store:
        if record.kind is Kind.TOTP:
            remaining = time_remaining(timestamp, record.period)
            ttl = f"{remaining}s"
        else:
            remaining = None
            ttl = "-"
        rows.append((record.label, record.issuer or "-", record_code(record, timestamp), ttl, remaining))

    label_width = max(len(HEADER[0]), max((len(r[0]) for r in rows), default=0)) + 4
    issuer_width = max(len(HEADER[1]), max((len(r[1]) for r in rows), default=0)) + 4
    code_width = max(len(HEADER[2]), max((len(r[2]) for r in rows), default=0))

    lines = [
        f"{HEADER[0]:<{label_width}}{HEADER[1]:<{issuer_width}}{HEADER[2]:>{code_width}}  {HEADER[3]:>4}",
        "-" * (label_width + issuer_width + code_width + 6),
    ]
    for label, issuer, code, ttl, remaining in rows:
        ttl = f"{ttl:>4}"
        if color and remaining is not None and remaining <= WARN_SECONDS:
            ttl = Fore.RED + ttl + Style.RESET_ALL
        lines.append(f"{label:<{label_width}}{issuer:<{issuer_width}}{code:>{code_width}}  {ttl}")
    return lines


def draw_frame(out, lines: list, previous_height: int):
    """Overwrite the previously drawn frame in place"""
    if previous_height:
        out.write(colorama.Cursor.UP(previous_height))
    for line in lines:
        out.write(colorama.ansi.clear_line() + line + "\n")
    out.flush()


def run_display(store: list, clock=time.time, out=None, wait=time.sleep,
                cancelled=None, interval: int = TICK_INTERVAL, color: bool = False) -> int:
    """Redraw codes once per tick until asked to stop; returns frames drawn

    wait(timeout) blocks until the next tick and returns True when the
    user asked to quit. cancelled() is polled once per tick.
    """
    out = out or sys.stdout
    frames = 0
    height = 0
    while not (cancelled and cancelled()):
        now = clock()
        lines = render_view(store, int(now), color=color)
        draw_frame(out, lines, height)
        height = len(lines)
        frames += 1
        # Sleep to the next whole tick so redraws stay aligned with the clock
        if wait(interval - (now % interval)):
            break
    debug_log(f"Display stopped after {frames} frames")
    return frames


class TerminalSession:
    """Single-key input and a hidden cursor for the lifetime of the live view

    Terminal attributes, the cursor and the SIGTERM handler are restored
    on exit, whichever way the block is left.
    """

    def __init__(self, stdin=None, stdout=None):
        self.stdin = stdin or sys.stdin
        self.stdout = stdout or sys.stdout
        self._saved_attrs = None
        self._previous_sigterm = None
        self._signal_installed = False
        self._cancelled = False

    def _is_tty(self) -> bool:
        try:
            return self.stdin.isatty()
        except (AttributeError, ValueError):
            return False

    def __enter__(self):
        try:
            if RAW_MODE_AVAILABLE and self._is_tty():
                fd = self.stdin.fileno()
                self._saved_attrs = termios.tcgetattr(fd)
                tty.setcbreak(fd)
                debug_log("Terminal switched to cbreak mode")
            if threading.current_thread() is threading.main_thread():
                self._previous_sigterm = signal.signal(signal.SIGTERM, self._on_sigterm)
                self._signal_installed = True
            self.stdout.write(HIDE_CURSOR)
            self.stdout.flush()
        except BaseException:
            self.restore()
            raise
        return self

    def __exit__(self, exc_type, exc, tb):
        self.restore()
        return False

    def restore(self):
        try:
            self.stdout.write(SHOW_CURSOR)
            self.stdout.flush()
        finally:
            if self._saved_attrs is not None:
                termios.tcsetattr(self.stdin.fileno(), termios.TCSADRAIN, self._saved_attrs)
                self._saved_attrs = None
                debug_log("Terminal attributes restored")
            if self._signal_installed:
                signal.signal(signal.SIGTERM, self._previous_sigterm or signal.SIG_DFL)
                self._signal_installed = False

    def _on_sigterm(self, signum, frame):
        self._cancelled = True

    def cancelled(self) -> bool:
        return self._cancelled

    def wait_for_key(self, timeout: float) -> bool:
        """Wait up to timeout seconds; True if a quit key was pressed"""
        if self._saved_attrs is None:
            time.sleep(timeout)
            return self._cancelled

        fd = self.stdin.fileno()
        ready, _, _ = select.select([fd], [], [], timeout)
        if not ready:
            return self._cancelled
        key = os.read(fd, 1).decode("utf-8", errors="ignore")
        return key in QUIT_KEYS or self._cancelled


# ==================== Commands ====================

def _load_or_exit(path) -> list:
    """Load the store, printing skipped lines; exit on storage errors"""
    try:
        store, errors = read_store_file(path)
    except StorageError as e:
        print(f"Error: Could not read secrets file {e}")
        sys.exit(1)
    for line_number, error in errors:
        print(f"Warning: {path}:{line_number}: {error}")
    return store


def _save_or_exit(path, store: list):
    try:
        write_store_file(path, store)
    except StorageError as e:
        print(f"Error: Could not write secrets file {e}")
        sys.exit(1)


def _find_one_or_exit(store: list, query: str) -> SecretRecord:
    matches = find_records(store, query)
    if not matches:
        print(f"Error: '{query}' not found")
        print("Use 'auth-tui list' to see stored secrets")
        sys.exit(1)
    if len(matches) > 1:
        print(f"Error: '{query}' is ambiguous, use issuer:label")
        for record in matches:
            print(f"  - {record.display_name}")
        sys.exit(1)
    return matches[0]


def cmd_display(args):
    """Show live codes for every stored secret"""
    store = _load_or_exit(args.path)

    if not store:
        print("No secrets found. Import some with: auth-tui import <file>")
        return

    colorama.just_fix_windows_console()
    print("Press q to quit\n")
    try:
        with TerminalSession() as session:
            run_display(
                store,
                wait=session.wait_for_key,
                cancelled=session.cancelled,
                color=sys.stdout.isatty(),
            )
    except KeyboardInterrupt:
        debug_log("Interrupted")


def cmd_import(args):
    """Import otpauth:// lines from a file"""
    try:
        incoming, errors = read_store_file(args.file, missing_ok=False)
    except StorageError as e:
        print(f"Error: Could not read import file {e}")
        sys.exit(1)

    for line_number, error in errors:
        print(f"  Skipping line {line_number}: {error}")

    existing = _load_or_exit(args.path)
    merged = merge_store(existing, incoming)
    imported = merged[len(existing):]
    duplicates = len(incoming) - len(imported)

    for record in imported:
        print(f"  Imported '{record.display_name}'")
    if duplicates:
        print(f"  Skipped {duplicates} entries already present")

    if args.dry_run:
        print("\n[Dry run - no changes made]")
        return

    _save_or_exit(args.path, merged)
    print(f"\n✓ Imported {len(imported)} entries, skipped {len(errors) + duplicates}")


def cmd_export(args):
    """Export all secrets as otpauth:// lines"""
    store = _load_or_exit(args.path)
    try:
        write_store_file(args.file, store)
    except StorageError as e:
        print(f"Error: Failed to export {e}")
        sys.exit(1)
    print(f"✓ Exported {len(store)} entries to {args.file}")


def cmd_add(args):
    """Add a new OTP secret"""
    try:
        record = SecretRecord(
            label=args.label,
            secret=decode_secret(args.secret),
            issuer=args.issuer,
            algorithm=Algorithm(args.algorithm.upper()),
            digits=args.digits,
            period=args.period,
            counter=args.counter,
            kind=Kind.HOTP if args.hotp else Kind.TOTP,
        )
    except DecodeError as e:
        print(f"Error: {e}")
        sys.exit(1)

    store = _load_or_exit(args.path)
    merged = merge_store(store, [record])
    if len(merged) == len(store):
        print(f"'{record.display_name}' already exists")
        return

    _save_or_exit(args.path, merged)
    print(f"✓ Added '{record.display_name}'")


def cmd_get(args):
    """Get OTP code for a label"""
    store = _load_or_exit(args.path)
    record = _find_one_or_exit(store, args.label)

    now = int(time.time())
    code = record_code(record, now)

    if record.kind is Kind.HOTP:
        # The stored counter is the next one to use
        index = next(i for i, r in enumerate(store) if r is record)
        store[index] = dataclasses.replace(record, counter=record.counter + 1)
        _save_or_exit(args.path, store)

    # Copy to clipboard
    clipboard_msg = ""
    if CLIPBOARD_AVAILABLE:
        try:
            pyperclip.copy(code)
            clipboard_msg = " (copied to clipboard)"
        except pyperclip.PyperclipException as e:
            debug_log(f"Clipboard unavailable: {e}")

    print(f"{code}{clipboard_msg}")

    if args.verbose:
        if record.kind is Kind.HOTP:
            print(f"Counter {record.counter}")
        else:
            print(f"Valid for {time_remaining(now, record.period)}s")


def cmd_list(args):
    """List all stored secrets"""
    store = _load_or_exit(args.path)

    if not store:
        print("No OTP secrets stored")
        print("Add one with: auth-tui add <label> <secret>")
        return

    rows = [
        (record.label, record.issuer or "-", record.kind.value.upper(),
         record.algorithm.value, str(record.digits))
        for record in store
    ]

    # Calculate dynamic column widths (with 4-space gap)
    label_width = max(len("Label"), max(len(r[0]) for r in rows)) + 4
    issuer_width = max(len("Issuer"), max(len(r[1]) for r in rows)) + 4

    print(f"{'Label':<{label_width}}{'Issuer':<{issuer_width}}{'Type':<6}{'Algorithm':<11}{'Digits'}")
    print("-" * (label_width + issuer_width + 23))

    for label, issuer, kind, algorithm, digits in rows:
        print(f"{label:<{label_width}}{issuer:<{issuer_width}}{kind:<6}{algorithm:<11}{digits}")


def cmd_remove(args):
    """Remove an OTP secret"""
    store = _load_or_exit(args.path)
    record = _find_one_or_exit(store, args.label)

    if not args.force:
        confirm = input(f"Remove '{record.display_name}'? [y/N]: ")
        if confirm.lower() != 'y':
            print("Cancelled")
            return

    store = [r for r in store if r is not record]
    _save_or_exit(args.path, store)
    print(f"✓ Removed '{record.display_name}'")


# ==================== Main ====================

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="auth-tui - A terminal TOTP/HOTP authenticator",
        formatter_class=argparse.RawDescriptionHelpFormatter
    )
    parser.add_argument("--file", "-f", dest="path", help="Path to the secrets file (default: ~/.auth-tui)")
    parser.add_argument("--debug", action="store_true", help="Enable debug logging with timing")
    subparsers = parser.add_subparsers(dest="command", help="Commands")

    # Import command
    import_parser = subparsers.add_parser("import", help="Import otpauth:// URIs from a text file")
    import_parser.add_argument("file", help="File with one otpauth:// URI per line")
    import_parser.add_argument("--dry-run", "-n", action="store_true", help="Show what would be imported without saving")

    # Export command
    export_parser = subparsers.add_parser("export", help="Export otpauth:// URIs to a text file")
    export_parser.add_argument("file", help="Path to write the URIs")

    # Add command
    add_parser = subparsers.add_parser("add", help="Add a new OTP secret")
    add_parser.add_argument("label", help="Account name")
    add_parser.add_argument("secret", help="Base32 encoded secret key")
    add_parser.add_argument("--issuer", "-i", help="Issuer name (e.g., GitHub)")
    add_parser.add_argument("--digits", "-d", type=int, default=DEFAULT_DIGITS, help="Number of digits (default: 6)")
    add_parser.add_argument("--period", "-p", type=int, default=DEFAULT_PERIOD, help="Time period in seconds (default: 30)")
    add_parser.add_argument("--algorithm", "-a", default="SHA1", type=str.upper,
                            choices=[a.value for a in Algorithm], help="HMAC algorithm (default: SHA1)")
    add_parser.add_argument("--hotp", action="store_true", help="Counter-based (HOTP) instead of time-based")
    add_parser.add_argument("--counter", "-c", type=int, default=0, help="Initial HOTP counter (default: 0)")

    # Get command
    get_parser = subparsers.add_parser("get", help="Get OTP code")
    get_parser.add_argument("label", help="Label or issuer:label of the secret")
    get_parser.add_argument("--verbose", "-v", action="store_true", help="Show time remaining or counter")

    # List command
    subparsers.add_parser("list", help="List all stored secrets")

    # Remove command
    remove_parser = subparsers.add_parser("remove", help="Remove an OTP secret")
    remove_parser.add_argument("label", help="Label or issuer:label to remove")
    remove_parser.add_argument("--force", action="store_true", help="Skip confirmation")

    return parser


def main(argv=None):
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.debug:
        set_debug(True)
    debug_log(f"Command: {args.command or 'display'}")

    try:
        args.path = get_storage_path(args.path)
    except StorageError as e:
        print(f"Error: Could not locate secrets file {e}")
        sys.exit(1)
    debug_log(f"Secrets file: {args.path}")

    commands = {
        None: cmd_display,
        "import": cmd_import,
        "export": cmd_export,
        "add": cmd_add,
        "get": cmd_get,
        "list": cmd_list,
        "remove": cmd_remove,
    }

    commands[args.command](args)


if __name__ == "__main__":
    main()
