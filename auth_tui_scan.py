#!/usr/bin/env python3
"""
auth-tui - QR Scanner module
This is a separate binary for QR code scanning (slow to start due to OpenCV)
"""

import argparse
import os
import sys

# Import the main module for shared functionality
from auth_tui import (
    DecodeError, InvalidScheme, MIGRATION_SCHEME, OTPAUTH_SCHEME, StorageError,
    debug_log, decode_migration, decode_uri, get_storage_path, merge_store,
    read_store_file, set_debug, write_store_file,
)

debug_log("auth-tui-scan module loaded")

cv2 = None


def load_cv2() -> bool:
    """Import OpenCV on first use"""
    global cv2
    if cv2 is not None:
        return True
    debug_log("Importing cv2...")
    try:
        import cv2 as opencv
    except ImportError:
        return False
    cv2 = opencv
    debug_log("cv2 loaded")
    return True


def records_from_qr_data(data: str) -> list:
    """Decode the text of a QR code into secret records"""
    text = data.strip()
    scheme = text.split("://", 1)[0].lower()
    if scheme == MIGRATION_SCHEME:
        # Google Authenticator export
        debug_log("Parsing Google Authenticator migration data...")
        return decode_migration(text)
    if scheme == OTPAUTH_SCHEME:
        debug_log("Parsing standard otpauth URI...")
        return [decode_uri(text)]
    raise InvalidScheme("expected an otpauth:// or otpauth-migration:// URI")


def cmd_scan(args):
    """Scan QR code from image file"""
    if not load_cv2():
        print("Error: opencv-python-headless required for QR scanning")
        print("Install with: pip install opencv-python-headless")
        sys.exit(1)

    image_path = args.image
    if not os.path.exists(image_path):
        print(f"Error: File not found: {image_path}")
        sys.exit(1)

    # Read image and detect QR code
    debug_log(f"Reading image: {image_path}")
    img = cv2.imread(image_path)
    if img is None:
        print(f"Error: Could not read image: {image_path}")
        sys.exit(1)

    debug_log("Detecting QR code...")
    detector = cv2.QRCodeDetector()
    data, _, _ = detector.detectAndDecode(img)

    if not data:
        print("Error: No QR code found in image")
        sys.exit(1)

    print(f"Found QR code data: {data[:50]}..." if len(data) > 50 else f"Found QR code data: {data}")

    try:
        entries = records_from_qr_data(data)
    except DecodeError as e:
        print(f"Error: Unsupported QR code: {e}")
        sys.exit(1)

    if not entries:
        print("Error: No valid OTP entries found in QR code")
        sys.exit(1)

    # Show what we found
    print(f"\nFound {len(entries)} OTP entries:")
    for entry in entries:
        print(f"  - {entry.label} ({entry.issuer or '-'})")

    if args.dry_run:
        print("\n[Dry run - no changes made]")
        return

    try:
        existing, _ = read_store_file(args.path)
        merged = merge_store(existing, entries)
        imported = merged[len(existing):]
        for entry in entries:
            if entry not in imported:
                print(f"  Skipping '{entry.display_name}' (already exists)")
        write_store_file(args.path, merged)
    except StorageError as e:
        print(f"Error: {e}")
        sys.exit(1)

    print(f"\n✓ Imported {len(imported)} entries")


def main(argv=None):
    debug_log("Entering main()")

    parser = argparse.ArgumentParser(
        description="auth-tui - QR Code Scanner",
        formatter_class=argparse.RawDescriptionHelpFormatter
    )
    parser.add_argument("--debug", action="store_true", help="Enable debug logging with timing")
    parser.add_argument("--file", "-f", dest="path", help="Path to the secrets file (default: ~/.auth-tui)")
    parser.add_argument("image", help="Path to image file containing QR code")
    parser.add_argument("--dry-run", "-n", action="store_true", help="Show what would be imported without saving")

    args = parser.parse_args(argv)
    if args.debug:
        set_debug(True)

    try:
        args.path = get_storage_path(args.path)
    except StorageError as e:
        print(f"Error: {e}")
        sys.exit(1)

    cmd_scan(args)


if __name__ == "__main__":
    main()
