"""Unified command-line interface for splitscan.

Usage:
    splitscan scan <image>
    splitscan scan <image> --json --backend http --ocr-url http://127.0.0.1:8001/ocr
    splitscan serve [--host] [--port]
"""
