#!/usr/bin/env python3
"""
4-Coin Flip Prediction System - Entry Point
Start the Flask + SocketIO server.
"""

import os
import sys

# Ensure project root is in path
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from config import HOST, PORT, DEBUG, DATA_DIR, HISTORY_PATH, MIN_HISTORY_FOR_PREDICTION

# Create data directories
os.makedirs(DATA_DIR, exist_ok=True)

from coinflip import create_app, socketio

app = create_app()


def main():
    print("=" * 60)
    print("  4-Coin Flip Prediction System v1.0")
    print("=" * 60)
    print(f"  Server:     http://localhost:{PORT}")
    print(f"  History:    {HISTORY_PATH}")
    print(f"  Predicts after {MIN_HISTORY_FOR_PREDICTION} flips")
    print(f"  Debug:      {DEBUG}")
    print("=" * 60)
    print()

    socketio.run(app, host=HOST, port=PORT, debug=DEBUG, use_reloader=False)


if __name__ == '__main__':
    main()
