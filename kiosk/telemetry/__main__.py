"""Mock sensor producer entrypoint.

Usage: python -m kiosk.telemetry
"""

from kiosk.telemetry.producer import main

if __name__ == "__main__":
    main()
