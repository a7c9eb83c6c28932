"""Entry point for the LocalHive terminal client."""

from __future__ import annotations

import logging


def main() -> None:
    from hivesync.config import load_settings
    from hivesync.ui.app import HiveApp

    settings = load_settings()
    # The terminal belongs to Textual; log lines go to a file instead.
    logging.basicConfig(
        filename=settings.log_file,
        level=logging.INFO,
        format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
    )
    app = HiveApp(settings)
    app.run()


if __name__ == "__main__":
    main()
