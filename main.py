"""Sample program: sends one event per level to a Slack webhook."""

import logging
import signal
import sys
import threading

from slack_log_sink import ConfigurationError, add_slack_handler, load_options

SAMPLE_EVENTS = [
    (logging.DEBUG - 5, "1 Verbose"),
    (logging.DEBUG, "2 Debug"),
    (logging.ERROR, "3 Error"),
]


def main():
    logging.basicConfig(
        level=logging.DEBUG - 5,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )
    logger = logging.getLogger("sample")

    try:
        options = load_options()
    except ConfigurationError as exc:
        logger.error("Invalid configuration: %s", exc)
        sys.exit(2)

    shutdown_event = threading.Event()

    def handle_signal(signum, frame):
        logger.info("Received signal %d, shutting down...", signum)
        shutdown_event.set()

    signal.signal(signal.SIGINT, handle_signal)
    signal.signal(signal.SIGTERM, handle_signal)

    handler = add_slack_handler(options)
    logger.info(
        "Posting to Slack: batch_size_limit=%d, period=%.1fs, minimum_level=%s",
        options.batch_size_limit,
        options.period,
        options.minimum_level,
    )

    try:
        for level, message in SAMPLE_EVENTS:
            logger.log(level, message)
        try:
            raise RuntimeError("some logged exception!")
        except RuntimeError:
            logger.critical("4 Fatal", exc_info=True)
        logger.info("5 Information")
        logger.warning("6 Warning")
        logger.debug("7 Formatting %(myProp)s", {"myProp": "test"})

        # Give the timer a chance to flush before exiting.
        shutdown_event.wait(timeout=options.period)
    except KeyboardInterrupt:
        logger.info("Interrupted")
    finally:
        logging.getLogger().removeHandler(handler)
        handler.close()
        logger.info("Slack sink metrics: %s", handler.sink.metrics.snapshot())


if __name__ == "__main__":
    main()
