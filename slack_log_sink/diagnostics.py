"""Self-log channel for failures inside the sink.

Records written here never reach the Slack handler: the logger does not
propagate, and the handler ignores everything under ``slack_log_sink``.
"""

import logging
import sys

SELFLOG_NAME = "slack_log_sink.selflog"

selflog = logging.getLogger(SELFLOG_NAME)
selflog.setLevel(logging.WARNING)
selflog.propagate = False
if not selflog.handlers:
    _handler = logging.StreamHandler(sys.stderr)
    _handler.setFormatter(
        logging.Formatter("%(asctime)s [%(levelname)s] %(name)s: %(message)s")
    )
    selflog.addHandler(_handler)
