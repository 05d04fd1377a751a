from __future__ import annotations

import logging

from django.test import SimpleTestCase

from config.logging_filters import HealthEndpointFilter


def _record(msg: str, *, name: str = "gunicorn.access") -> logging.LogRecord:
    return logging.LogRecord(
        name=name,
        level=logging.INFO,
        pathname=__file__,
        lineno=1,
        msg=msg,
        args=(),
        exc_info=None,
    )


class HealthEndpointFilterTests(SimpleTestCase):
    def test_successful_probes_are_dropped(self) -> None:
        filt = HealthEndpointFilter()

        self.assertFalse(filt.filter(_record('"GET /healthz HTTP/1.1" 200 15', name="django.server")))
        self.assertFalse(
            filt.filter(
                _record('10.0.0.4 - - [19/Oct/2026:10:49:08 +0000] "GET /readyz HTTP/1.1" 200 37 "-" "kube-probe/1.30"')
            )
        )

    def test_failing_probes_stay_visible(self) -> None:
        filt = HealthEndpointFilter()

        self.assertTrue(filt.filter(_record('"GET /readyz HTTP/1.1" 503 64')))

    def test_room_traffic_is_kept(self) -> None:
        filt = HealthEndpointFilter()

        self.assertTrue(filt.filter(_record('"GET /vote/3/ HTTP/1.1" 200 2048')))
        self.assertTrue(filt.filter(_record('"POST /manage/rooms/3/finalize/ HTTP/1.1" 302 0')))
