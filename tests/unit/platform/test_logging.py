import logging

import structlog

from serviceregistry.platform.logging import bind_actor, configure_logging, get_logger


def test_stdlib_records_carry_bound_actor(capsys):
    configure_logging()
    bind_actor("jdoe@example.org")
    try:
        logging.getLogger("serviceregistry.connections.service").info("Connection '3' deleted")
    finally:
        structlog.contextvars.clear_contextvars()

    out = capsys.readouterr().out
    assert "Connection '3' deleted" in out
    assert "jdoe@example.org" in out

def test_structlog_records_carry_bound_actor(capsys):
    configure_logging()
    bind_actor("jane@example.org")
    try:
        get_logger("serviceregistry.api.routers.connections").info("Returned 2 connections")
    finally:
        structlog.contextvars.clear_contextvars()

    out = capsys.readouterr().out
    assert "Returned 2 connections" in out
    assert "jane@example.org" in out
