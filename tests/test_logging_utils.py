import logging

from mirror_relay.services.logging_utils import RedactingFilter, setup_logging


def _record(msg, *args):
    return logging.LogRecord("test", logging.INFO, __file__, 1, msg, args, None)


def test_tokens_are_shortened():
    record = _record("Mobile joined session: token=%s", "3f2b9c1e-7d4a-4b8e-9a51-0c6d2e8f1a7b")
    assert RedactingFilter().filter(record) is True
    assert record.msg == "Mobile joined session: token=3f2b9c1e..."
    assert record.args == ()


def test_negotiation_bodies_are_hidden():
    record = _record("Forwarding sdp=%s candidate=%s",
                     "v=0\\r\\nc=IN-IP4-192.168.1.2", "candidate:1-udp-192.168.1.2")
    RedactingFilter().filter(record)
    assert "192.168.1.2" not in record.msg
    assert record.msg == "Forwarding sdp=*** candidate=***"


def test_setup_logging_creates_log_files(tmp_path):
    logs_dir = tmp_path / "logs"
    setup_logging(level="debug", logs_dir=str(logs_dir))
    logging.getLogger("mirror_relay.test").error("token=0123456789abcdef")
    for handler in logging.getLogger().handlers:
        handler.flush()

    assert (logs_dir / "relay.log").exists()
    assert "0123456789abcdef" not in (logs_dir / "relay-error.log").read_text()
