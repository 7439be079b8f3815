# booking_engine/core/kafka_producer.py

import json
import logging
import threading

from kafka import KafkaProducer

from booking_engine.core.config import settings

logger = logging.getLogger(__name__)

_producer = None
_producer_lock = threading.Lock()


def _build_producer() -> KafkaProducer:
    return KafkaProducer(
        bootstrap_servers=settings.KAFKA_BOOTSTRAP_SERVERS,
        value_serializer=lambda v: json.dumps(v, default=str).encode("utf-8"),
        key_serializer=lambda k: k.encode("utf-8") if k else None,
        # Publishing happens after commit on the request thread; keep a dead
        # broker from stalling it.
        request_timeout_ms=5000,
        max_block_ms=settings.KAFKA_MAX_BLOCK_MS,
    )


def get_kafka_singleton():
    """
    Returns a process-wide producer, creating it on first use.

    Returns None when the broker cannot be reached so that publishing code
    can skip the event instead of failing the request.
    """
    global _producer

    if _producer is not None:
        return _producer

    with _producer_lock:
        if _producer is None:
            try:
                _producer = _build_producer()
                logger.info("Kafka producer connected to %s", settings.KAFKA_BOOTSTRAP_SERVERS)
            except Exception as e:
                logger.error(f"Kafka producer unavailable: {e}", exc_info=True)
                return None
    return _producer


def close_kafka_singleton():
    global _producer

    with _producer_lock:
        if _producer is not None:
            try:
                _producer.flush()
                _producer.close()
            finally:
                _producer = None
