"""
Change feed: publish/subscribe with one topic per entity type.

Events drive client cache invalidation only. Delivery is best-effort and
at-least-once; nothing in the lifecycle reads them back.
"""
import json
import time
from collections import defaultdict
from typing import Any, Callable, Dict, List, Optional

import boto3

from .config import config
from .logging import logger

Subscriber = Callable[[Dict[str, Any]], None]


class ChangeFeed:
    """Fans change events out to in-process subscribers and an optional SQS queue."""

    def __init__(self, queue_url: Optional[str] = None, sqs_client=None):
        self.queue_url = config.CHANGES_QUEUE_URL if queue_url is None else queue_url
        self._sqs = sqs_client
        self._subscribers: Dict[str, List[Subscriber]] = defaultdict(list)

    @property
    def sqs(self):
        if self._sqs is None:
            self._sqs = boto3.client('sqs', region_name=config.AWS_REGION)
        return self._sqs

    def subscribe(self, topic: str, callback: Subscriber) -> Callable[[], None]:
        """
        Register a callback for a topic.

        Returns:
            A function that removes the subscription
        """
        self._subscribers[topic].append(callback)

        def unsubscribe():
            if callback in self._subscribers[topic]:
                self._subscribers[topic].remove(callback)

        return unsubscribe

    def publish(self, topic: str, change_type: str, key: Dict[str, Any], user_id: str = None) -> Dict[str, Any]:
        """
        Publish a change event. Never raises.

        Args:
            topic: Entity topic (see models.Topic)
            change_type: INSERT, UPDATE or DELETE
            key: Primary key of the changed record
            user_id: Owning user, used by clients to filter their own rows
        """
        event = {
            'topic': topic,
            'eventType': change_type,
            'key': key,
            'occurredAt': int(time.time()),
        }
        if user_id:
            event['userId'] = user_id

        for callback in list(self._subscribers.get(topic, [])):
            try:
                callback(event)
            except Exception as e:
                logger.warning(f"Change subscriber failed on {topic}: {e}")

        if self.queue_url:
            self._send(event)

        return event

    def _send(self, event: Dict[str, Any]) -> bool:
        try:
            self.sqs.send_message(
                QueueUrl=self.queue_url,
                MessageBody=json.dumps(event, default=str),
                MessageAttributes={
                    'topic': {'DataType': 'String', 'StringValue': event['topic']}
                }
            )
            return True
        except Exception as e:
            logger.error(f"Error sending change event to SQS: {e}")
            return False


_default_feed = None


def get_feed() -> ChangeFeed:
    """Get or create the container-wide ChangeFeed."""
    global _default_feed
    if _default_feed is None:
        _default_feed = ChangeFeed()
    return _default_feed


def reset_feed() -> None:
    global _default_feed
    _default_feed = None
