"""MQTT subscription matching and dispatch of messages to callbacks."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

MessageCallback = Callable[[Any, str, bytes, int, int], None]


class TopicError(ValueError):
    """A subscription or topic string is not valid."""


def _at(text: str, pos: int) -> str:
    return text[pos] if pos < len(text) else ""


def _check_topic_rest(topic: str, pos: int) -> None:
    if any(ch in "+#" for ch in topic[pos:]):
        raise TopicError(f"wildcard in topic {topic!r}")


def topic_matches_sub(sub: str, topic: str) -> bool:
    """Whether ``topic`` matches subscription ``sub``; raises TopicError if invalid."""
    if not sub or not topic:
        raise TopicError("empty subscription or topic")

    if (sub[0] == "$") != (topic[0] == "$"):
        return False

    s = 0
    t = 0
    while s < len(sub):
        tc = _at(topic, t)
        if tc in ("+", "#"):
            raise TopicError(f"wildcard in topic {topic!r}")
        sc = sub[s]
        if sc != tc or tc == "":
            if sc == "+":
                if s > 0 and sub[s - 1] != "/":
                    raise TopicError(f"bad '+' in subscription {sub!r}")
                if _at(sub, s + 1) not in ("", "/"):
                    raise TopicError(f"bad '+' in subscription {sub!r}")
                s += 1
                while t < len(topic) and topic[t] != "/":
                    if topic[t] in "+#":
                        raise TopicError(f"wildcard in topic {topic!r}")
                    t += 1
                if t >= len(topic) and s >= len(sub):
                    return True
            elif sc == "#":
                if s > 0 and sub[s - 1] != "/":
                    raise TopicError(f"bad '#' in subscription {sub!r}")
                if s + 1 < len(sub):
                    raise TopicError(f"'#' not last in subscription {sub!r}")
                _check_topic_rest(topic, t)
                return True
            else:
                if (
                    tc == ""
                    and s > 0
                    and sub[s - 1] == "+"
                    and sc == "/"
                    and _at(sub, s + 1) == "#"
                ):
                    return True
                while s < len(sub):
                    if sub[s] == "#" and s + 1 < len(sub):
                        raise TopicError(f"'#' not last in subscription {sub!r}")
                    s += 1
                return False
        else:
            if t + 1 >= len(topic):
                if (
                    _at(sub, s + 1) == "/"
                    and _at(sub, s + 2) == "#"
                    and s + 3 >= len(sub)
                ):
                    return True
            s += 1
            t += 1
            if s >= len(sub) and t >= len(topic):
                return True
            if t >= len(topic) and _at(sub, s) == "+" and s + 1 >= len(sub):
                if s > 0 and sub[s - 1] != "/":
                    raise TopicError(f"bad '+' in subscription {sub!r}")
                return True

    _check_topic_rest(topic, t)
    return False


@dataclass(frozen=True)
class Subscription:
    """A registered topic filter with its QoS and callback."""

    topic: str
    qos: int
    callback: MessageCallback


class SubscribeParser:
    """Keeps subscriptions and routes incoming messages to matching ones."""

    def __init__(self) -> None:
        self._subscriptions: list[Subscription] = []

    def register_callback(self, topic: str, qos: int, callback: MessageCallback) -> None:
        self._subscriptions.append(Subscription(topic, qos, callback))

    def unregister_callback(self, topic: str) -> None:
        self._subscriptions = [s for s in self._subscriptions if s.topic != topic]

    def handle_message(
        self, properties: Any, topic: str, payload: bytes, index: int = 0, total: int | None = None
    ) -> None:
        if total is None:
            total = len(payload)
        for subscription in list(self._subscriptions):
            try:
                matched = topic_matches_sub(subscription.topic, topic)
            except TopicError:
                continue
            if matched:
                subscription.callback(properties, topic, payload, index, total)

    def callbacks(self) -> list[Subscription]:
        return list(self._subscriptions)