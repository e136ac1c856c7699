"""Storefront countdown widget.

A widget is bound to one container on the page.  It fetches the timer that
applies to the container's shop/product/collection context, renders it,
ticks the countdown and reports a single impression.  Every failure stays
inside the widget; the rest of the page keeps rendering.
"""

from __future__ import annotations

import asyncio
import html
import logging
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass, field
from typing import Any, Protocol

from countdown.engine.session_clock import EvergreenSessionClock, now_ms
from countdown.engine.targeting import clean_ids
from countdown.models.session import SessionStore
from countdown.models.timer import HEX_COLOR, POSITIONS, TimerKind, normalize_shop, parse_instant, to_epoch_ms

from .client import StorefrontClient
from .render_loop import CountdownRenderLoop

logger = logging.getLogger(__name__)


class WidgetContainer(Protocol):
    """Page element a widget renders into."""

    dataset: Mapping[str, str]

    def show(self, markup: str) -> None: ...

    def update_time(self, text: str) -> None: ...

    def hide(self) -> None: ...

    def clear(self) -> None: ...


@dataclass
class BufferContainer:
    """In-memory container; records what a page element would display."""

    dataset: dict[str, str] = field(default_factory=dict)
    markup: str = ""
    time_text: str = ""
    visible: bool = False
    shows: int = 0

    def show(self, markup: str) -> None:
        self.markup = markup
        self.visible = True
        self.shows += 1

    def update_time(self, text: str) -> None:
        self.time_text = text

    def hide(self) -> None:
        self.visible = False

    def clear(self) -> None:
        self.markup = ""
        self.time_text = ""
        self.visible = False


def _color(value: Any, default: str) -> str:
    return value if isinstance(value, str) and HEX_COLOR.match(value) else default


def render_markup(payload: Mapping[str, Any]) -> str:
    """HTML for a timer payload.  All merchant text is escaped."""
    appearance = payload.get("appearance") or {}
    background = _color(appearance.get("background_color"), "#000000")
    text_color = _color(appearance.get("text_color"), "#FFFFFF")
    position = appearance.get("position")
    if position not in POSITIONS:
        position = "above-cart"
    headline = html.escape(str(appearance.get("headline") or ""))
    supporting = html.escape(str(appearance.get("supporting_text") or ""))

    parts = [
        f'<div class="countdown-timer countdown-timer--{position}" '
        f'data-timer-id="{html.escape(str(payload.get("id", "")))}" '
        f'style="background-color:{background};color:{text_color}">'
    ]
    if headline:
        parts.append(f'<p class="countdown-timer__headline">{headline}</p>')
    parts.append('<p class="countdown-timer__time" aria-live="polite"></p>')
    if supporting:
        parts.append(f'<p class="countdown-timer__text">{supporting}</p>')
    parts.append("</div>")
    return "".join(parts)


class CountdownWidget:
    def __init__(
        self,
        container: WidgetContainer,
        client: StorefrontClient,
        store: SessionStore | None = None,
        *,
        clock: Callable[[], int] = now_ms,
        impression_delay: float = 2.0,
        rearm_delay: float = 0.1,
        interval: float = 1.0,
    ) -> None:
        self.container = container
        self.client = client
        self.clock = clock
        self.session_clock = EvergreenSessionClock(store, clock)
        self.impression_delay = impression_delay
        self.rearm_delay = rearm_delay
        self.interval = interval

        self.payload: dict[str, Any] | None = None
        self.loop: CountdownRenderLoop | None = None
        self._impression_task: asyncio.Task | None = None
        self._rearm_task: asyncio.Task | None = None
        self._impression_scheduled = False
        self._started = False
        self._destroyed = False

    @property
    def shop(self) -> str:
        return normalize_shop(self.container.dataset.get("shop"))

    @property
    def destroyed(self) -> bool:
        return self._destroyed

    async def start(self) -> bool:
        """Fetch, resolve the end instant, render, tick, then schedule the impression.

        Returns whether a countdown is showing.  Only the first call does any
        work; later calls report the state of that first start.
        """
        if self._started:
            return self.loop is not None and self.loop.running and not self._destroyed
        self._started = True

        shop = self.shop
        if not shop:
            return False

        dataset = self.container.dataset
        payload = await self.client.fetch_timer(
            shop,
            product_id=(dataset.get("productId") or "").strip() or None,
            collection_ids=sorted(clean_ids((dataset.get("collectionIds") or "").split(","))),
        )
        if payload is None or self._destroyed:
            return False

        end_ms = self._resolve_end(payload)
        if end_ms is None:
            logger.warning(f"Timer {payload.get('id')} for {shop} has no usable end instant")
            return False

        self.payload = payload
        self.render(payload)
        self.loop = CountdownRenderLoop(
            end_ms,
            self.container.update_time,
            self._on_expire,
            clock=self.clock,
            interval=self.interval,
        )
        self.loop.start()
        if self.loop.expired:
            return False
        self._schedule_impression()
        return True

    def _is_evergreen(self, payload: Mapping[str, Any]) -> bool:
        return payload.get("kind") == TimerKind.EVERGREEN

    def _resolve_end(self, payload: Mapping[str, Any]) -> int | None:
        if self._is_evergreen(payload):
            duration = payload.get("duration_minutes")
            if not isinstance(duration, int) or duration <= 0:
                return None
            return self.session_clock.resolve_end_instant(str(payload["id"]), duration)

        end = parse_instant(payload.get("end_at"))
        return to_epoch_ms(end) if end is not None else None

    def render(self, payload: Mapping[str, Any]) -> None:
        self.container.show(render_markup(payload))

    def _schedule_impression(self) -> None:
        if self._impression_scheduled or self.payload is None:
            return
        self._impression_scheduled = True
        self._impression_task = asyncio.create_task(self._report_impression(str(self.payload["id"])))

    async def _report_impression(self, timer_id: str) -> None:
        await asyncio.sleep(self.impression_delay)
        if self._destroyed:
            return
        if not await self.client.record_impression(timer_id, self.shop):
            logger.debug(f"Impression for timer {timer_id} not recorded")

    def _on_expire(self) -> None:
        if self._destroyed or self.payload is None:
            return
        if self._is_evergreen(self.payload):
            self._rearm_task = asyncio.create_task(self._rearm())
        else:
            self.container.hide()

    async def _rearm(self) -> None:
        await asyncio.sleep(self.rearm_delay)
        if self._destroyed or self.payload is None or self.loop is None:
            return
        end_ms = self._resolve_end(self.payload)
        if end_ms is None:
            self.container.hide()
            return
        logger.debug(f"Evergreen timer {self.payload['id']} re-armed until {end_ms}")
        self.loop.restart(end_ms)

    def destroy(self) -> None:
        """Stop ticking, drop pending work and clear the container."""
        if self._destroyed:
            return
        self._destroyed = True
        if self.loop is not None:
            self.loop.stop()
        for task in (self._impression_task, self._rearm_task):
            if task is not None and not task.done():
                task.cancel()
        self.container.clear()


async def bootstrap(
    containers: Iterable[WidgetContainer],
    client: StorefrontClient,
    store: SessionStore | None = None,
    **widget_options: Any,
) -> list[CountdownWidget]:
    """Start one widget per container and return the ones showing a countdown."""
    widgets = []
    for container in containers:
        if not normalize_shop(container.dataset.get("shop")):
            logger.warning("Countdown container without a shop attribute, skipping")
            continue
        widgets.append(CountdownWidget(container, client, store, **widget_options))

    results = await asyncio.gather(*(w.start() for w in widgets), return_exceptions=True)

    started = []
    for widget, result in zip(widgets, results, strict=True):
        if isinstance(result, BaseException):
            logger.error(f"Countdown widget for {widget.shop} failed: {type(result).__name__}: {result}")
            widget.destroy()
        elif result:
            started.append(widget)
    return started
