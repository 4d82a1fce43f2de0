# ==============================================================================
# TEMPORIZADORES DEL TERMINAL
# ==============================================================================
# El terminal funciona como un solo hilo lógico: las llamadas HTTP y los
# temporizadores (polling, esperas, notificaciones) mutan estado siempre bajo
# el mismo lock, así ninguna mutación se observa a medias. Cada callback toma
# ese lock por su cuenta y lo suelta durante las llamadas de red.
#
# - ThreadScheduler: producción, usa threading.Timer
# - ManualScheduler: reloj virtual, avanza solo cuando se llama advance()
# - TimerGroup: agrupa los temporizadores de un dueño para cancelarlos juntos
# ==============================================================================

import heapq
import itertools
import threading
from typing import Callable, List, Optional, Set


class TimerHandle:
    """Referencia a un temporizador programado."""

    def __init__(self, repeating: bool = False):
        self.repeating = repeating
        self.cancelled = False
        self._on_cancel: Optional[Callable[[], None]] = None

    def cancel(self) -> None:
        if self.cancelled:
            return
        self.cancelled = True
        if self._on_cancel:
            self._on_cancel()

    @property
    def active(self) -> bool:
        return not self.cancelled


class ThreadScheduler:
    """Temporizadores reales basados en threading.Timer."""

    @staticmethod
    def _run(handle: TimerHandle, callback: Callable[[], None]) -> None:
        if handle.cancelled:
            return
        if not handle.repeating:
            handle.cancelled = True
        callback()

    def call_later(self, delay: float, callback: Callable[[], None]) -> TimerHandle:
        handle = TimerHandle()
        timer = threading.Timer(delay, self._run, args=(handle, callback))
        timer.daemon = True
        handle._on_cancel = timer.cancel
        timer.start()
        return handle

    def call_every(self, interval: float, callback: Callable[[], None]) -> TimerHandle:
        handle = TimerHandle(repeating=True)
        stop = threading.Event()
        handle._on_cancel = stop.set

        def _loop():
            # Event.wait devuelve True cuando se cancela
            while not stop.wait(interval):
                self._run(handle, callback)
                if handle.cancelled:
                    break

        thread = threading.Thread(target=_loop, daemon=True)
        thread.start()
        return handle


class ManualScheduler:
    """
    Reloj virtual para tests y simulaciones.
    Los callbacks solo corren dentro de advance(), en orden de vencimiento.
    """

    def __init__(self):
        self.now = 0.0
        self._queue: List[tuple] = []
        self._counter = itertools.count()

    def call_later(self, delay: float, callback: Callable[[], None]) -> TimerHandle:
        handle = TimerHandle()
        heapq.heappush(self._queue, (self.now + delay, next(self._counter), handle, callback, None))
        return handle

    def call_every(self, interval: float, callback: Callable[[], None]) -> TimerHandle:
        handle = TimerHandle(repeating=True)
        heapq.heappush(self._queue, (self.now + interval, next(self._counter), handle, callback, interval))
        return handle

    def advance(self, seconds: float) -> None:
        """Avanza el reloj ejecutando todo lo que vence en el intervalo."""
        target = self.now + seconds
        while self._queue and self._queue[0][0] <= target:
            due, _, handle, callback, interval = heapq.heappop(self._queue)
            if handle.cancelled:
                continue
            self.now = due
            if interval is None:
                handle.cancelled = True
            else:
                heapq.heappush(self._queue, (due + interval, next(self._counter), handle, callback, interval))
            callback()
        self.now = target

    @property
    def pending(self) -> int:
        """Temporizadores activos en cola."""
        return sum(1 for entry in self._queue if not entry[2].cancelled)


class TimerGroup:
    """
    Conjunto de temporizadores de un mismo dueño.
    cancel_all() garantiza que no quede ninguno vivo al cerrar.
    """

    def __init__(self, scheduler):
        self.scheduler = scheduler
        self._handles: Set[TimerHandle] = set()

    def _track(self, handle: TimerHandle) -> TimerHandle:
        self._handles = {h for h in self._handles if h.active}
        self._handles.add(handle)
        return handle

    def call_later(self, delay: float, callback: Callable[[], None]) -> TimerHandle:
        return self._track(self.scheduler.call_later(delay, callback))

    def call_every(self, interval: float, callback: Callable[[], None]) -> TimerHandle:
        return self._track(self.scheduler.call_every(interval, callback))

    def cancel_all(self) -> None:
        for handle in list(self._handles):
            handle.cancel()
        self._handles.clear()

    @property
    def active_count(self) -> int:
        return sum(1 for h in self._handles if h.active)
