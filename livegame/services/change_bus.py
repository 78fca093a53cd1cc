"""
Service: change_bus.py
- Fan-out publish/subscribe en mémoire : "le document a changé, relisez-le".
- Aucun payload, aucun buffer, aucun historique : un abonné arrivé après un publish ne le voit pas.
- Snapshot immuable des listeners au publish (évite "list changed size during iteration").
- Un listener qui lève une exception est journalisé et n'empêche pas les suivants.

`ChangeBus` est l'interface abstraite (subscribe/publish) : StateStore et StreamSession
ne dépendent que d'elle, une implémentation broker peut la remplacer sans les toucher.
"""
from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from threading import RLock
from typing import Callable, List

logger = logging.getLogger(__name__)

Listener = Callable[[], None]
Unsubscribe = Callable[[], None]


class ChangeBus(ABC):
    """Interface de notification de changement du document."""

    @abstractmethod
    def subscribe(self, listener: Listener) -> Unsubscribe:
        """Enregistre `listener`; le handle retourné le retire (idempotent)."""

    @abstractmethod
    def publish(self) -> int:
        """Notifie tous les listeners courants; retourne le nombre d'appels effectués."""

    @property
    @abstractmethod
    def listener_count(self) -> int:
        ...


class _Registration:
    __slots__ = ("listener",)

    def __init__(self, listener: Listener) -> None:
        self.listener = listener


class InProcessChangeBus(ChangeBus):
    """Bus mono-process, thread-safe (verrou sur le registre)."""

    def __init__(self) -> None:
        self._lock = RLock()
        self._registrations: List[_Registration] = []

    def subscribe(self, listener: Listener) -> Unsubscribe:
        # Une registration par appel : le même callable abonné deux fois = deux entrées
        registration = _Registration(listener)
        with self._lock:
            self._registrations.append(registration)

        def unsubscribe() -> None:
            with self._lock:
                for index, current in enumerate(self._registrations):
                    if current is registration:
                        del self._registrations[index]
                        return

        return unsubscribe

    def _snapshot(self) -> List[_Registration]:
        with self._lock:
            return list(self._registrations)

    def publish(self) -> int:
        registrations = self._snapshot()
        for registration in registrations:
            try:
                registration.listener()
            except Exception:
                logger.exception(
                    "Change listener failed",
                    extra={"bus_listener": repr(registration.listener)},
                )
        logger.debug("Change published", extra={"bus_listeners": len(registrations)})
        return len(registrations)

    @property
    def listener_count(self) -> int:
        with self._lock:
            return len(self._registrations)
