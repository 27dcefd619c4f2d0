"""Speicher für Solicitudes.

Der Speicher ist die maßgebliche Instanz für "höchstens eine offene
Solicitud pro Student": create_pending() prüft und legt unter einem Lock an.
InMemoryRequestStore dient Tests und Einzelsitzungen, JsonRequestStore der
CLI (eine Datei pro Portal, bei jedem Zugriff neu gelesen). Mehrere Prozesse
auf derselben Datei serialisieren sich über eine Sperrdatei (filelock).
"""

import json
import logging
import threading
from abc import ABC, abstractmethod
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from filelock import FileLock, Timeout

from engine.exceptions import (
    BackendUnavailableError,
    DuplicateRequestError,
    InvalidTransitionError,
    RequestNotFoundError,
)
from models.request import ModificationRequest, RequestState

logger = logging.getLogger(__name__)


class RequestStore(ABC):
    """Gemeinsame Logik aller Speicher; Unterklassen liefern nur _read/_write."""

    def __init__(self) -> None:
        self._lock = threading.Lock()

    def _locked(self):
        """Sperre um jede Lese-/Schreibfolge; Unterklassen können sie erweitern."""
        return self._lock

    @abstractmethod
    def _read(self) -> list[ModificationRequest]:
        ...

    @abstractmethod
    def _write(self, requests: list[ModificationRequest]) -> None:
        ...

    # ─── Schreiben ───

    def create_pending(self, request: ModificationRequest) -> ModificationRequest:
        """Legt eine offene Solicitud an und vergibt ID und Einreichungszeit.

        Raises:
            DuplicateRequestError: Student hat bereits eine offene Solicitud.
        """
        if request.state != RequestState.PENDING:
            raise ValueError(f"Neue Solicitud muss pendiente sein, nicht {request.state.value}")
        with self._locked():
            requests = self._read()
            for existing in requests:
                if existing.student_id == request.student_id and existing.is_pending:
                    raise DuplicateRequestError(request.student_id, existing.id)
            next_id = max((r.id for r in requests), default=0) + 1
            stored = request.model_copy(update={
                "id": next_id,
                "submitted_at": request.submitted_at or datetime.now(timezone.utc),
            })
            requests.append(stored)
            self._write(requests)
        logger.debug(f"Solicitud #{stored.id} gespeichert ({stored.student_id})")
        return stored

    def transition(
        self,
        request_id: int,
        new_state: RequestState,
        reviewer_id: Optional[str] = None,
        observation: Optional[str] = None,
        resolved_at: Optional[datetime] = None,
    ) -> ModificationRequest:
        """Überführt eine offene Solicitud in einen Endzustand (Compare-and-Set).

        Raises:
            RequestNotFoundError: ID unbekannt.
            InvalidTransitionError: Solicitud ist nicht mehr pendiente.
        """
        if new_state == RequestState.PENDING:
            raise ValueError("Übergang nach pendiente ist nicht möglich")
        with self._locked():
            requests = self._read()
            for i, existing in enumerate(requests):
                if existing.id != request_id:
                    continue
                if not existing.is_pending:
                    raise InvalidTransitionError(
                        f"Solicitud #{request_id} ist bereits {existing.state.value}."
                    )
                updated = ModificationRequest.model_validate({
                    **existing.model_dump(),
                    "state": new_state,
                    "reviewer_id": reviewer_id,
                    "observation": observation,
                    "resolved_at": resolved_at or datetime.now(timezone.utc),
                })
                requests[i] = updated
                self._write(requests)
                return updated
        raise RequestNotFoundError(f"Solicitud #{request_id} nicht gefunden.")

    # ─── Lesen ───

    def get(self, request_id: int) -> ModificationRequest:
        with self._locked():
            for request in self._read():
                if request.id == request_id:
                    return request
        raise RequestNotFoundError(f"Solicitud #{request_id} nicht gefunden.")

    def pending_for(self, student_id: str) -> Optional[ModificationRequest]:
        with self._locked():
            for request in self._read():
                if request.student_id == student_id and request.is_pending:
                    return request
        return None

    def latest_for(self, student_id: str) -> Optional[ModificationRequest]:
        """Zuletzt eingereichte Solicitud des Studenten (höchste ID)."""
        with self._locked():
            own = [r for r in self._read() if r.student_id == student_id]
        return max(own, key=lambda r: r.id, default=None)

    def list_requests(self, state: Optional[RequestState] = None) -> list[ModificationRequest]:
        """Alle Solicitudes, optional nach Zustand gefiltert, nach ID sortiert."""
        with self._locked():
            requests = self._read()
        if state is not None:
            requests = [r for r in requests if r.state == state]
        return sorted(requests, key=lambda r: r.id)


class InMemoryRequestStore(RequestStore):
    """Hält Solicitudes im Arbeitsspeicher."""

    def __init__(self) -> None:
        super().__init__()
        self._requests: list[ModificationRequest] = []

    def _read(self) -> list[ModificationRequest]:
        return list(self._requests)

    def _write(self, requests: list[ModificationRequest]) -> None:
        self._requests = list(requests)

    def __len__(self) -> int:
        return len(self._requests)


class JsonRequestStore(RequestStore):
    """Solicitudes als JSON-Liste in einer Datei.

    Dateifehler werden als BackendUnavailableError gemeldet; vor einer
    bestätigten Schreiboperation ändert sich nichts. Prüfen und Anlegen
    laufen unter einer exklusiven Sperre auf `<datei>.lock`, damit zwei
    CLI-Prozesse nicht beide dieselbe ID vergeben.
    """

    LOCK_TIMEOUT = 10.0   # Sekunden

    def __init__(self, path: Path) -> None:
        super().__init__()
        self.path = Path(path)
        self._file_lock = FileLock(
            str(self.path.with_suffix(self.path.suffix + ".lock")), timeout=self.LOCK_TIMEOUT
        )

    @contextmanager
    def _locked(self):
        with self._lock:
            try:
                self.path.parent.mkdir(parents=True, exist_ok=True)
                self._file_lock.acquire()
            except (OSError, Timeout) as e:
                raise BackendUnavailableError(
                    f"Solicitud-Speicher gesperrt oder nicht erreichbar: {self.path} ({e})"
                ) from e
            try:
                yield
            finally:
                self._file_lock.release()

    def _read(self) -> list[ModificationRequest]:
        if not self.path.exists():
            return []
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                raw = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise BackendUnavailableError(
                f"Solicitud-Speicher nicht lesbar: {self.path} ({e})"
            ) from e
        return [ModificationRequest.model_validate(item) for item in raw]

    def _write(self, requests: list[ModificationRequest]) -> None:
        data = [r.model_dump(mode="json") for r in requests]
        tmp = self.path.with_suffix(self.path.suffix + ".tmp")
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with open(tmp, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=2, ensure_ascii=False)
            tmp.replace(self.path)
        except OSError as e:
            raise BackendUnavailableError(
                f"Solicitud-Speicher nicht schreibbar: {self.path} ({e})"
            ) from e

    def __repr__(self) -> str:
        return f"JsonRequestStore({self.path})"
