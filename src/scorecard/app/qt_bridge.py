from __future__ import annotations

from typing import Callable

from PySide6.QtCore import QCoreApplication, QObject, Qt, Signal
from PySide6.QtWidgets import QMessageBox, QWidget

from scorecard.app.debug_log import debug_event
from scorecard.app.sync_coordinator import SyncCoordinator
from scorecard.core.event_stream import RecordChange, RecordChangeStream


_BACKGROUND_STATES = (
    Qt.ApplicationState.ApplicationInactive,
    Qt.ApplicationState.ApplicationHidden,
    Qt.ApplicationState.ApplicationSuspended,
)


class RecordChangeSignals(QObject):
    """Re-emits store changes as a Qt signal for live history views."""

    # (change_type, key)
    recordChanged = Signal(str, str)

    def __init__(self, changes: RecordChangeStream, *, parent: QObject | None = None) -> None:
        super().__init__(parent)
        self._unsubscribe: Callable[[], None] | None = changes.subscribe(self._on_change)

    def shutdown(self) -> None:
        unsubscribe = self._unsubscribe
        self._unsubscribe = None
        if unsubscribe is not None:
            unsubscribe()

    def _on_change(self, change: RecordChange) -> None:
        self.recordChanged.emit(change.change_type, change.key)


class ApplicationLifecycleSync(QObject):
    """Saves the draft when the app leaves the foreground and syncs on resume."""

    syncFinished = Signal(int)

    def __init__(
        self,
        coordinator: SyncCoordinator,
        *,
        parent: QObject | None = None,
        app: QCoreApplication | None = None,
    ) -> None:
        super().__init__(parent)
        self._coordinator = coordinator
        self._app = app if app is not None else QCoreApplication.instance()
        self._connected = False
        signal = getattr(self._app, "applicationStateChanged", None)
        if signal is not None:
            signal.connect(self.handle_application_state)
            self._connected = True

    @property
    def connected(self) -> bool:
        return self._connected

    def shutdown(self) -> None:
        if not self._connected:
            return
        signal = getattr(self._app, "applicationStateChanged", None)
        if signal is not None:
            try:
                signal.disconnect(self.handle_application_state)
            except (RuntimeError, TypeError) as exc:
                debug_event("lifecycle.disconnect_failed", error=str(exc))
        self._connected = False

    def handle_application_state(self, state: Qt.ApplicationState) -> None:
        if state in _BACKGROUND_STATES:
            if self._coordinator.is_dirty():
                saved = self._coordinator.save_draft()
                debug_event("lifecycle.background", draft_saved=saved)
            return
        if state == Qt.ApplicationState.ApplicationActive:
            debug_event("lifecycle.resumed")
            self._coordinator.sync_pending_in_background(self.syncFinished.emit)


def message_box_confirm(
    parent: QWidget | None = None,
    *,
    title: str = "Confirm",
) -> Callable[[str], bool]:
    def _confirm(message: str) -> bool:
        answer = QMessageBox.question(
            parent,
            title,
            message,
            QMessageBox.StandardButton.Yes | QMessageBox.StandardButton.No,
            QMessageBox.StandardButton.No,
        )
        return answer == QMessageBox.StandardButton.Yes

    return _confirm
