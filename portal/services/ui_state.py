"""Local UI state: selections and action outcomes that never leave the client."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(slots=True)
class UiState:
    """Inputs to reconciliation owned by the user, not by the server."""

    create_view: bool = False
    creating: bool = False
    create_error: str | None = None
    auth_error: str | None = None
    entry_error: str | None = None
    selected_type_id: str | None = None
    persistent: bool = False

    def select_type(self, type_id: str | None) -> None:
        """Select an instance type; the persistent checkbox never carries over."""
        if type_id != self.selected_type_id:
            self.persistent = False
        self.selected_type_id = type_id

    def open_create(self) -> None:
        self.create_view = True
        self.create_error = None

    def close_create(self) -> None:
        """Leave the create view and drop the pending selection."""
        self.create_view = False
        self.create_error = None
        self.selected_type_id = None
        self.persistent = False
