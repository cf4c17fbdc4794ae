"""
Error taxonomy shared by the stores, services and outer surfaces.

  NotFound           id did not resolve            → caller returns to the list view
  TransientError     network / backend hiccup      → caller offers a retry
  PersistenceError   write rejected by the backend → displayed status stays unchanged
  ExportError        PDF generation failed         → isolated to the export action
  IllegalTransition  action not offered in this state
  InvalidAmount      payment / budget amount rejected before any write

The policy and vocabulary functions are total and never raise these.  The
balance functions raise only InvalidAmount, for input that is not a number.
"""


def _text(value) -> str:
    return str(getattr(value, "value", value))


class LedgerError(Exception):
    """Base class for every error surfaced to the end user."""


class NotFound(LedgerError):
    def __init__(self, kind, record_id: str) -> None:
        self.kind = _text(kind)
        self.record_id = record_id
        super().__init__(f"{self.kind} '{record_id}' not found")


class TransientError(LedgerError):
    pass


class PersistenceError(LedgerError):
    pass


class ExportError(LedgerError):
    pass


class IllegalTransition(LedgerError):
    def __init__(self, kind, record_id: str, action, status) -> None:
        self.kind = _text(kind)
        self.record_id = record_id
        self.action = _text(action)
        self.status = _text(status)
        super().__init__(
            f"Action '{self.action}' is not available for {self.kind} '{record_id}' "
            f"in status '{self.status}'"
        )


class InvalidAmount(LedgerError, ValueError):
    pass
