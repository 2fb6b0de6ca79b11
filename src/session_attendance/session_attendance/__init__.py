"""Session Attendance package.

Feature modules (subjects, windows, attendance, reconciliation, ...) follow the
same split: frozen dataclass models, Protocol repositories with a MySQL
implementation, service classes holding the rules, and a thin Flask controller.
"""
