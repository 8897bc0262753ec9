class LighthouseError(Exception):
    """
    Base error for the baseline tooling.
    Every error is fatal to the current command; `hint` tells the operator what to do next.
    """
    hint = ""

    def __init__(self, message, hint=None):
        super().__init__(message)
        if hint is not None:
            self.hint = hint


class ConfigurationError(LighthouseError):
    hint = "Check lighthouserc.json (or the file passed with --config)."


class ServerNotReadyError(LighthouseError):
    hint = "Start the server yourself (e.g. 'yarn dev') or raise startServerReadyTimeout."


class AuditInvocationError(LighthouseError):
    hint = "Make sure the lighthouse CLI is installed ('npm install -g lighthouse') and Chrome is available."


class MissingAuditError(LighthouseError):
    hint = "The report is incomplete or was produced with incompatible settings."

    def __init__(self, audit_id, message=None, hint=None):
        self.audit_id = audit_id
        super().__init__(message or f"Report is missing audit '{audit_id}'", hint)


class NoBaselineError(LighthouseError):
    hint = "Run 'create-baseline' first."

    def __init__(self, path, message=None, hint=None):
        self.path = path
        super().__init__(message or f"No baseline found at {path}", hint)


class DivisionUndefinedError(LighthouseError):
    hint = "The baseline value is zero, percentage change cannot be computed."


class NoResultsError(LighthouseError):
    hint = "Run 'quick' or 'autorun' first."
