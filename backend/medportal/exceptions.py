class PortalError(Exception):
    def __init__(self, reason: str, details: dict = None):
        self.reason = reason
        self.details = details or {}
        super().__init__(reason)


class InvalidCredentials(PortalError):
    def __init__(self, reason: str = "Invalid email or password.", details: dict = None):
        super().__init__(reason, details)


class ServiceUnavailable(PortalError):
    """Identity or persistence service unreachable, misconfigured or malformed."""


class AuthorizationDenied(PortalError):
    """Role mismatch. Handled as a redirect to the user's own dashboard."""

    def __init__(self, reason: str = "role not permitted", redirect_to: str = "/dashboard"):
        self.redirect_to = redirect_to
        super().__init__(reason, {"redirect_to": redirect_to})


class RegistrationFailed(PortalError):
    pass


class RecordNotFound(PortalError):
    pass


class AnalysisError(PortalError):
    pass


class AnalysisConfigurationError(AnalysisError):
    pass


class AnalysisOracleFailure(AnalysisError):
    pass


class AnalysisPersistenceFailure(AnalysisError):
    def __init__(self, reason: str, details: dict = None, result_id: str = None):
        self.result_id = result_id
        super().__init__(reason, details)


class ScanNotFound(AnalysisError):
    pass


class RecordConflict(PortalError):
    """Write rejected by a uniqueness or integrity constraint."""
