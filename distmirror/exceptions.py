class MirrorError(Exception):
    """
    Root of every error a mirror run can raise.

    The reconciler stamps the run state that was reached when the error
    escaped, so the coordinator can report where the run stopped.
    """

    state = None

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def __str__(self):
        if self.state is not None:
            return f"{self.message} (stopped at {self.state.value})"
        return self.message


class InfrastructureError(MirrorError):
    """
    Fetch, checkout, filesystem or transport failure. Always fatal.
    """


class IntegrityError(MirrorError):
    """
    Downloaded content does not match the hash declared in the manifest.
    """

    def __init__(self, path: str, expected: str, actual: str):
        super().__init__(
            f"Checksum mismatch for {path}: expected {expected}, got {actual}"
        )
        self.path = path
        self.expected = expected
        self.actual = actual


class ManifestError(MirrorError):
    """
    The package metadata file could not be parsed.
    """


class BlobStoreError(InfrastructureError):
    """
    Custom error class for internal blob store errors.
    """
