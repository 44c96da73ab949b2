"""Failure taxonomy for adapter experiments."""


class AdapterGymError(Exception):
    """Base class for all AdapterGym failures."""


class ArtifactLoadFailure(AdapterGymError):
    """An artifact could not be loaded or scored.

    Aborts the current evaluation pass; the prior best is kept.
    """


class StorageFailure(AdapterGymError):
    """A checkpoint write, copy or rename failed."""


class BaselineComputationFailure(AdapterGymError):
    """The untrained baseline accuracy could not be established."""


class TrainerFailure(AdapterGymError):
    """Opaque failure surfaced by the trainer itself."""
